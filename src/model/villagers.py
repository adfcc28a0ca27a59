"""Quick card: villager labour (short gather trips from the settlement to nearby controlled hexes).

Villagers are transient: ``assign_villagers`` spends one from ``available_villagers`` to spawn a
walker, and the walker returns to the pool when it gets home (or cannot).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Tuple

from src.agents.mobile import AgentStatus, Villager
from src.model.caravans import spawn
from src.model.governor import in_survival
from src.model.hexgrid import distance
from src.model.pathfinding import find_path
from src.model.world_state import Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)


def _retire(world: WorldState, agent: Villager, home: Settlement) -> None:
    home.available_villagers += 1
    world.remove_agent(agent.id)


def _head_home(world: WorldState, config: "GameConfig", agent: Villager, home: Settlement) -> None:
    home_hex = world.hexes[home.hex_id].hex
    path = find_path(agent.position, home_hex, world.hexes, config)
    if path is None:
        # Nowhere to walk; give the worker back rather than strand it
        _retire(world, agent, home)
        return
    agent.set_route(path, home_hex)
    agent.status = AgentStatus.RETURNING


def _gather(world: WorldState, config: "GameConfig", agent: Villager, home: Settlement) -> None:
    target = agent.gather_target
    if target is None:
        _head_home(world, config, agent, home)
        return
    if agent.position != target:
        path = find_path(agent.position, target, world.hexes, config)
        if path:
            agent.set_route(path, target)
        else:
            _head_home(world, config, agent, home)
        return

    cell = world.hexes.get(target.id)
    space = config.villagers.capacity - agent.cargo_total()
    if cell is not None:
        for resource, amount in sorted(cell.resources.items(), key=lambda item: item[1], reverse=True):
            if space <= 0:
                break
            take = min(amount, space)
            if take <= 0:
                continue
            cell.resources[resource] = amount - take
            agent.cargo[resource] = agent.cargo.get(resource, 0.0) + take
            space -= take
    _head_home(world, config, agent, home)


def update_villagers(world: WorldState, config: "GameConfig") -> None:
    """Per-tick villager state machine: walk out, pick up, walk home, deposit, rejoin the pool."""
    for agent in world.agents_of_type(Villager):
        home = world.settlements.get(agent.home_id) if agent.home_id else None
        if home is None:
            world.remove_agent(agent.id)
            continue
        if agent.path:
            continue
        if agent.status == AgentStatus.RETURNING:
            if agent.at(home.hex_id):
                home.deposit(agent.take_cargo())
                _retire(world, agent, home)
            else:
                _head_home(world, config, agent, home)
        elif agent.status == AgentStatus.BUSY:
            _gather(world, config, agent, home)
        elif not agent.at(home.hex_id):
            _head_home(world, config, agent, home)


def _gather_sites(world: WorldState, settlement: Settlement, config: "GameConfig") -> List[Tuple[float, str]]:
    survival = in_survival(settlement, config)
    center = world.hexes[settlement.hex_id].hex
    sites = []
    for hex_id in settlement.controlled_hex_ids:
        if hex_id == settlement.hex_id:
            continue
        cell = world.hexes.get(hex_id)
        if cell is None or not cell.resources:
            continue
        dist = distance(center, cell.hex)
        if dist > config.villagers.range:
            continue
        weighted = 0.0
        for resource, amount in cell.resources.items():
            weight = config.villagers.survival_food_weight if survival and resource == "Food" else 1.0
            weighted += max(0.0, amount) * weight
        if weighted < 1:
            continue
        sites.append((weighted / max(1, dist), hex_id))
    sites.sort(reverse=True)
    return sites


def assign_villagers(world: WorldState, config: "GameConfig") -> int:
    """Send idle villagers to the richest nearby hexes. Returns how many left home."""
    sent = 0
    for settlement in list(world.settlements.values()):
        if settlement.available_villagers <= 0:
            continue
        home_hex = world.hexes[settlement.hex_id].hex
        for score, hex_id in _gather_sites(world, settlement, config):
            if settlement.available_villagers <= 0:
                break
            assigned = sum(
                1
                for v in world.agents_of_type(Villager)
                if v.home_id == settlement.id and v.gather_target is not None and v.gather_target.id == hex_id
            )
            if score <= assigned * config.villagers.job_score_multi:
                continue
            target = world.hexes[hex_id].hex
            agent = spawn(world, config, home_hex, target, "Villager", settlement.owner_id, settlement.id)
            if agent is None:
                continue
            agent.gather_target = target
            settlement.available_villagers -= 1
            sent += 1
    if sent:
        log.debug("dispatched %d villagers", sent)
    return sent
