"""Quick card: resolve the instant desires on a faction blackboard into world mutations.

Only RECRUIT_VILLAGER, SETTLER, UPGRADE and BUILD_* are handled here. Each ticket either
applies fully or is dropped for this pass; nothing is queued for retry.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Callable, List, Optional

from src.agents.mobile import Settler
from src.model.buildings import BuildingType, building_for_desire, free_building_hexes, is_build_desire
from src.model.caravans import spawn
from src.model.hexgrid import neighbors
from src.model.upgrades import TIER_NAMES, try_upgrade
from src.model.world_state import (
    DESIRE_RECRUIT_VILLAGER,
    DESIRE_SETTLER,
    DESIRE_UPGRADE,
    Building,
    DesireTicket,
    Faction,
    HexCell,
    Settlement,
    WorldState,
)

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)

ExpansionFinder = Callable[[WorldState, "GameConfig", random.Random, Faction], Optional[HexCell]]


def is_instant(desire_type: str) -> bool:
    return desire_type in (DESIRE_RECRUIT_VILLAGER, DESIRE_SETTLER, DESIRE_UPGRADE) or is_build_desire(desire_type)


def recruit_villager(settlement: Settlement, faction: Faction, config: "GameConfig") -> bool:
    cost = config.villagers.cost
    if settlement.stockpile["Food"] < cost:
        return False
    settlement.stockpile["Food"] -= cost
    settlement.available_villagers += 1
    faction.stats.villagers_recruited += 1
    return True


def send_settler(
    world: WorldState,
    settlement: Settlement,
    faction: Faction,
    config: "GameConfig",
    rng: random.Random,
    expansion_finder: ExpansionFinder,
) -> Optional[Settler]:
    ai = config.ai
    if len(world.settlements_of(faction.id)) >= ai.settlement_cap:
        return None
    pack = ai.starter_pack
    total_cost = dict(config.costs.settlement)
    for resource, amount in pack.items():
        total_cost[resource] = total_cost.get(resource, 0.0) + amount
    if not settlement.can_afford(total_cost) or settlement.population <= ai.settler_pop_cost:
        return None
    target = expansion_finder(world, config, rng, faction)
    if target is None:
        return None
    start = world.hexes[settlement.hex_id].hex
    agent = spawn(world, config, start, target.hex, "Settler", faction.id, settlement.id)
    if agent is None:
        return None
    settlement.pay(total_cost)
    settlement.population -= ai.settler_pop_cost
    agent.destination_id = target.id
    agent.cargo = {resource: float(amount) for resource, amount in pack.items()}
    faction.blackboard.targeted_hex_ids.append(target.id)
    faction.stats.settlers_spawned += 1
    log.info("%s sent a settler from %s to %s", faction.name, settlement.name, target.id)
    world.record_event("settler_sent", settlement=settlement.id, owner=faction.id, target=target.id)
    return agent


def _placement_hex(world: WorldState, settlement: Settlement, building: BuildingType) -> Optional[str]:
    if building.placement == "center":
        return settlement.hex_id
    if building.placement == "water_edge":
        candidates = [settlement.hex_id] + [h for h in settlement.controlled_hex_ids if h != settlement.hex_id]
        for hex_id in candidates:
            cell = world.hexes.get(hex_id)
            if cell is None or cell.terrain == "Water":
                continue
            if any(world.hexes.get(h.id) is not None and world.hexes[h.id].terrain == "Water" for h in neighbors(cell.hex)):
                return hex_id
        return None
    free = free_building_hexes(world, settlement, "Plains" if building.placement == "plains" else None)
    return free[0] if free else None


def construct(world: WorldState, settlement: Settlement, faction: Faction, desire_type: str, config: "GameConfig") -> bool:
    building = building_for_desire(desire_type)
    if building is None:
        log.warning("Unknown building desire %s", desire_type)
        return False
    if not building.repeatable and settlement.has_building(building.key):
        return False
    spec = config.buildings[building.key]
    if settlement.tier < spec.min_tier:
        return False
    hex_id = _placement_hex(world, settlement, building)
    if hex_id is None:
        return False
    if not settlement.pay(spec.cost):
        return False
    settlement.buildings.append(Building(type=building.key, hex_id=hex_id))
    faction.stats.buildings_built += 1
    log.info("%s built a %s", settlement.name, building.key)
    world.record_event("building_built", settlement=settlement.id, building=building.key, hex=hex_id)
    return True


def resolve_instant_desires(
    world: WorldState,
    faction: Faction,
    config: "GameConfig",
    rng: random.Random,
    expansion_finder: ExpansionFinder,
) -> List[str]:
    """Work through instant desires best score first; returns a log line per action taken."""
    tickets: List[DesireTicket] = sorted(
        (t for t in faction.blackboard.desires if is_instant(t.type)),
        key=lambda t: t.score,
        reverse=True,
    )
    done: List[str] = []
    for ticket in tickets:
        settlement = world.settlements.get(ticket.settlement_id)
        if settlement is None or settlement.owner_id != faction.id:
            continue
        if ticket.type == DESIRE_RECRUIT_VILLAGER:
            ok = recruit_villager(settlement, faction, config)
        elif ticket.type == DESIRE_SETTLER:
            ok = send_settler(world, settlement, faction, config, rng, expansion_finder) is not None
        elif ticket.type == DESIRE_UPGRADE:
            ok = try_upgrade(world, settlement, config)
            if ok:
                log.debug("%s is now a %s", settlement.name, TIER_NAMES[settlement.tier])
        else:
            ok = construct(world, settlement, faction, ticket.type, config)
        if ok:
            line = f"{ticket.type}@{settlement.id}"
            done.append(line)
            settlement.ai_state.last_decisions.setdefault("controller", []).append(line)
    return done
