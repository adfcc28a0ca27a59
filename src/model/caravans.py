"""Quick card: caravan/settler mission state machine (spawn, dispatch, per-tick update, trade).

Local failures (no path, nothing affordable, no partner) return ``None``/``False`` and leave the
world as it was; a claimed job that cannot be served is always released before moving on.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, List, Optional

from src.agents.mobile import Activity, AgentStatus, Caravan, MobileAgent, Mission, Settler, TradeState, Villager
from src.model.hexgrid import Hex, distance
from src.model.job_pool import (
    JOB_TRADE,
    JOB_TRANSFER,
    claim_job,
    get_top_available_jobs,
    release_assignment,
    report_progress,
)
from src.model.map_generator import found_settlement
from src.model.pathfinding import find_path
from src.model.trade import (
    comfort_level,
    export_level,
    find_best_buyer,
    find_best_seller,
    settlement_shortages,
)
from src.model.world_state import RESOURCES, Faction, Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)

AGENT_CLASSES = {"Caravan": Caravan, "Settler": Settler, "Villager": Villager}
TRADE_GOODS = tuple(resource for resource in RESOURCES if resource != "Gold")


def spawn(
    world: WorldState,
    config: "GameConfig",
    start: Hex,
    target: Hex,
    kind: str,
    owner_id: str,
    home_id: Optional[str] = None,
) -> Optional[MobileAgent]:
    """Create a moving agent on ``start`` bound for ``target``; None when no route exists."""
    path = find_path(start, target, world.hexes, config)
    if path is None:
        log.debug("spawn %s %s -> %s: no path", kind, start, target)
        return None
    agent = AGENT_CLASSES[kind](
        id=world.next_id(kind.lower()),
        owner_id=owner_id,
        position=start,
        home_id=home_id,
        target=target if path else None,
        path=path,
    )
    world.add_agent(agent)
    return agent


def idle_caravan(world: WorldState, settlement: Settlement) -> Optional[Caravan]:
    for agent in world.agents.values():
        if (
            isinstance(agent, Caravan)
            and agent.home_id == settlement.id
            and agent.status == AgentStatus.IDLE
            and agent.at(settlement.hex_id)
        ):
            return agent
    return None


def dispatch(
    world: WorldState,
    config: "GameConfig",
    settlement: Settlement,
    target_hex_id: str,
    mission: Mission,
    value: float = 0.0,
    target_settlement_id: Optional[str] = None,
    resource: Optional[str] = None,
    gold: float = 0.0,
    direction: str = "BUY",
    goods: float = 0.0,
    agent: Optional[Caravan] = None,
) -> Optional[Caravan]:
    """Send a caravan from ``settlement`` on ``mission``; reuse an idle one, build one only for valuable work."""
    target_cell = world.hexes.get(target_hex_id)
    home_cell = world.hexes.get(settlement.hex_id)
    if target_cell is None or home_cell is None:
        return None

    caravan = agent if agent is not None else idle_caravan(world, settlement)
    if caravan is None:
        threshold = (
            config.logistics.construction_roi_threshold
            if mission == Mission.TRADE
            else config.logistics.freight_construction_threshold
        )
        if value < threshold:
            log.debug("%s: job worth %.1f does not justify a new caravan", settlement.name, value)
            return None
        if settlement.stockpile["Timber"] < config.trade.caravan_timber_cost:
            return None
        caravan = spawn(world, config, home_cell.hex, target_cell.hex, "Caravan", settlement.owner_id, settlement.id)
        if caravan is None:
            return None
        settlement.stockpile["Timber"] -= config.trade.caravan_timber_cost
        log.debug("%s built %s", settlement.name, caravan.id)
    else:
        path = find_path(caravan.position, target_cell.hex, world.hexes, config)
        if path is None:
            return None
        caravan.set_route(path, target_cell.hex)
        if not path:
            caravan.target = None

    caravan.begin_outbound(mission)
    caravan.mission_hex_id = target_hex_id
    caravan.stuck_ticks = 0
    if mission == Mission.TRADE:
        caravan.target_settlement_id = target_settlement_id
        caravan.trade_resource = resource
        caravan.trade_direction = direction
        if direction == "BUY":
            taken = max(0.0, min(gold, settlement.stockpile["Gold"]))
            settlement.stockpile["Gold"] -= taken
            caravan.cargo["Gold"] = caravan.cargo.get("Gold", 0.0) + taken
        elif resource is not None:
            taken = max(0.0, min(goods, settlement.stockpile.get(resource, 0.0)))
            settlement.stockpile[resource] -= taken
            caravan.cargo[resource] = caravan.cargo.get(resource, 0.0) + taken
    return caravan


def return_home(world: WorldState, config: "GameConfig", agent: MobileAgent) -> bool:
    """Point ``agent`` back at its home hex; this overrides whatever route it had."""
    home = world.settlements.get(agent.home_id) if agent.home_id else None
    if home is None:
        return False
    home_hex = world.hexes[home.hex_id].hex
    path = find_path(agent.position, home_hex, world.hexes, config)
    if path is None:
        log.debug("%s cannot find a way home", agent.id)
        return False
    agent.set_route(path, home_hex)
    agent.stuck_ticks = 0
    if isinstance(agent, Caravan):
        agent.begin_return()
    else:
        agent.status = AgentStatus.RETURNING
    return True


# --- job plumbing ---


def _drop_claim(faction: Optional[Faction], agent: Caravan) -> None:
    job_id, claimed = agent.release_claim()
    if faction is not None and job_id is not None and claimed > 0:
        release_assignment(faction, job_id, claimed, agent_id=agent.id)


def _settle_job(faction: Optional[Faction], agent: Caravan, delivered: float) -> None:
    """Book the delivery, then hand back whatever part of the claim was not used."""
    job_id, claimed = agent.release_claim()
    if faction is None or job_id is None:
        return
    report_progress(faction, job_id, delivered, agent_id=agent.id)
    leftover = claimed - min(delivered, claimed)
    if leftover > 0:
        release_assignment(faction, job_id, leftover, agent_id=agent.id)


def _start_trade_job(world: WorldState, config: "GameConfig", agent: Caravan, home: Settlement, faction: Faction) -> bool:
    """Two phases: buy a critical shortage first, otherwise export surplus."""
    price = config.trade.gold_per_resource
    wanted: List[str] = []
    for resource in list(faction.blackboard.critical_shortages) + settlement_shortages(world, home, config):
        if resource not in wanted and resource != "Gold":
            wanted.append(resource)
    for resource in wanted:
        route = find_best_seller(world, config, home, resource, home.stockpile["Gold"])
        if route is None:
            continue
        seller = world.settlements[route.partner_id]
        if dispatch(
            world, config, home, seller.hex_id, Mission.TRADE,
            value=route.value, target_settlement_id=seller.id, resource=resource,
            gold=route.amount * price, direction="BUY", agent=agent,
        ):
            return True

    for resource in TRADE_GOODS:
        surplus = home.stockpile.get(resource, 0.0) - export_level(home, resource, config)
        if surplus <= 0:
            continue
        route = find_best_buyer(world, config, home, resource, min(surplus, config.trade.capacity))
        if route is None:
            continue
        buyer = world.settlements[route.partner_id]
        if dispatch(
            world, config, home, buyer.hex_id, Mission.TRADE,
            value=route.value, target_settlement_id=buyer.id, resource=resource,
            direction="SELL", goods=route.amount, agent=agent,
        ):
            return True
    return False


def _claim_next_job(world: WorldState, config: "GameConfig", agent: Caravan, home: Settlement, faction: Faction) -> bool:
    if faction.job_pool is None or agent.job_id is not None:
        return False
    for job in get_top_available_jobs(agent, faction, world, config):
        if job.job_type in (JOB_TRADE, JOB_TRANSFER) and job.source_id != home.id:
            continue
        amount = 1.0 if job.job_type == JOB_TRADE else min(config.trade.capacity, job.remaining)
        if not claim_job(faction, agent, job, amount):
            continue
        if job.job_type == JOB_TRADE:
            started = _start_trade_job(world, config, agent, home, faction)
        else:
            started = dispatch(world, config, home, job.target_hex_id, Mission.LOGISTICS, agent=agent) is not None
        if started:
            log.debug("%s took %s", agent.id, job.job_id)
            return True
        _drop_claim(faction, agent)
    return False


def _repair(agent: Caravan, home: Settlement, config: "GameConfig") -> None:
    logistics = config.logistics
    if agent.integrity >= 100 or home.stockpile["Timber"] < logistics.caravan_repair_cost:
        return
    home.stockpile["Timber"] -= logistics.caravan_repair_cost
    agent.integrity = min(100.0, agent.integrity + logistics.caravan_repair_amount)


# --- mission steps ---


def _load_logistics(world: WorldState, config: "GameConfig", agent: Caravan, faction: Optional[Faction]) -> None:
    cell = world.hexes.get(agent.mission_hex_id) if agent.mission_hex_id else None
    if cell is not None:
        for resource, amount in cell.resources.items():
            if amount > 0:
                agent.cargo[resource] = agent.cargo.get(resource, 0.0) + amount
        cell.resources = {}
    job = faction.job_pool.get_job(agent.job_id) if faction and faction.job_pool and agent.job_id else None
    if job is None or job.job_type != JOB_TRANSFER or job.resource is None:
        return
    partner = world.settlements.get(job.partner_id) if job.partner_id else None
    if partner is None:
        return
    spare = partner.stockpile.get(job.resource, 0.0) - comfort_level(partner, job.resource, config)
    taken = max(0.0, min(agent.claimed_volume, spare))
    partner.stockpile[job.resource] -= taken
    agent.cargo[job.resource] = agent.cargo.get(job.resource, 0.0) + taken


def _execute_trade(world: WorldState, config: "GameConfig", agent: Caravan, target: Settlement, faction: Optional[Faction]) -> None:
    resource = agent.trade_resource
    if resource is None:
        return
    price = config.trade.gold_per_resource
    if agent.trade_direction == "BUY":
        amount = min(agent.cargo.get("Gold", 0.0) / price, target.stockpile.get(resource, 0.0), config.trade.buy_cap)
        if amount <= 0:
            return
        agent.cargo["Gold"] -= amount * price
        target.stockpile["Gold"] += amount * price
        target.stockpile[resource] -= amount
        agent.cargo[resource] = agent.cargo.get(resource, 0.0) + amount
    else:
        amount = min(agent.cargo.get(resource, 0.0), target.stockpile["Gold"] / price, config.trade.buy_cap)
        if amount <= 0:
            return
        agent.cargo[resource] -= amount
        target.stockpile[resource] = target.stockpile.get(resource, 0.0) + amount
        target.stockpile["Gold"] -= amount * price
        agent.cargo["Gold"] = agent.cargo.get("Gold", 0.0) + amount * price
    if faction is not None:
        faction.stats.total_trades += 1
        faction.stats.trade_volume[resource] = faction.stats.trade_volume.get(resource, 0.0) + amount
    world.record_event(
        "trade",
        caravan=agent.id,
        home=agent.home_id,
        partner=target.id,
        resource=resource,
        direction=agent.trade_direction,
        amount=round(amount, 2),
    )


def _reroute(world: WorldState, config: "GameConfig", agent: Caravan, hex_id: Optional[str]) -> bool:
    cell = world.hexes.get(hex_id) if hex_id else None
    if cell is None:
        return False
    path = find_path(agent.position, cell.hex, world.hexes, config)
    if not path:
        return False
    agent.set_route(path, cell.hex)
    return True


def _outbound_step(world: WorldState, config: "GameConfig", agent: Caravan, faction: Optional[Faction]) -> None:
    if agent.mission == Mission.TRADE:
        target = world.settlements.get(agent.target_settlement_id) if agent.target_settlement_id else None
        if target is None or not agent.at(target.hex_id):
            # Redirected or the partner is gone: head home with whatever we carry
            return_home(world, config, agent)
            return
    elif not agent.at(agent.mission_hex_id or ""):
        if not _reroute(world, config, agent, agent.mission_hex_id):
            _drop_claim(faction, agent)
            return_home(world, config, agent)
        return

    if agent.activity != Activity.LOADING:
        agent.begin_loading(config.trade.loading_time)
        return
    if agent.mission == Mission.TRADE:
        _execute_trade(world, config, agent, target, faction)
    else:
        _load_logistics(world, config, agent, faction)
    return_home(world, config, agent)


def _inbound_step(world: WorldState, config: "GameConfig", agent: Caravan, home: Settlement, faction: Optional[Faction]) -> None:
    if not agent.at(home.hex_id):
        return_home(world, config, agent)
        return
    if agent.activity != Activity.UNLOADING:
        agent.begin_unloading(config.trade.loading_time)
        return
    delivered = home.deposit(agent.take_cargo())
    if agent.mission == Mission.TRADE:
        # A trade job is one round trip
        _settle_job(faction, agent, agent.claimed_volume)
    else:
        _settle_job(faction, agent, delivered)
    agent.go_idle()


def update_caravan(world: WorldState, config: "GameConfig", agent: Caravan) -> None:
    """Advance one caravan by one tick of mission logic."""
    home = world.settlements.get(agent.home_id) if agent.home_id else None
    faction = world.factions.get(agent.owner_id)
    if home is None:
        _drop_claim(faction, agent)
        world.remove_agent(agent.id)
        return

    if agent.status == AgentStatus.IDLE:
        if not agent.at(home.hex_id):
            return_home(world, config, agent)
            return
        _repair(agent, home, config)
        if faction is not None:
            _claim_next_job(world, config, agent, home, faction)
        return

    if agent.wait_ticks > 0:
        agent.wait_ticks -= 1
        return
    if agent.stuck_ticks > config.logistics.stuck_tick_limit:
        log.debug("%s stuck for %d ticks, heading home", agent.id, agent.stuck_ticks)
        _drop_claim(faction, agent)
        return_home(world, config, agent)
        return
    if agent.path:
        return

    if agent.mission == Mission.IDLE:
        if agent.at(home.hex_id):
            home.deposit(agent.take_cargo())
            agent.go_idle()
        else:
            return_home(world, config, agent)
        return
    if agent.trade_state == TradeState.OUTBOUND:
        _outbound_step(world, config, agent, faction)
    else:
        _inbound_step(world, config, agent, home, faction)


def update_settler(world: WorldState, config: "GameConfig", agent: Settler) -> None:
    """Found a settlement on arrival (if the hex is still free); the settler is consumed either way."""
    if agent.path:
        return
    faction = world.factions.get(agent.owner_id)
    dest_id = agent.destination_id
    cell = world.hexes.get(dest_id) if dest_id else None
    if cell is not None and not agent.at(cell.id):
        path = find_path(agent.position, cell.hex, world.hexes, config)
        if path:
            agent.set_route(path, cell.hex)
            return
        cell = None

    if cell is not None and faction is not None:
        occupied = world.settlement_at(cell.id) is not None
        foreign = cell.owner_id is not None and cell.owner_id != faction.id
        if occupied or foreign:
            log.debug("%s found %s already taken", agent.id, cell.id)
        else:
            settlement = found_settlement(
                world,
                faction,
                cell,
                config,
                population=config.ai.survival.new_settlement_pop,
                stockpile=agent.take_cargo(),
                radius=1,
            )
            settlement.integrity = config.ai.survival.new_settlement_integrity
            faction.stats.settlements_founded += 1
            log.info("%s founded %s at %s", faction.name, settlement.name, cell.id)
            world.record_event("settlement_founded", settlement=settlement.id, owner=faction.id, hex=cell.id)

    if faction is not None and dest_id in faction.blackboard.targeted_hex_ids:
        faction.blackboard.targeted_hex_ids.remove(dest_id)
    world.remove_agent(agent.id)


def update_caravans(world: WorldState, config: "GameConfig") -> None:
    """Per-tick agent update for caravans and settlers (villagers have their own update)."""
    for agent in list(world.agents.values()):
        if agent.id not in world.agents:
            continue
        if isinstance(agent, Caravan):
            update_caravan(world, config, agent)
        elif isinstance(agent, Settler):
            update_settler(world, config, agent)


# --- settlement-initiated trade ---


def _trade_in_flight(world: WorldState, settlement_id: str, resource: str) -> bool:
    return any(
        isinstance(agent, Caravan)
        and agent.home_id == settlement_id
        and agent.mission == Mission.TRADE
        and agent.trade_resource == resource
        for agent in world.agents.values()
    )


def process_trade(world: WorldState, config: "GameConfig") -> int:
    """Each settlement with gold tries to buy its own most pressing shortage. Returns dispatch count."""
    price = config.trade.gold_per_resource
    dispatched = 0
    for settlement in list(world.settlements.values()):
        budget = settlement.stockpile["Gold"]
        if budget < config.logistics.trade_roi_threshold * price:
            continue
        for resource in settlement_shortages(world, settlement, config):
            if _trade_in_flight(world, settlement.id, resource):
                continue
            route = find_best_seller(world, config, settlement, resource, budget)
            if route is None:
                continue
            seller = world.settlements[route.partner_id]
            caravan = dispatch(
                world, config, settlement, seller.hex_id, Mission.TRADE,
                value=route.value, target_settlement_id=seller.id, resource=resource,
                gold=route.amount * price,
            )
            if caravan is not None:
                dispatched += 1
                break
    return dispatched


def force_trade(world: WorldState, config: "GameConfig", rng: random.Random) -> int:
    """Debug hook: every settlement sends a trade caravan to its nearest neighbour for a random good."""
    dispatched = 0
    for settlement in list(world.settlements.values()):
        others = [s for s in world.settlements.values() if s.id != settlement.id]
        if not others:
            continue
        origin = world.hexes[settlement.hex_id].hex
        partner = min(others, key=lambda s: distance(origin, world.hexes[s.hex_id].hex))
        resource = rng.choice(("Food", "Timber", "Stone", "Ore"))
        caravan = dispatch(
            world, config, settlement, partner.hex_id, Mission.TRADE,
            value=config.logistics.construction_roi_threshold, target_settlement_id=partner.id,
            resource=resource, gold=config.trade.force_trade_gold,
        )
        if caravan is not None:
            dispatched += 1
    return dispatched
