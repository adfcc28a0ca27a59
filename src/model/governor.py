"""Quick card: settlement governor that scores ambitions into desire tickets on the faction blackboard.

Each ambition is its own small scoring function. Weights and thresholds come from
``config.ai.governor``; the governor only recommends and never touches a stockpile.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from src.agents.mobile import Villager
from src.model.buildings import desire_for_building, free_building_hexes
from src.model.hexgrid import neighbors
from src.model.trade import consumption, food_safe_level
from src.model.world_state import (
    DESIRE_RECRUIT_VILLAGER,
    DESIRE_REPLENISH,
    DESIRE_REQUEST_FREIGHT,
    DESIRE_SETTLER,
    DESIRE_TRADE_CARAVAN,
    DESIRE_UPGRADE,
    DesireTicket,
    Faction,
    Settlement,
    WorldState,
)

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)

BUILD_GRANARY = desire_for_building("Granary")
BUILD_FISHERY = desire_for_building("Fishery")
BUILD_SMITHY = desire_for_building("Smithy")
BUILD_GATHERERHUT = desire_for_building("GathererHut")
BUILD_GUARDPOST = desire_for_building("GuardPost")

# Ambitions that help a starving settlement; everything else is penalised in survival.
SURVIVAL_DESIRES = frozenset(
    {DESIRE_REPLENISH, DESIRE_TRADE_CARAVAN, DESIRE_REQUEST_FREIGHT, BUILD_GRANARY, BUILD_FISHERY, BUILD_GATHERERHUT}
)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def in_survival(settlement: Settlement, config: "GameConfig") -> bool:
    return settlement.ai_state.survive_mode or settlement.stockpile.get("Food", 0.0) < food_safe_level(settlement, config)


def update_influence_flags(settlement: Settlement, config: "GameConfig") -> bool:
    """Recompute survive mode with hysteresis: enter below the panic line, leave well above it."""
    food = settlement.stockpile.get("Food", 0.0)
    panic = food_safe_level(settlement, config)
    if settlement.ai_state.survive_mode:
        if food >= panic * config.ai.survival.survive_exit_multiplier:
            settlement.ai_state.survive_mode = False
            log.debug("%s leaves survive mode", settlement.name)
    elif food < panic:
        settlement.ai_state.survive_mode = True
        log.debug("%s enters survive mode", settlement.name)
    return settlement.ai_state.survive_mode


def food_health(settlement: Settlement, config: "GameConfig") -> float:
    safe = max(1.0, consumption(settlement, config)) * config.ai.survival.survive_ticks
    return min(1.0, settlement.stockpile.get("Food", 0.0) / (safe * 2))


def _touches_water(world: WorldState, settlement: Settlement) -> bool:
    for hex_id in settlement.controlled_hex_ids:
        cell = world.hexes.get(hex_id)
        if cell is None or cell.terrain == "Water":
            continue
        for h in neighbors(cell.hex):
            other = world.hexes.get(h.id)
            if other is not None and other.terrain == "Water":
                return True
    return False


# --- ambition scorers (each returns None when the ambition does not apply) ---


def score_upgrade(settlement: Settlement, faction: Faction, config: "GameConfig") -> Optional[DesireTicket]:
    step = config.upgrades.step_for(settlement.tier)
    if step is None:
        return None
    ratio = min(1.0, settlement.population / config.upgrades.pop_cap(settlement.tier))
    stances = faction.blackboard.stances
    stance = _clamp01(stances.get("exploit", 0.0)) + _clamp01(stances.get("expand", 0.0)) * config.ai.governor.weights.upgrade_expand_share
    return DesireTicket(settlement.id, DESIRE_UPGRADE, ratio * ratio * stance, list(step.cost))


def score_settler(world: WorldState, settlement: Settlement, faction: Faction, config: "GameConfig") -> Optional[DesireTicket]:
    if len(world.settlements_of(faction.id)) >= config.ai.settlement_cap:
        return None
    weights = config.ai.governor.weights
    ratio = min(1.0, settlement.population / (config.ai.settler_pop_cost * weights.settler_cost_buffer))
    expand = _clamp01(faction.blackboard.stances.get("expand", 0.0))
    return DesireTicket(settlement.id, DESIRE_SETTLER, weights.settler_expand_base * expand * ratio, ["Food", "Timber"])


def score_trade(settlement: Settlement, faction: Faction, config: "GameConfig") -> DesireTicket:
    weights = config.ai.governor.weights
    shortages = list(faction.blackboard.critical_shortages)
    score = min(1.0, weights.trade_base + weights.trade_shortage * len(shortages))
    return DesireTicket(settlement.id, DESIRE_TRADE_CARAVAN, score, shortages)


def score_recruit(world: WorldState, settlement: Settlement, config: "GameConfig") -> DesireTicket:
    villagers = config.villagers
    max_agents = max(villagers.base_villagers, int(settlement.population // villagers.pop_ratio))
    out_working = sum(1 for v in world.agents_of_type(Villager) if v.home_id == settlement.id)
    current = settlement.available_villagers + out_working
    agent_ratio = min(1.0, current / max_agents) if max_agents > 0 else 1.0

    safe = max(1.0, consumption(settlement, config)) * config.ai.survival.survive_ticks
    surplus_ratio = (settlement.stockpile.get("Food", 0.0) - safe) / safe
    buffer = config.ai.survival.recruit_buffer
    food_score = 1.0 if surplus_ratio >= buffer else _clamp01(surplus_ratio / buffer)
    return DesireTicket(settlement.id, DESIRE_RECRUIT_VILLAGER, (1.0 - agent_ratio) * food_score, ["Food"])


def score_buildings(world: WorldState, settlement: Settlement, config: "GameConfig", survival: bool) -> List[DesireTicket]:
    weights = config.ai.governor.weights
    governor = config.ai.governor
    health = food_health(settlement, config)
    stock = settlement.stockpile
    tickets: List[DesireTicket] = []

    if not settlement.has_building("Granary"):
        score = min(1.0, (1.0 - health) * governor.role_multiplier(settlement.role, "Granary"))
        tickets.append(DesireTicket(settlement.id, BUILD_GRANARY, score, list(config.buildings["Granary"].cost)))

    if not settlement.has_building("Fishery") and _touches_water(world, settlement):
        score = min(1.0, (1.0 - health) * weights.fishery_water * governor.role_multiplier(settlement.role, "Fishery"))
        tickets.append(DesireTicket(settlement.id, BUILD_FISHERY, score, list(config.buildings["Fishery"].cost)))

    if not survival and settlement.tier >= 1 and not settlement.has_building("Smithy"):
        wanted = max(1.0, settlement.population * weights.tool_per_pop)
        tool_health = min(1.0, stock.get("Tools", 0.0) / wanted)
        score = min(1.0, (1.0 - tool_health) * governor.role_multiplier(settlement.role, "Smithy") * weights.smithy_tool_factor)
        tickets.append(DesireTicket(settlement.id, BUILD_SMITHY, score, list(config.buildings["Smithy"].cost)))

    # Field buildings only go up while the settlement keeps a maintenance buffer
    buffer = weights.construction_buffer
    if stock.get("Timber", 0.0) < buffer or stock.get("Stone", 0.0) < buffer:
        return tickets

    short_on_food = survival or stock.get("Food", 0.0) < config.ai.survival.survive_food * weights.gatherer_food_factor
    if short_on_food and free_building_hexes(world, settlement, "Plains"):
        score = min(1.0, (1.0 - health) * governor.role_multiplier(settlement.role, "GathererHut"))
        tickets.append(DesireTicket(settlement.id, BUILD_GATHERERHUT, score, list(config.buildings["GathererHut"].cost)))

    if (
        not survival
        and stock.get("Timber", 0.0) > weights.guard_post_timber_surplus
        and stock.get("Stone", 0.0) > weights.guard_post_stone_surplus
        and free_building_hexes(world, settlement)
    ):
        score = min(1.0, weights.guard_post_score * governor.role_multiplier(settlement.role, "GuardPost"))
        tickets.append(DesireTicket(settlement.id, BUILD_GUARDPOST, score, list(config.buildings["GuardPost"].cost)))
    return tickets


def score_replenish(settlement: Settlement, config: "GameConfig") -> Optional[DesireTicket]:
    weights = config.ai.governor.weights
    health = food_health(settlement, config)
    if health >= weights.replenish_health_trigger:
        return None
    return DesireTicket(settlement.id, DESIRE_REPLENISH, (1.0 - health) * weights.replenish_factor, ["Food"])


def score_freight(settlement: Settlement, config: "GameConfig") -> Optional[DesireTicket]:
    weights = config.ai.governor.weights
    needs = [
        resource
        for resource, goal in settlement.resource_goals.items()
        if goal > 0 and settlement.stockpile.get(resource, 0.0) < goal * weights.freight_goal_fraction
    ]
    if not needs:
        return None
    return DesireTicket(settlement.id, DESIRE_REQUEST_FREIGHT, weights.freight_score, needs)


def evaluate_settlement(
    settlement: Settlement,
    faction: Faction,
    world: WorldState,
    config: "GameConfig",
) -> List[DesireTicket]:
    """Score every ambition for ``settlement`` and append the ones above threshold to the blackboard."""
    governor = config.ai.governor
    survival = in_survival(settlement, config)

    candidates: List[Optional[DesireTicket]] = [
        score_upgrade(settlement, faction, config),
        score_settler(world, settlement, faction, config),
        score_trade(settlement, faction, config),
        score_replenish(settlement, config),
        score_freight(settlement, config),
    ]
    if not survival:
        candidates.append(score_recruit(world, settlement, config))
    candidates.extend(score_buildings(world, settlement, config, survival))

    tickets: List[DesireTicket] = []
    for ticket in candidates:
        if ticket is None:
            continue
        if survival and ticket.type not in SURVIVAL_DESIRES:
            ticket.score *= governor.weights.survive_penalty
        if ticket.score > governor.threshold(ticket.type):
            tickets.append(ticket)

    faction.blackboard.desires.extend(tickets)
    settlement.ai_state.last_decisions["governor"] = [f"{t.type}:{t.score:.2f}" for t in tickets]
    return tickets
