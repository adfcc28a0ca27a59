"""Quick card: per-resource-tick economy (extraction, industry, upkeep, roles, metabolism)."""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING, List

from src.model.hexgrid import neighbors
from src.model.world_state import Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)


# --- Extraction ---


def _building_multiplier(settlement: Settlement, hex_id: str, config: "GameConfig") -> float:
    mult = 1.0
    for building in settlement.buildings:
        if building.hex_id != hex_id or building.integrity <= 0:
            continue
        spec = config.buildings.get(building.type)
        if spec is None:
            continue
        for effect in spec.effects:
            if effect.get("type") == "YIELD_BONUS":
                mult += float(effect.get("value", 0.0))
    return mult


def _extract_from_hex(
    world: WorldState,
    settlement: Settlement,
    hex_id: str,
    terrain: str,
    config: "GameConfig",
    tool_mult: float,
) -> None:
    yields = config.yields.get(terrain)
    if not yields:
        return
    total_mult = tool_mult * _building_multiplier(settlement, hex_id, config)
    for resource, amount in yields.items():
        produced = amount * total_mult
        if resource == "Gold":
            faction = world.factions.get(settlement.owner_id)
            if faction is not None:
                faction.gold += produced
        elif hex_id == settlement.hex_id:
            settlement.stockpile[resource] = settlement.stockpile.get(resource, 0.0) + produced
        else:
            cell = world.hexes[hex_id]
            cell.resources[resource] = cell.resources.get(resource, 0.0) + produced


def extraction_step(world: WorldState, config: "GameConfig", rng: random.Random) -> None:
    """Yield cue: centre hex feeds the stockpile, remote hexes pile up for pickup, Gold goes to the faction."""
    for settlement in list(world.settlements.values()):
        if settlement.hex_id not in world.hexes:
            continue
        has_tools = settlement.stockpile.get("Tools", 0.0) >= 1
        tool_mult = config.costs.tool_bonus if has_tools else 1.0
        if has_tools and rng.random() < config.costs.tool_break_chance:
            settlement.stockpile["Tools"] = max(0.0, settlement.stockpile["Tools"] - 1)

        for hex_id in settlement.controlled_hex_ids:
            cell = world.hexes.get(hex_id)
            if cell is None:
                continue
            _extract_from_hex(world, settlement, hex_id, cell.terrain, config, tool_mult)
            fishery = any(
                b.type == "Fishery" and b.hex_id == hex_id and b.integrity > 0 for b in settlement.buildings
            )
            if fishery:
                for h in neighbors(cell.hex):
                    water = world.hexes.get(h.id)
                    if water is not None and water.terrain == "Water":
                        _extract_from_hex(world, settlement, hex_id, "Water", config, tool_mult)


# --- Industry ---


def industry_step(world: WorldState, config: "GameConfig") -> None:
    """Forge one Tool per settlement per tick, only out of Timber/Ore above the surplus buffer."""
    ind = config.industry
    for settlement in world.settlements.values():
        target_tools = math.ceil(settlement.population * ind.target_tool_ratio)
        if settlement.stockpile["Tools"] >= target_tools:
            continue
        if (
            settlement.stockpile["Timber"] > ind.cost_timber + ind.surplus_threshold
            and settlement.stockpile["Ore"] > ind.cost_ore + ind.surplus_threshold
        ):
            settlement.stockpile["Timber"] -= ind.cost_timber
            settlement.stockpile["Ore"] -= ind.cost_ore
            settlement.stockpile["Tools"] += 1


# --- Maintenance ---


def _pay_upkeep(settlement: Settlement, config: "GameConfig") -> None:
    total_cost = settlement.population * config.costs.maintenance_per_pop
    covered = 0.0
    for resource, share in config.maintenance.upkeep_split.items():
        needed = total_cost * share
        stock = settlement.stockpile.get(resource, 0.0)
        if stock >= needed:
            settlement.stockpile[resource] = stock - needed
            covered += share
        else:
            settlement.stockpile[resource] = 0.0
            covered += share * (stock / max(1.0, needed))
    if covered >= 0.99:
        settlement.integrity = min(100.0, settlement.integrity + 1)
    else:
        settlement.integrity = max(0.0, settlement.integrity - (1.0 - covered) * 5)


def maintenance_step(world: WorldState, config: "GameConfig") -> None:
    """Upkeep cue: population upkeep first, then building decay and paid repairs."""
    maint = config.maintenance
    for settlement in world.settlements.values():
        _pay_upkeep(settlement, config)
        for building in settlement.buildings:
            building.integrity = max(0.0, building.integrity - maint.decay_rate)
            if building.integrity >= 100:
                continue
            spec = config.buildings.get(building.type)
            if spec is None:
                continue
            repair_cost = {res: math.ceil(amount * maint.repair_cost_factor) for res, amount in spec.cost.items()}
            if settlement.pay(repair_cost):
                building.integrity = min(100.0, building.integrity + maint.repair_amount)


# --- Settlement roles & labour ---


def evaluate_role(world: WorldState, settlement: Settlement, config: "GameConfig") -> str:
    thresholds = config.ai.role_thresholds
    forest = hills = plains = total = 0
    for hex_id in settlement.controlled_hex_ids:
        cell = world.hexes.get(hex_id)
        if cell is None:
            continue
        total += 1
        if cell.terrain == "Forest":
            forest += 1
        elif cell.terrain in ("Hills", "Mountains"):
            hills += 1
        elif cell.terrain == "Plains":
            plains += 1
    if total == 0:
        return settlement.role
    if forest / total >= thresholds["lumber_forest_ratio"]:
        return "LUMBER"
    if hills / total >= thresholds["mining_hill_ratio"]:
        return "MINING"
    if plains / total >= thresholds["granary_plains_ratio"]:
        return "GRANARY"
    return "GENERAL"


def settlement_step(world: WorldState, config: "GameConfig") -> None:
    """Growth bookkeeping: roles on their own cadence, labour counters and population history."""
    refresh_roles = world.tick % config.ai.role_check_interval == 0
    for settlement in world.settlements.values():
        if refresh_roles:
            role = evaluate_role(world, settlement, config)
            if role != settlement.role:
                log.debug("%s takes role %s", settlement.name, role)
                settlement.role = role
        hex_count = len(settlement.controlled_hex_ids) or 1
        settlement.job_cap = hex_count * config.costs.max_labor_per_hex
        settlement.working_pop = min(settlement.population, settlement.job_cap)
        settlement.pop_history.append(settlement.population)
        if len(settlement.pop_history) > config.simulation.pop_history_limit:
            del settlement.pop_history[0]


# --- Metabolism ---


def metabolism_step(world: WorldState, config: "GameConfig") -> List[str]:
    """Upkeep cue: eat, grow or starve, collect tax, and retire settlements that died out.

    Returns the ids of settlements removed this tick.
    """
    costs = config.costs
    dead: List[str] = []
    for settlement in list(world.settlements.values()):
        pop = settlement.population
        consumption = pop * costs.base_consume
        if settlement.stockpile["Food"] >= consumption:
            settlement.stockpile["Food"] -= consumption
            hex_count = len(settlement.controlled_hex_ids) or 7
            working = min(pop, hex_count * costs.max_labor_per_hex)
            pressure = working / pop if pop > 0 else 1.0
            surplus_bonus = 0.0
            settlement_food_cost = costs.settlement.get("Food", 0.0)
            if settlement.stockpile["Food"] > settlement_food_cost and consumption > 0:
                extra = settlement.stockpile["Food"] - settlement_food_cost
                surplus_bonus = (extra / consumption) * costs.growth_surplus_bonus
            rate = (costs.growth_rate + surplus_bonus) * pressure
            if settlement.population >= config.upgrades.pop_cap(settlement.tier):
                rate *= costs.soft_cap_growth_factor
            settlement.last_growth = pop * rate
        else:
            settlement.stockpile["Food"] = 0.0
            settlement.last_growth = -pop * costs.starvation_rate
        settlement.population = max(0.0, pop + settlement.last_growth)
        settlement.stockpile["Gold"] += settlement.population * costs.tax_rate

        if settlement.population <= 0:
            log.info("Settlement %s has died out", settlement.name)
            world.remove_settlement(settlement.id)
            world.record_event("settlement_died", settlement=settlement.id, owner=settlement.owner_id)
            dead.append(settlement.id)
    return dead
