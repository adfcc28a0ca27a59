"""Quick card: faction-level stance evaluator (expand vs exploit) and critical shortages.

Writes only to the faction blackboard and to each settlement's ``resource_goals``; the governor
reads both on the same pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from src.model.trade import food_safe_level
from src.model.world_state import Faction, WorldState, total_stock

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)


def _critical_shortages(world: WorldState, faction: Faction, config: "GameConfig") -> List[str]:
    settlements = world.settlements_of(faction.id)
    shortages: List[str] = []
    safe_total = sum(food_safe_level(s, config) for s in settlements)
    if total_stock(settlements, "Food") < safe_total:
        shortages.append("Food")

    # Materials for the next settlement or the cheapest pending upgrade
    wanted = dict(config.costs.settlement)
    for settlement in settlements:
        step = config.upgrades.step_for(settlement.tier)
        if step is None:
            continue
        for resource, amount in step.cost.items():
            wanted[resource] = max(wanted.get(resource, 0.0), amount)
    for resource in ("Timber", "Stone"):
        if resource in wanted and total_stock(settlements, resource) < wanted[resource]:
            shortages.append(resource)
    return shortages


def _update_goals(world: WorldState, faction: Faction, config: "GameConfig") -> None:
    for settlement in world.settlements_of(faction.id):
        goals = {"Food": food_safe_level(settlement, config) * 2}
        step = config.upgrades.step_for(settlement.tier)
        if step is not None and settlement.population >= step.population * 0.8:
            for resource, amount in step.cost.items():
                goals[resource] = max(goals.get(resource, 0.0), amount)
        settlement.resource_goals = goals


def evaluate_stance(faction: Faction, world: WorldState, config: "GameConfig") -> None:
    """I set the faction stances from room to grow and how well fed the realm is."""
    settlements = world.settlements_of(faction.id)
    blackboard = faction.blackboard
    if not settlements:
        blackboard.stances = {"expand": 0.0, "exploit": 1.0}
        blackboard.critical_shortages = []
        return

    room = max(0.0, 1.0 - len(settlements) / max(1, config.ai.settlement_cap))
    fed = sum(1 for s in settlements if s.stockpile.get("Food", 0.0) >= food_safe_level(s, config))
    fed_share = fed / len(settlements)
    expand = room * fed_share
    exploit = 1.0 - expand / 2

    shortages = _critical_shortages(world, faction, config)
    if "Food" in shortages:
        expand, exploit = 0.0, 1.0

    blackboard.stances = {"expand": round(expand, 4), "exploit": round(exploit, 4)}
    blackboard.critical_shortages = shortages
    _update_goals(world, faction, config)
    log.debug("%s stance expand=%.2f exploit=%.2f shortages=%s", faction.name, expand, exploit, shortages)
