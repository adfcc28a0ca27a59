"""Quick card: pure trade queries (levels, shortages, best seller/buyer by value over distance).

Nothing here mutates the world; the caravan system turns a ``TradeRoute`` into a dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from src.model.hexgrid import distance
from src.model.world_state import Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig


@dataclass
class TradeRoute:
    partner_id: str
    resource: str
    amount: float
    value: float
    distance: int
    score: float


def consumption(settlement: Settlement, config: "GameConfig") -> float:
    return settlement.population * config.costs.base_consume


def food_safe_level(settlement: Settlement, config: "GameConfig") -> float:
    """Panic line for Food: the larger of the flat floor and ``survive_ticks`` of consumption."""
    survival = config.ai.survival
    return max(survival.survive_food, consumption(settlement, config) * survival.survive_ticks)


def comfort_level(settlement: Settlement, resource: str, config: "GameConfig") -> float:
    """Stock a settlement keeps before it will sell to a neighbour."""
    if resource == "Food":
        return consumption(settlement, config) * config.trade.neighbor_surplus_multi
    return config.trade.neighbor_surplus_flat


def export_level(settlement: Settlement, resource: str, config: "GameConfig") -> float:
    """Stock above which a settlement actively looks for buyers."""
    if resource == "Food":
        return max(comfort_level(settlement, resource, config), consumption(settlement, config) * config.trade.surplus_threshold_multi)
    return config.trade.neighbor_surplus_flat


def settlement_shortages(world: WorldState, settlement: Settlement, config: "GameConfig") -> List[str]:
    """Resources this settlement is short of: Food below the panic line, upgrade inputs once the
    population is close to the next tier."""
    shortages: List[str] = []
    if settlement.stockpile.get("Food", 0.0) < food_safe_level(settlement, config):
        shortages.append("Food")
    step = config.upgrades.step_for(settlement.tier)
    if step is not None and settlement.population >= step.population * 0.8:
        for resource, amount in step.cost.items():
            if settlement.stockpile.get(resource, 0.0) < amount and resource not in shortages:
                shortages.append(resource)
    return shortages


def _hex_distance(world: WorldState, a: Settlement, b: Settlement) -> int:
    return distance(world.hexes[a.hex_id].hex, world.hexes[b.hex_id].hex)


def find_best_seller(
    world: WorldState,
    config: "GameConfig",
    buyer: Settlement,
    resource: str,
    budget: float,
) -> Optional[TradeRoute]:
    """Best settlement to buy ``resource`` from with ``budget`` gold, or None if nobody clears ROI."""
    price = config.trade.gold_per_resource
    affordable = budget / price
    best: Optional[TradeRoute] = None
    for seller in world.settlements.values():
        if seller.id == buyer.id:
            continue
        available = seller.stockpile.get(resource, 0.0) - comfort_level(seller, resource, config)
        amount = min(config.trade.capacity, config.trade.buy_cap, available, affordable)
        if amount <= 0:
            continue
        value = amount * price
        if value < config.logistics.trade_roi_threshold:
            continue
        dist = _hex_distance(world, buyer, seller)
        score = value / max(1, dist)
        if best is None or score > best.score:
            best = TradeRoute(seller.id, resource, amount, value, dist, score)
    return best


def find_best_buyer(
    world: WorldState,
    config: "GameConfig",
    seller: Settlement,
    resource: str,
    available: float,
) -> Optional[TradeRoute]:
    """Best settlement to sell ``available`` units of ``resource`` to, or None if nobody clears ROI."""
    price = config.trade.gold_per_resource
    best: Optional[TradeRoute] = None
    for buyer in world.settlements.values():
        if buyer.id == seller.id:
            continue
        need = comfort_level(buyer, resource, config) - buyer.stockpile.get(resource, 0.0)
        affordable = buyer.stockpile.get("Gold", 0.0) / price
        amount = min(config.trade.capacity, config.trade.buy_cap, available, need, affordable)
        if amount <= 0:
            continue
        value = amount * price
        if value < config.logistics.trade_roi_threshold:
            continue
        dist = _hex_distance(world, seller, buyer)
        score = value / max(1, dist)
        if best is None or score > best.score:
            best = TradeRoute(buyer.id, resource, amount, value, dist, score)
    return best
