"""Quick card: tier upgrades (Village -> Town -> City) and first-claim territory growth."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from src.model.hexgrid import spiral
from src.model.world_state import Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)

TIER_NAMES = ("Village", "Town", "City")


def plains_count(world: WorldState, settlement: Settlement) -> int:
    return sum(
        1
        for hex_id in settlement.controlled_hex_ids
        if hex_id in world.hexes and world.hexes[hex_id].terrain == "Plains"
    )


def can_upgrade(world: WorldState, settlement: Settlement, config: "GameConfig") -> bool:
    step = config.upgrades.step_for(settlement.tier)
    if step is None:
        return False
    if settlement.population < step.population:
        return False
    if plains_count(world, settlement) < step.plains_count:
        return False
    return settlement.can_afford(step.cost)


def expand_territory(world: WorldState, settlement: Settlement, radius: int) -> List[str]:
    """Claim every free hex within ``radius``; hexes held by anyone else stay theirs."""
    center = world.hexes[settlement.hex_id].hex
    claimed = []
    for h in spiral(center, radius):
        if h.id in settlement.controlled_hex_ids:
            continue
        if world.claim_hex(settlement, h.id):
            claimed.append(h.id)
    return claimed


def try_upgrade(world: WorldState, settlement: Settlement, config: "GameConfig") -> bool:
    """Advance one tier when population, plains and every cost are met; otherwise change nothing."""
    if not can_upgrade(world, settlement, config):
        return False
    step = config.upgrades.step_for(settlement.tier)
    settlement.pay(step.cost)
    settlement.tier += 1
    claimed = expand_territory(world, settlement, step.territory_radius)
    faction = world.factions.get(settlement.owner_id)
    if faction is not None:
        faction.stats.upgrades += 1
    log.info("%s upgraded to %s (+%d hexes)", settlement.name, TIER_NAMES[settlement.tier], len(claimed))
    world.record_event(
        "upgrade",
        settlement=settlement.id,
        owner=settlement.owner_id,
        tier=settlement.tier,
        claimed_hexes=len(claimed),
    )
    return True


def upgrade_step(world: WorldState, config: "GameConfig") -> None:
    """Non-AI factions upgrade as soon as they can; AI factions go through their desires."""
    for settlement in list(world.settlements.values()):
        faction = world.factions.get(settlement.owner_id)
        if faction is not None and faction.is_ai:
            continue
        try_upgrade(world, settlement, config)
