"""Builders for small hand-made worlds used across the test modules."""

from __future__ import annotations

from typing import Dict, Optional

from src.model.game_config import GameConfig, resolve_config
from src.model.hexgrid import Hex, spiral
from src.model.world_state import Faction, HexCell, Settlement, WorldState


def make_config(overrides: Optional[dict] = None) -> GameConfig:
    return resolve_config(overrides)


def make_world(width: int = 8, height: int = 8, terrain: str = "Plains", overrides: Optional[Dict[str, str]] = None) -> WorldState:
    """Axial rectangle q in [0, width), r in [0, height) of one terrain, with optional per-hex terrain."""
    world = WorldState(width=width, height=height)
    for q in range(width):
        for r in range(height):
            cell = HexCell(hex=Hex(q, r), terrain=terrain)
            if overrides and cell.id in overrides:
                cell.terrain = overrides[cell.id]
            world.add_hex(cell)
    return world


def add_faction(world: WorldState, faction_id: str = "f1", is_ai: bool = True) -> Faction:
    faction = Faction(id=faction_id, name=faction_id.upper(), is_ai=is_ai)
    world.add_faction(faction)
    return faction


def add_settlement(
    world: WorldState,
    faction: Faction,
    hex_id: str,
    population: float = 100.0,
    stockpile: Optional[Dict[str, float]] = None,
    radius: int = 1,
    settlement_id: Optional[str] = None,
    tier: int = 0,
) -> Settlement:
    center = world.hexes[hex_id].hex
    settlement = Settlement(
        id=settlement_id or world.next_id("settlement"),
        name=settlement_id or f"{faction.id}-{hex_id}",
        owner_id=faction.id,
        hex_id=hex_id,
        population=population,
        tier=tier,
        stockpile=dict(stockpile or {}),
        controlled_hex_ids=[],
    )
    world.add_settlement(settlement)
    for h in spiral(center, radius):
        world.claim_hex(settlement, h.id)
    return settlement


def run_agents(world: WorldState, config: GameConfig, ticks: int, until=None) -> int:
    """Advance movement and the caravan update for up to ``ticks`` ticks; returns ticks used."""
    from src.model.caravans import update_caravans
    from src.model.movement import update_movement

    for used in range(1, ticks + 1):
        world.tick += 1
        update_movement(world, config)
        update_caravans(world, config)
        if until is not None and until():
            return used
    return ticks
