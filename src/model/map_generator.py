"""Quick card: seed-driven terrain generation plus start/expansion site search and world setup."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Iterable, List, Optional, Set

from src.model.hexgrid import distance, offset_to_axial, spiral
from src.model.world_state import Faction, HexCell, Settlement, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)

START_RANGE = 3
EXPANSION_SPACING = 2


def pick_terrain(rng: random.Random, config: "GameConfig") -> str:
    roll = rng.random()
    for terrain, cut in config.world.terrain_thresholds:
        if roll < cut:
            return terrain
    return config.world.terrain_thresholds[-1][0]


def generate_terrain(world: WorldState, config: "GameConfig", rng: random.Random) -> None:
    """Fill ``world`` with a width x height odd-r grid converted to axial coordinates."""
    for row in range(world.height):
        for col in range(world.width):
            world.add_hex(HexCell(hex=offset_to_axial(col, row), terrain=pick_terrain(rng, config)))


def _catchment_yield(world: WorldState, cell: HexCell, config: "GameConfig", resource: str) -> float:
    total = 0.0
    for h in spiral(cell.hex, 1):
        neighbour = world.hexes.get(h.id)
        if neighbour is not None:
            total += config.yields.get(neighbour.terrain, {}).get(resource, 0.0)
    return total


def _fits(world: WorldState, cell: HexCell, radius: int) -> bool:
    return all(h.id in world.hexes for h in spiral(cell.hex, radius))


def _too_close(world: WorldState, cell: HexCell, min_gap: int) -> bool:
    for settlement in world.settlements.values():
        other = world.hexes.get(settlement.hex_id)
        if other is not None and distance(cell.hex, other.hex) <= min_gap:
            return True
    return False


def find_starting_location(world: WorldState, config: "GameConfig", rng: random.Random) -> Optional[HexCell]:
    """Site a capital: room for a city radius, spaced from others, food/timber/stone nearby."""
    candidates = list(world.hexes.values())
    rng.shuffle(candidates)
    required_food = config.yields.get("Plains", {}).get("Food", 1.0) * 3
    for cell in candidates:
        if cell.terrain == "Water" or cell.owner_id is not None:
            continue
        if not _fits(world, cell, START_RANGE) or _too_close(world, cell, START_RANGE):
            continue
        if (
            _catchment_yield(world, cell, config, "Food") >= required_food
            and _catchment_yield(world, cell, config, "Timber") > 0
            and _catchment_yield(world, cell, config, "Stone") > 0
        ):
            return cell
    return None


def _targeted_hexes(world: WorldState) -> Set[str]:
    targeted: Set[str] = set()
    for faction in world.factions.values():
        targeted.update(faction.blackboard.targeted_hex_ids)
    return targeted


def find_expansion_location(
    world: WorldState,
    config: "GameConfig",
    rng: random.Random,
    faction: Optional[Faction] = None,
) -> Optional[HexCell]:
    """Pick a random valid village site that nobody owns, occupies or is already walking to."""
    required_food = config.yields.get("Plains", {}).get("Food", 1.0) * 1.5
    taken = _targeted_hexes(world)
    occupied = {s.hex_id for s in world.settlements.values()}
    candidates: List[HexCell] = []
    for cell in world.hexes.values():
        if cell.terrain == "Water" or cell.id in occupied or cell.id in taken:
            continue
        if cell.owner_id is not None and (faction is None or cell.owner_id != faction.id):
            continue
        if not _fits(world, cell, 1) or _too_close(world, cell, EXPANSION_SPACING):
            continue
        if _catchment_yield(world, cell, config, "Food") >= required_food:
            candidates.append(cell)
    if not candidates:
        return None
    return rng.choice(candidates)


def found_settlement(
    world: WorldState,
    faction: Faction,
    cell: HexCell,
    config: "GameConfig",
    population: float,
    stockpile: dict,
    radius: int,
    name: Optional[str] = None,
) -> Settlement:
    """Create a settlement on ``cell`` and claim every free hex within ``radius``."""
    settlement_id = world.next_id("settlement")
    settlement = Settlement(
        id=settlement_id,
        name=name or f"{faction.name} {settlement_id.split('_')[-1]}",
        owner_id=faction.id,
        hex_id=cell.id,
        population=population,
        stockpile={resource: float(amount) for resource, amount in stockpile.items()},
        controlled_hex_ids=[],
        available_villagers=1,
    )
    world.add_settlement(settlement)
    for h in spiral(cell.hex, radius):
        world.claim_hex(settlement, h.id)
    return settlement


def build_world(config: "GameConfig", rng: random.Random, faction_ids: Optional[Iterable[str]] = None) -> WorldState:
    """Setup note: terrain first, then one capital per faction in creation order."""
    world = WorldState(width=config.world.width, height=config.world.height)
    generate_terrain(world, config, rng)
    ids = list(faction_ids) if faction_ids is not None else [f"faction_{i + 1}" for i in range(config.world.faction_count)]
    colors = config.world.faction_colors or ["#888888"]
    for idx, faction_id in enumerate(ids):
        faction = Faction(id=faction_id, name=f"Faction {idx + 1}", color=colors[idx % len(colors)])
        world.add_faction(faction)
        cell = find_starting_location(world, config, rng)
        if cell is None:
            log.warning("No starting location left for %s", faction_id)
            continue
        capital = found_settlement(
            world,
            faction,
            cell,
            config,
            population=config.world.starting_population,
            stockpile=config.world.starting_stockpile,
            radius=config.world.starting_territory_radius,
            name=f"{faction.name} Capital",
        )
        capital.available_villagers = config.villagers.base_villagers
    return world
