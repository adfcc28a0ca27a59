"""Quick card: canonical building registry shared by the governor, the controller and config resolution.

One entry per building key. The governor proposes ``BUILD_<KEY>`` tags derived from this table
and the controller maps them back through it, so a proposed building always has a cost entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from src.model.world_state import Settlement, WorldState

BUILD_PREFIX = "BUILD_"


@dataclass(frozen=True)
class BuildingType:
    key: str
    default_cost: Dict[str, float] = field(default_factory=dict)
    min_tier: int = 0
    # "center" sits on the settlement hex, "water_edge" needs a land hex touching Water,
    # "plains" and "any" need a free controlled hex
    placement: str = "center"
    # repeatable buildings go up once per free hex instead of once per settlement
    repeatable: bool = False

    @property
    def desire_tag(self) -> str:
        return BUILD_PREFIX + self.key.upper()


BUILDING_TYPES: Dict[str, BuildingType] = {
    building.key: building
    for building in (
        BuildingType("GathererHut", {"Timber": 50.0}, 0, "plains", repeatable=True),
        BuildingType("Granary", {"Timber": 100.0, "Stone": 50.0}, 0),
        BuildingType("Fishery", {"Timber": 80.0}, 0, "water_edge"),
        BuildingType("Smithy", {"Stone": 150.0, "Ore": 50.0}, 1),
        BuildingType("GuardPost", {"Timber": 100.0, "Stone": 20.0}, 0, "any", repeatable=True),
    )
}


_BY_TAG: Dict[str, BuildingType] = {building.desire_tag: building for building in BUILDING_TYPES.values()}


def building_for_desire(tag: str) -> Optional[BuildingType]:
    """Map a ``BUILD_*`` desire tag to its registry entry (None for unknown tags)."""
    return _BY_TAG.get(tag)


def desire_for_building(key: str) -> str:
    return BUILDING_TYPES[key].desire_tag


def is_build_desire(tag: str) -> bool:
    return tag.startswith(BUILD_PREFIX)


def free_building_hexes(world: "WorldState", settlement: "Settlement", terrain: Optional[str] = None) -> List[str]:
    """Controlled land hexes with no building on them, settlement hex first."""
    used = {b.hex_id for b in settlement.buildings}
    ordered = [settlement.hex_id] + [h for h in settlement.controlled_hex_ids if h != settlement.hex_id]
    free = []
    for hex_id in ordered:
        cell = world.hexes.get(hex_id)
        if cell is None or hex_id in used or cell.terrain == "Water":
            continue
        if terrain is not None and cell.terrain != terrain:
            continue
        free.append(hex_id)
    return free
