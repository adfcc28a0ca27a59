"""Quick card: the shared mutable world store (hexes, settlements, factions, agents).

Systems receive the ``WorldState`` for the duration of their call and look entities up by id
each time; nothing keeps references to settlements or agents across ticks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Type, TypeVar

from src.model.hexgrid import Hex
from src.model.job_pool import JobPool

if TYPE_CHECKING:
    from src.agents.mobile import MobileAgent

RESOURCES: tuple[str, ...] = ("Food", "Timber", "Stone", "Ore", "Tools", "Gold")
TERRAINS: tuple[str, ...] = ("Plains", "Forest", "Hills", "Mountains", "Water")

# Desire vocabulary; BUILD_* tags come from the building registry.
DESIRE_UPGRADE = "UPGRADE"
DESIRE_SETTLER = "SETTLER"
DESIRE_TRADE_CARAVAN = "TRADE_CARAVAN"
DESIRE_RECRUIT_VILLAGER = "RECRUIT_VILLAGER"
DESIRE_REPLENISH = "REPLENISH"
DESIRE_REQUEST_FREIGHT = "REQUEST_FREIGHT"

ROLES: tuple[str, ...] = ("GENERAL", "LUMBER", "MINING", "GRANARY")

A = TypeVar("A")


def empty_stockpile() -> Dict[str, float]:
    return {resource: 0.0 for resource in RESOURCES}


@dataclass
class HexCell:
    hex: Hex
    terrain: str
    owner_id: Optional[str] = None
    resources: Dict[str, float] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.hex.id

    def total_resources(self) -> float:
        return sum(amount for amount in self.resources.values() if amount > 0)


@dataclass
class Building:
    type: str
    hex_id: str
    integrity: float = 100.0


@dataclass
class SettlementAIState:
    survive_mode: bool = False
    last_decisions: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class Settlement:
    """State card: one settlement's population, stockpile, territory and AI flags."""

    id: str
    name: str
    owner_id: str
    hex_id: str
    population: float
    tier: int = 0
    stockpile: Dict[str, float] = field(default_factory=empty_stockpile)
    integrity: float = 100.0
    controlled_hex_ids: List[str] = field(default_factory=list)
    buildings: List[Building] = field(default_factory=list)
    working_pop: float = 0.0
    job_cap: float = 0.0
    available_villagers: int = 0
    resource_change: Dict[str, float] = field(default_factory=dict)
    pop_history: List[float] = field(default_factory=list)
    last_growth: float = 0.0
    role: str = "GENERAL"
    resource_goals: Dict[str, float] = field(default_factory=dict)
    ai_state: SettlementAIState = field(default_factory=SettlementAIState)

    def __post_init__(self) -> None:
        for resource in RESOURCES:
            self.stockpile.setdefault(resource, 0.0)

    def has_building(self, key: str) -> bool:
        return any(building.type == key for building in self.buildings)

    def can_afford(self, cost: Dict[str, float]) -> bool:
        return all(self.stockpile.get(resource, 0.0) >= amount for resource, amount in cost.items())

    def pay(self, cost: Dict[str, float]) -> bool:
        """Deduct ``cost`` only when every resource is covered; no partial payment."""
        if not self.can_afford(cost):
            return False
        for resource, amount in cost.items():
            self.stockpile[resource] -= amount
        return True

    def deposit(self, cargo: Dict[str, float]) -> float:
        delivered = 0.0
        for resource, amount in cargo.items():
            if amount > 0:
                self.stockpile[resource] = self.stockpile.get(resource, 0.0) + amount
                delivered += amount
        return delivered


@dataclass
class DesireTicket:
    settlement_id: str
    type: str
    score: float
    needs: List[str] = field(default_factory=list)


@dataclass
class Blackboard:
    stances: Dict[str, float] = field(default_factory=lambda: {"expand": 0.5, "exploit": 0.5})
    desires: List[DesireTicket] = field(default_factory=list)
    critical_shortages: List[str] = field(default_factory=list)
    targeted_hex_ids: List[str] = field(default_factory=list)


@dataclass
class FactionStats:
    settlers_spawned: int = 0
    settlements_founded: int = 0
    villagers_recruited: int = 0
    buildings_built: int = 0
    upgrades: int = 0
    total_trades: int = 0
    trade_volume: Dict[str, float] = field(default_factory=dict)


@dataclass
class Faction:
    id: str
    name: str
    color: str = "#888888"
    gold: float = 0.0
    is_ai: bool = True
    blackboard: Blackboard = field(default_factory=Blackboard)
    job_pool: Optional[JobPool] = None
    stats: FactionStats = field(default_factory=FactionStats)

    def ensure_job_pool(self) -> JobPool:
        if self.job_pool is None:
            self.job_pool = JobPool(self.id)
        return self.job_pool


@dataclass
class WorldState:
    width: int = 0
    height: int = 0
    tick: int = 0
    hexes: Dict[str, HexCell] = field(default_factory=dict)
    settlements: Dict[str, Settlement] = field(default_factory=dict)
    agents: Dict[str, "MobileAgent"] = field(default_factory=dict)
    factions: Dict[str, Faction] = field(default_factory=dict)
    chronicle: List[Dict[str, Any]] = field(default_factory=list)
    id_counter: int = 0

    def next_id(self, prefix: str) -> str:
        """Hand out sequential ids so seeded runs produce identical entity names."""
        self.id_counter += 1
        return f"{prefix}_{self.id_counter}"

    # --- hexes ---

    def add_hex(self, cell: HexCell) -> None:
        self.hexes[cell.id] = cell

    def get_hex(self, hex_id: str) -> Optional[HexCell]:
        return self.hexes.get(hex_id)

    def controller_of(self, hex_id: str) -> Optional[Settlement]:
        for settlement in self.settlements.values():
            if hex_id in settlement.controlled_hex_ids:
                return settlement
        return None

    def claim_hex(self, settlement: Settlement, hex_id: str) -> bool:
        """First claim wins: never take a hex owned by another faction or held by another settlement."""
        cell = self.hexes.get(hex_id)
        if cell is None:
            return False
        if cell.owner_id is not None and cell.owner_id != settlement.owner_id:
            return False
        holder = self.controller_of(hex_id)
        if holder is not None and holder.id != settlement.id:
            return False
        cell.owner_id = settlement.owner_id
        if hex_id not in settlement.controlled_hex_ids:
            settlement.controlled_hex_ids.append(hex_id)
        return True

    # --- settlements & factions ---

    def add_faction(self, faction: Faction) -> None:
        self.factions[faction.id] = faction

    def add_settlement(self, settlement: Settlement) -> None:
        if settlement.hex_id not in self.hexes:
            raise ValueError(f"Settlement {settlement.id} references missing hex {settlement.hex_id}")
        missing = [hex_id for hex_id in settlement.controlled_hex_ids if hex_id not in self.hexes]
        if missing:
            raise ValueError(f"Settlement {settlement.id} controls missing hexes {missing}")
        if settlement.hex_id not in settlement.controlled_hex_ids:
            settlement.controlled_hex_ids.insert(0, settlement.hex_id)
        self.settlements[settlement.id] = settlement

    def remove_settlement(self, settlement_id: str) -> Optional[Settlement]:
        settlement = self.settlements.pop(settlement_id, None)
        if settlement is None:
            return None
        for hex_id in settlement.controlled_hex_ids:
            cell = self.hexes.get(hex_id)
            if cell is not None and cell.owner_id == settlement.owner_id:
                cell.owner_id = None
        return settlement

    def settlements_of(self, faction_id: str) -> List[Settlement]:
        return [s for s in self.settlements.values() if s.owner_id == faction_id]

    def settlement_at(self, hex_id: str) -> Optional[Settlement]:
        for settlement in self.settlements.values():
            if settlement.hex_id == hex_id:
                return settlement
        return None

    # --- agents ---

    def add_agent(self, agent: "MobileAgent") -> None:
        self.agents[agent.id] = agent

    def remove_agent(self, agent_id: str) -> None:
        self.agents.pop(agent_id, None)

    def agents_of_type(self, kind: Type[A]) -> List[A]:
        return [agent for agent in self.agents.values() if isinstance(agent, kind)]

    # --- chronicle ---

    def record_event(self, event_type: str, **data: Any) -> None:
        entry: Dict[str, Any] = {"event_type": event_type, "tick": self.tick}
        entry.update(data)
        self.chronicle.append(entry)


def total_stock(settlements: Iterable[Settlement], resource: str) -> float:
    return sum(s.stockpile.get(resource, 0.0) for s in settlements)
