"""Quick card: mobile agent records (Caravan, Settler, Villager) and the caravan mode table.

Caravan mode changes go through the ``begin_*``/``go_idle`` transitions, each of which checks
the resulting (status, activity, mission, trade_state) tuple against ``VALID_CARAVAN_MODES``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, List, Optional, Tuple

from src.model.hexgrid import Hex


class AgentStatus(str, Enum):
    IDLE = "IDLE"
    BUSY = "BUSY"
    RETURNING = "RETURNING"


class Activity(str, Enum):
    IDLE = "IDLE"
    MOVING = "MOVING"
    LOADING = "LOADING"
    UNLOADING = "UNLOADING"


class Mission(str, Enum):
    IDLE = "IDLE"
    TRADE = "TRADE"
    LOGISTICS = "LOGISTICS"


class TradeState(str, Enum):
    OUTBOUND = "OUTBOUND"
    INBOUND = "INBOUND"


CaravanMode = Tuple[AgentStatus, Activity, Mission, Optional[TradeState]]


def _mission_modes() -> FrozenSet[CaravanMode]:
    modes = {
        (AgentStatus.IDLE, Activity.IDLE, Mission.IDLE, None),
        # freshly spawned, mission not yet assigned
        (AgentStatus.BUSY, Activity.MOVING, Mission.IDLE, None),
        # sent home without a mission (stuck fallback, stray idle caravan)
        (AgentStatus.RETURNING, Activity.MOVING, Mission.IDLE, TradeState.INBOUND),
        (AgentStatus.RETURNING, Activity.UNLOADING, Mission.IDLE, TradeState.INBOUND),
    }
    for mission in (Mission.TRADE, Mission.LOGISTICS):
        modes.add((AgentStatus.BUSY, Activity.MOVING, mission, TradeState.OUTBOUND))
        modes.add((AgentStatus.BUSY, Activity.LOADING, mission, TradeState.OUTBOUND))
        modes.add((AgentStatus.RETURNING, Activity.MOVING, mission, TradeState.INBOUND))
        modes.add((AgentStatus.RETURNING, Activity.UNLOADING, mission, TradeState.INBOUND))
    return frozenset(modes)


VALID_CARAVAN_MODES: FrozenSet[CaravanMode] = _mission_modes()


@dataclass
class MobileAgent:
    id: str
    owner_id: str
    position: Hex
    home_id: Optional[str] = None
    target: Optional[Hex] = None
    path: List[Hex] = field(default_factory=list)
    movement_progress: float = 0.0
    cargo: Dict[str, float] = field(default_factory=dict)
    integrity: float = 100.0
    status: AgentStatus = AgentStatus.BUSY
    activity: Activity = Activity.MOVING
    wait_ticks: int = 0
    stuck_ticks: int = 0

    kind: ClassVar[str] = "Agent"

    def at(self, hex_id: str) -> bool:
        return self.position.id == hex_id

    def cargo_total(self) -> float:
        return sum(amount for amount in self.cargo.values() if amount > 0)

    def take_cargo(self) -> Dict[str, float]:
        """Empty the cargo hold and return what was in it."""
        unloaded = {resource: amount for resource, amount in self.cargo.items() if amount > 0}
        self.cargo = {}
        return unloaded

    def set_route(self, path: List[Hex], target: Hex) -> None:
        self.path = list(path)
        self.target = target
        self.movement_progress = 0.0


@dataclass
class Caravan(MobileAgent):
    mission: Mission = Mission.IDLE
    trade_state: Optional[TradeState] = None
    mission_hex_id: Optional[str] = None
    target_settlement_id: Optional[str] = None
    trade_resource: Optional[str] = None
    trade_direction: str = "BUY"
    job_id: Optional[str] = None
    claimed_volume: float = 0.0

    kind: ClassVar[str] = "Caravan"

    def __post_init__(self) -> None:
        self._check_mode(self.status, self.activity, self.mission, self.trade_state)

    @property
    def mode(self) -> CaravanMode:
        return (self.status, self.activity, self.mission, self.trade_state)

    @staticmethod
    def _check_mode(status: AgentStatus, activity: Activity, mission: Mission, trade_state: Optional[TradeState]) -> None:
        if (status, activity, mission, trade_state) not in VALID_CARAVAN_MODES:
            raise ValueError(
                f"Illegal caravan mode status={status} activity={activity} mission={mission} trade_state={trade_state}"
            )

    def _set_mode(
        self,
        status: AgentStatus,
        activity: Activity,
        mission: Mission,
        trade_state: Optional[TradeState],
    ) -> None:
        self._check_mode(status, activity, mission, trade_state)
        self.status = status
        self.activity = activity
        self.mission = mission
        self.trade_state = trade_state

    def begin_outbound(self, mission: Mission) -> None:
        self._set_mode(AgentStatus.BUSY, Activity.MOVING, mission, TradeState.OUTBOUND)

    def begin_loading(self, wait_ticks: int) -> None:
        self._set_mode(AgentStatus.BUSY, Activity.LOADING, self.mission, TradeState.OUTBOUND)
        self.wait_ticks = wait_ticks

    def begin_return(self) -> None:
        self._set_mode(AgentStatus.RETURNING, Activity.MOVING, self.mission, TradeState.INBOUND)

    def begin_unloading(self, wait_ticks: int) -> None:
        self._set_mode(AgentStatus.RETURNING, Activity.UNLOADING, self.mission, TradeState.INBOUND)
        self.wait_ticks = wait_ticks

    def go_idle(self) -> None:
        self._set_mode(AgentStatus.IDLE, Activity.IDLE, Mission.IDLE, None)
        self.path = []
        self.target = None
        self.wait_ticks = 0
        self.stuck_ticks = 0
        self.mission_hex_id = None
        self.clear_trade()

    def clear_trade(self) -> None:
        self.target_settlement_id = None
        self.trade_resource = None
        self.trade_direction = "BUY"

    def release_claim(self) -> Tuple[Optional[str], float]:
        """Detach the job claim and hand back (job_id, claimed_volume) for the pool."""
        claim = (self.job_id, self.claimed_volume)
        self.job_id = None
        self.claimed_volume = 0.0
        return claim


@dataclass
class Settler(MobileAgent):
    destination_id: Optional[str] = None

    kind: ClassVar[str] = "Settler"


@dataclass
class Villager(MobileAgent):
    gather_target: Optional[Hex] = None

    kind: ClassVar[str] = "Villager"
