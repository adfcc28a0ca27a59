"""Quick card: FactionAgent, the mesa agent that carries one faction's AI schedule and reporters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import mesa

from src.agents.mobile import Caravan
from src.model.world_state import Faction

if TYPE_CHECKING:
    from src.model.world_model import SettlementModel


class FactionAgent(mesa.Agent):
    """Faction card: one per faction; the AI controller reads and advances its schedule."""

    def __init__(self, model: "SettlementModel", faction: Faction) -> None:
        """Init cue: bind the faction record; the schedule starts unset until the first AI pass."""
        super().__init__(model=model)
        # Faction handle: the record lives in the world state, the agent only points at it.
        self.faction = faction
        # Schedule: tick of the last governance pass and ticks to wait for the next one.
        self.last_update_tick: Optional[int] = None
        self.next_interval: int = 0

    @property
    def faction_id(self) -> str:
        return self.faction.id

    def _settlements(self):
        return self.model.world.settlements_of(self.faction.id)

    # Reporter hooks for the DataCollector.

    @property
    def gold(self) -> float:
        return self.faction.gold

    @property
    def population(self) -> float:
        return sum(s.population for s in self._settlements())

    @property
    def settlement_count(self) -> int:
        return len(self._settlements())

    @property
    def caravan_count(self) -> int:
        return sum(
            1 for agent in self.model.world.agents.values() if isinstance(agent, Caravan) and agent.owner_id == self.faction.id
        )

    @property
    def open_jobs(self) -> int:
        return len(self.faction.job_pool) if self.faction.job_pool is not None else 0

    def due(self, tick: int) -> bool:
        """I am due when I never ran, or when my interval has elapsed."""
        if self.last_update_tick is None:
            return True
        return tick - self.last_update_tick >= self.next_interval
