"""Quick card: per-faction AI scheduler (stagger, jitter, shuffled order) and the governance pass.

The stance evaluator, planner and expansion finder are injected so tests can swap them for
stubs; the defaults are the project's own sovereign, planner and map search.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Callable, List, Optional

from src.agents.faction_agent import FactionAgent
from src.model.desires import ExpansionFinder, resolve_instant_desires
from src.model.governor import evaluate_settlement, update_influence_flags
from src.model.job_pool import JobPool
from src.model.map_generator import find_expansion_location
from src.model.planner import plan_jobs
from src.model.sovereign import evaluate_stance
from src.model.world_state import Faction, WorldState

if TYPE_CHECKING:
    from src.model.game_config import GameConfig
    from src.model.world_model import SettlementModel

log = logging.getLogger(__name__)

StanceEvaluator = Callable[[Faction, WorldState, "GameConfig"], None]
Planner = Callable[[Faction, JobPool, WorldState, "GameConfig"], object]


class AIController:
    """Scheduler card: decide which factions think this tick, then run their governance pass."""

    def __init__(
        self,
        stance_evaluator: Optional[StanceEvaluator] = None,
        planner: Optional[Planner] = None,
        expansion_finder: Optional[ExpansionFinder] = None,
    ) -> None:
        self.stance_evaluator = stance_evaluator or evaluate_stance
        self.planner = planner or plan_jobs
        self.expansion_finder = expansion_finder or find_expansion_location

    def update(self, model: "SettlementModel") -> List[str]:
        """Run every due AI faction once, in a fresh shuffled order. Returns the faction ids processed."""
        world = model.world
        ai = model.config.ai
        rng: random.Random = model.random
        processed = []
        for agent in model.agents_by_type[FactionAgent].shuffle():
            if not agent.faction.is_ai or not agent.due(world.tick):
                continue
            if agent.last_update_tick is None:
                # First pass runs now; the stagger spreads the following ones apart
                agent.next_interval = ai.check_interval + rng.randint(0, ai.stagger_max)
            else:
                agent.next_interval = max(1, ai.check_interval + rng.randint(-ai.interval_jitter, ai.interval_jitter))
            agent.last_update_tick = world.tick
            self.process_faction(agent)
            processed.append(agent.faction_id)
        return processed

    def process_faction(self, agent: FactionAgent) -> List[str]:
        """Stance, plan, score every settlement, refresh survival flags, then resolve instant desires."""
        model = agent.model
        world = model.world
        config = model.config
        faction = agent.faction
        settlements = world.settlements_of(faction.id)

        self.stance_evaluator(faction, world, config)
        pool = faction.ensure_job_pool()
        self.planner(faction, pool, world, config)

        faction.blackboard.desires = []
        for settlement in settlements:
            settlement.ai_state.last_decisions["controller"] = []
            evaluate_settlement(settlement, faction, world, config)
        for settlement in settlements:
            update_influence_flags(settlement, config)

        done = resolve_instant_desires(world, faction, config, model.random, self.expansion_finder)
        log.debug(
            "tick %d %s: %d desires, %d jobs, actions=%s",
            world.tick,
            faction.name,
            len(faction.blackboard.desires),
            len(pool),
            done,
        )
        return done
