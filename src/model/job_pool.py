"""Quick card: per-faction job pool plus the blackboard dispatcher (bid, claim, release, progress).

Claim bookkeeping is the only transactional structure in the simulation: every successful
``claim_job`` must be matched by ``report_progress`` and/or ``release_assignment`` for the same
volume so ``assigned_volume`` never drifts above ``target_volume``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from src.model.hexgrid import distance, parse_hex_id

if TYPE_CHECKING:
    from src.model.game_config import GameConfig
    from src.model.world_state import Faction, WorldState

log = logging.getLogger(__name__)

JOB_COLLECT = "COLLECT"
JOB_TRANSFER = "TRANSFER"
JOB_TRADE = "TRADE"

STATUS_OPEN = "OPEN"
STATUS_SATURATED = "SATURATED"
STATUS_COMPLETED = "COMPLETED"

URGENCY_LOW = "LOW"
URGENCY_MEDIUM = "MEDIUM"
URGENCY_HIGH = "HIGH"

EPSILON = 1e-9


def urgency_for(score: float) -> str:
    if score > 0.8:
        return URGENCY_HIGH
    if score > 0.5:
        return URGENCY_MEDIUM
    return URGENCY_LOW


@dataclass
class Job:
    job_id: str
    faction_id: str
    source_id: str
    job_type: str
    priority: float = 1.0
    urgency: str = URGENCY_MEDIUM
    target_volume: float = 0.0
    assigned_volume: float = 0.0
    status: str = STATUS_OPEN
    target_hex_id: Optional[str] = None
    resource: Optional[str] = None
    partner_id: Optional[str] = None
    claimants: Dict[str, float] = field(default_factory=dict)

    @property
    def remaining(self) -> float:
        return max(0.0, self.target_volume - self.assigned_volume)

    @property
    def saturation(self) -> float:
        if self.target_volume <= 0:
            return 1.0
        return min(1.0, self.assigned_volume / self.target_volume)

    def refresh_status(self) -> None:
        if self.status == STATUS_COMPLETED:
            return
        self.status = STATUS_SATURATED if self.assigned_volume >= self.target_volume - EPSILON else STATUS_OPEN


class JobPool:
    """Registry of outstanding jobs for one faction, keyed by job id in insertion order."""

    def __init__(self, faction_id: str) -> None:
        self.faction_id = faction_id
        self._jobs: Dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def jobs(self) -> List[Job]:
        return list(self._jobs.values())

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def add_job(self, job: Job) -> Job:
        """Upsert: an existing job keeps its claims and only takes the refreshed demand fields."""
        existing = self._jobs.get(job.job_id)
        if existing is None:
            job.refresh_status()
            self._jobs[job.job_id] = job
            return job
        existing.priority = job.priority
        existing.urgency = job.urgency
        existing.target_hex_id = job.target_hex_id
        existing.resource = job.resource
        existing.partner_id = job.partner_id
        # Demand may shrink but never below what agents already committed
        existing.target_volume = max(job.target_volume, existing.assigned_volume)
        existing.refresh_status()
        return existing

    def remove_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.pop(job_id, None)

    def cleanup(self) -> None:
        for job_id in [job_id for job_id, job in self._jobs.items() if job.status == STATUS_COMPLETED]:
            del self._jobs[job_id]

    def prune(self, keep_ids: Iterable[str]) -> List[str]:
        """Drop unclaimed jobs that the planner no longer refreshes."""
        keep = set(keep_ids)
        stale = [job_id for job_id, job in self._jobs.items() if job_id not in keep and not job.claimants]
        for job_id in stale:
            del self._jobs[job_id]
        return stale


def _agent_capacity(agent: Any, config: "GameConfig") -> float:
    if getattr(agent, "kind", "") == "Villager":
        return config.villagers.capacity
    return config.trade.capacity


def calculate_bid(agent: Any, job: Job, config: "GameConfig") -> float:
    """Bid card: priority x urgency x free share x distance falloff x how much of the hold it fills."""
    if job.status != STATUS_OPEN or job.remaining <= EPSILON:
        return 0.0
    urgency_weight = config.logistics.urgency_weights.get(job.urgency, 1.0)
    dist = 0
    if job.target_hex_id is not None:
        dist = distance(agent.position, parse_hex_id(job.target_hex_id))
    distance_factor = 1.0 / max(1.0, dist * config.costs.base_movement)
    fill_factor = min(1.0, job.remaining / _agent_capacity(agent, config))
    return job.priority * urgency_weight * (1.0 - job.saturation) * distance_factor * fill_factor


def get_top_available_jobs(
    agent: Any,
    faction: "Faction",
    world: "WorldState",
    config: "GameConfig",
    n: Optional[int] = None,
) -> List[Job]:
    """Return up to ``n`` open jobs for ``agent`` ranked by bid (best first)."""
    pool = faction.job_pool
    if pool is None:
        return []
    limit = config.logistics.job_poll_limit if n is None else n
    scored = []
    for job in pool.jobs():
        if job.status != STATUS_OPEN:
            continue
        bid = calculate_bid(agent, job, config)
        if bid > 0:
            scored.append((bid, job))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [job for _, job in scored[:limit]]


def claim_job(faction: "Faction", agent: Any, job: Job, capacity_limit: float) -> bool:
    """Commit ``capacity_limit`` of ``agent`` to ``job``; refuse anything that would over-commit it."""
    pool = faction.job_pool
    if pool is None:
        return False
    current = pool.get_job(job.job_id)
    if current is None or current.status != STATUS_OPEN:
        return False
    if getattr(agent, "job_id", None) is not None:
        return False
    if capacity_limit <= 0 or capacity_limit > current.remaining + EPSILON:
        return False
    current.assigned_volume += capacity_limit
    current.claimants[agent.id] = current.claimants.get(agent.id, 0.0) + capacity_limit
    current.refresh_status()
    if hasattr(agent, "job_id"):
        agent.job_id = current.job_id
        agent.claimed_volume = capacity_limit
    log.debug("%s claimed %.1f on %s", agent.id, capacity_limit, current.job_id)
    return True


def _reduce_claim(job: Job, amount: float, agent_id: Optional[str]) -> float:
    if agent_id is None and job.claimants:
        if len(job.claimants) > 1:
            raise ValueError(f"job {job.job_id} has several claimants; name the agent releasing it")
        agent_id = next(iter(job.claimants))
    if agent_id is not None:
        held = job.claimants.get(agent_id, 0.0)
        amount = min(amount, held)
        remaining = held - amount
        if remaining > EPSILON:
            job.claimants[agent_id] = remaining
        else:
            job.claimants.pop(agent_id, None)
    amount = min(amount, job.assigned_volume)
    job.assigned_volume = max(0.0, job.assigned_volume - amount)
    return amount


def release_assignment(faction: "Faction", job_id: str, capacity: float, agent_id: Optional[str] = None) -> float:
    """Undo (part of) a claim; a saturated job reopens immediately. Returns the volume released.

    ``agent_id`` may be left out only while the job has a single claimant.
    """
    pool = faction.job_pool
    if pool is None or capacity <= 0:
        return 0.0
    job = pool.get_job(job_id)
    if job is None:
        return 0.0
    released = _reduce_claim(job, capacity, agent_id)
    job.refresh_status()
    log.debug("released %.1f on %s", released, job_id)
    return released


def report_progress(
    faction: "Faction",
    job_id: str,
    amount_delivered: float,
    agent_id: Optional[str] = None,
) -> Optional[Job]:
    """Book a delivery: shrink the need and the matching claim, drop the job once satisfied."""
    pool = faction.job_pool
    if pool is None:
        return None
    job = pool.get_job(job_id)
    if job is None:
        return None
    delivered = max(0.0, amount_delivered)
    job.target_volume = max(0.0, job.target_volume - delivered)
    _reduce_claim(job, delivered, agent_id)
    if job.target_volume <= EPSILON:
        job.status = STATUS_COMPLETED
        pool.remove_job(job_id)
        log.debug("job %s completed", job_id)
        return job
    # Over-delivery can eat into another claimant's share; their commitment still stands
    if job.assigned_volume > job.target_volume:
        job.target_volume = job.assigned_volume
    job.refresh_status()
    return job
