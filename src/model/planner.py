"""Quick card: strategic planner that refreshes a faction's job pool from the map and the blackboard."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from src.model.job_pool import JOB_COLLECT, JOB_TRADE, JOB_TRANSFER, Job, JobPool, urgency_for
from src.model.trade import comfort_level, food_safe_level
from src.model.world_state import (
    DESIRE_REPLENISH,
    DESIRE_REQUEST_FREIGHT,
    DESIRE_TRADE_CARAVAN,
    Faction,
    Settlement,
    WorldState,
)

if TYPE_CHECKING:
    from src.model.game_config import GameConfig

log = logging.getLogger(__name__)


def job_id_for(faction: Faction, settlement: Settlement, job_type: str, detail: Optional[str] = None) -> str:
    base = f"{faction.id}-{settlement.id}-{job_type}"
    return f"{base}-{detail}" if detail else base


def _collect_jobs(faction: Faction, world: WorldState, config: "GameConfig") -> List[Job]:
    jobs = []
    threshold = config.logistics.freight_threshold
    for settlement in world.settlements_of(faction.id):
        for hex_id in settlement.controlled_hex_ids:
            if hex_id == settlement.hex_id:
                continue
            cell = world.hexes.get(hex_id)
            if cell is None:
                continue
            total = cell.total_resources()
            if total < threshold:
                continue
            priority = min(1.0, total / config.trade.capacity)
            jobs.append(
                Job(
                    job_id=job_id_for(faction, settlement, JOB_COLLECT, hex_id),
                    faction_id=faction.id,
                    source_id=settlement.id,
                    job_type=JOB_COLLECT,
                    priority=priority,
                    urgency=urgency_for(priority),
                    target_volume=total,
                    target_hex_id=hex_id,
                )
            )
    return jobs


def _best_donor(
    world: WorldState,
    faction: Faction,
    requester: Settlement,
    resource: str,
    config: "GameConfig",
) -> Optional[Tuple[Settlement, float]]:
    best: Optional[Tuple[Settlement, float]] = None
    for sister in world.settlements_of(faction.id):
        if sister.id == requester.id:
            continue
        surplus = sister.stockpile.get(resource, 0.0) - comfort_level(sister, resource, config)
        if surplus <= config.logistics.freight_threshold:
            continue
        if best is None or surplus > best[1]:
            best = (sister, surplus)
    return best


def _transfer_jobs(faction: Faction, world: WorldState, config: "GameConfig") -> List[Job]:
    jobs = {}
    for ticket in faction.blackboard.desires:
        if ticket.type not in (DESIRE_REPLENISH, DESIRE_REQUEST_FREIGHT):
            continue
        requester = world.settlements.get(ticket.settlement_id)
        if requester is None:
            continue
        for resource in ticket.needs:
            donor = _best_donor(world, faction, requester, resource, config)
            if donor is None:
                continue
            sister, surplus = donor
            goal = requester.resource_goals.get(resource)
            if goal is None:
                goal = food_safe_level(requester, config) * 2 if resource == "Food" else config.trade.capacity
            need = max(config.logistics.freight_threshold, goal - requester.stockpile.get(resource, 0.0))
            priority = min(1.0, ticket.score)
            job = Job(
                job_id=job_id_for(faction, requester, JOB_TRANSFER, resource),
                faction_id=faction.id,
                source_id=requester.id,
                job_type=JOB_TRANSFER,
                priority=priority,
                urgency=urgency_for(ticket.score),
                target_volume=min(surplus, need),
                target_hex_id=sister.hex_id,
                resource=resource,
                partner_id=sister.id,
            )
            # REPLENISH and REQUEST_FREIGHT may both ask for Food; keep the more urgent one
            if job.job_id not in jobs or jobs[job.job_id].priority < priority:
                jobs[job.job_id] = job
    return list(jobs.values())


def _trade_jobs(faction: Faction, world: WorldState) -> List[Job]:
    jobs = []
    for ticket in faction.blackboard.desires:
        if ticket.type != DESIRE_TRADE_CARAVAN:
            continue
        settlement = world.settlements.get(ticket.settlement_id)
        if settlement is None:
            continue
        jobs.append(
            Job(
                job_id=job_id_for(faction, settlement, JOB_TRADE),
                faction_id=faction.id,
                source_id=settlement.id,
                job_type=JOB_TRADE,
                priority=min(1.0, ticket.score),
                urgency=urgency_for(ticket.score),
                target_volume=1.0,
                target_hex_id=settlement.hex_id,
            )
        )
    return jobs


def plan_jobs(faction: Faction, job_pool: JobPool, world: WorldState, config: "GameConfig") -> List[str]:
    """Upsert this pass's jobs into ``job_pool`` and prune the unclaimed leftovers. Returns refreshed ids."""
    refreshed = []
    for job in _collect_jobs(faction, world, config) + _transfer_jobs(faction, world, config) + _trade_jobs(faction, world):
        job_pool.add_job(job)
        refreshed.append(job.job_id)
    job_pool.cleanup()
    stale = job_pool.prune(refreshed)
    if stale:
        log.debug("%s pruned %d stale jobs", faction.name, len(stale))
    return refreshed
