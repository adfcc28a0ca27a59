import pytest

from src.agents.mobile import Caravan
from src.model.hexgrid import Hex
from src.model.job_pool import (
    JOB_COLLECT,
    JOB_TRADE,
    STATUS_OPEN,
    STATUS_SATURATED,
    Job,
    calculate_bid,
    claim_job,
    get_top_available_jobs,
    release_assignment,
    report_progress,
    urgency_for,
)
from tests.helpers import add_faction, make_config, make_world


def _caravan(agent_id="c1", position=Hex(0, 0)):
    return Caravan(id=agent_id, owner_id="f1", position=position, home_id="s1")


def _setup(target=80.0, job_type=JOB_COLLECT, **kwargs):
    world = make_world()
    faction = add_faction(world)
    pool = faction.ensure_job_pool()
    job = pool.add_job(
        Job(
            job_id="f1-s1-COLLECT-2,0",
            faction_id="f1",
            source_id="s1",
            job_type=job_type,
            target_volume=target,
            target_hex_id="2,0",
            **kwargs,
        )
    )
    return world, faction, pool, job


def test_claim_cannot_exceed_remaining_need():
    _, faction, _, job = _setup(target=80.0)
    first, second = _caravan("c1"), _caravan("c2")

    assert claim_job(faction, first, job, 50.0)
    assert not claim_job(faction, second, job, 50.0)
    assert claim_job(faction, second, job, 30.0)

    assert job.assigned_volume == pytest.approx(80.0)
    assert job.status == STATUS_SATURATED
    assert job.claimants == {"c1": 50.0, "c2": 30.0}


def test_claim_rejects_non_positive_amount_and_second_claim_by_same_agent():
    _, faction, pool, job = _setup(target=80.0)
    other = pool.add_job(Job(job_id="other", faction_id="f1", source_id="s1", job_type=JOB_COLLECT, target_volume=10.0))
    agent = _caravan()

    assert not claim_job(faction, agent, job, 0.0)
    assert claim_job(faction, agent, job, 10.0)
    assert not claim_job(faction, agent, other, 5.0)
    assert agent.job_id == job.job_id
    assert agent.claimed_volume == 10.0


def test_release_reopens_saturated_job_for_another_agent():
    _, faction, _, job = _setup(target=50.0)
    first, second = _caravan("c1"), _caravan("c2")
    assert claim_job(faction, first, job, 50.0)
    assert job.status == STATUS_SATURATED

    released = release_assignment(faction, job.job_id, 50.0, agent_id="c1")

    assert released == pytest.approx(50.0)
    assert job.status == STATUS_OPEN
    assert job.assigned_volume == 0.0
    assert claim_job(faction, second, job, 50.0)


def test_release_never_frees_more_than_the_agent_held():
    _, faction, _, job = _setup(target=80.0)
    a, b = _caravan("a"), _caravan("b")
    claim_job(faction, a, job, 30.0)
    claim_job(faction, b, job, 20.0)

    release_assignment(faction, job.job_id, 999.0, agent_id="a")

    assert job.assigned_volume == pytest.approx(20.0)
    assert job.claimants == {"b": 20.0}


def test_release_without_agent_id_settles_the_lone_claimant():
    _, faction, pool, job = _setup(target=80.0)
    claim_job(faction, _caravan(), job, 50.0)

    assert release_assignment(faction, job.job_id, 50.0) == pytest.approx(50.0)

    assert job.assigned_volume == pytest.approx(0.0)
    assert job.claimants == {}
    assert job.status == STATUS_OPEN
    assert pool.prune([]) == [job.job_id]


def test_progress_without_agent_id_settles_the_lone_claimant():
    _, faction, pool, job = _setup(target=80.0)
    claim_job(faction, _caravan(), job, 50.0)

    report_progress(faction, job.job_id, 20.0)

    assert job.claimants == {"c1": pytest.approx(30.0)}
    assert job.assigned_volume == pytest.approx(sum(job.claimants.values()))


def test_release_without_agent_id_is_refused_when_claims_are_shared():
    _, faction, _, job = _setup(target=80.0)
    claim_job(faction, _caravan("a"), job, 40.0)
    claim_job(faction, _caravan("b"), job, 20.0)

    with pytest.raises(ValueError):
        release_assignment(faction, job.job_id, 20.0)
    assert job.claimants == {"a": 40.0, "b": 20.0}
    assert job.assigned_volume == pytest.approx(60.0)


def test_report_progress_shrinks_need_and_removes_finished_job():
    _, faction, pool, job = _setup(target=80.0)
    agent = _caravan()
    claim_job(faction, agent, job, 50.0)

    report_progress(faction, job.job_id, 50.0, agent_id="c1")
    assert job.target_volume == pytest.approx(30.0)
    assert job.assigned_volume == pytest.approx(0.0)
    assert job.job_id in pool

    report_progress(faction, job.job_id, 30.0)
    assert job.job_id not in pool


def test_upsert_keeps_claims_and_never_drops_target_below_assigned():
    _, faction, pool, job = _setup(target=80.0)
    claim_job(faction, _caravan(), job, 50.0)

    refreshed = pool.add_job(
        Job(job_id=job.job_id, faction_id="f1", source_id="s1", job_type=JOB_COLLECT, target_volume=20.0, priority=0.3)
    )

    assert refreshed is job
    assert job.priority == 0.3
    assert job.target_volume == pytest.approx(50.0)
    assert job.assigned_volume <= job.target_volume


def test_prune_keeps_claimed_jobs():
    _, faction, pool, job = _setup(target=80.0)
    pool.add_job(Job(job_id="stale", faction_id="f1", source_id="s1", job_type=JOB_COLLECT, target_volume=10.0))
    claim_job(faction, _caravan(), job, 10.0)

    removed = pool.prune(keep_ids=[])

    assert removed == ["stale"]
    assert job.job_id in pool


def test_top_jobs_exclude_saturated_and_prefer_nearby():
    world, faction, pool, far = _setup(target=50.0)
    near = pool.add_job(
        Job(job_id="near", faction_id="f1", source_id="s1", job_type=JOB_COLLECT, target_volume=50.0, target_hex_id="1,0")
    )
    full = pool.add_job(
        Job(job_id="full", faction_id="f1", source_id="s1", job_type=JOB_COLLECT, target_volume=10.0, target_hex_id="0,1")
    )
    config = make_config()
    claim_job(faction, _caravan("x"), full, 10.0)

    ranked = get_top_available_jobs(_caravan(), faction, world, config, n=5)

    assert [job.job_id for job in ranked] == [near.job_id, far.job_id]


def test_bid_weights_urgency():
    config = make_config()
    agent = _caravan()
    low = Job(job_id="a", faction_id="f1", source_id="s1", job_type=JOB_TRADE, urgency=urgency_for(0.2), target_volume=1.0)
    high = Job(job_id="b", faction_id="f1", source_id="s1", job_type=JOB_TRADE, urgency=urgency_for(0.9), target_volume=1.0)

    assert calculate_bid(agent, high, config) > calculate_bid(agent, low, config) > 0
