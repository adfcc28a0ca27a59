from collections import defaultdict

from src.model import ai_controller
from src.model.ai_controller import AIController
from src.model.world_model import SettlementModel
from src.model.world_state import DesireTicket
from tests.helpers import add_faction, add_settlement, make_config, make_world


class _Recorder:
    def __init__(self):
        self.calls = []

    def stance(self, faction, world, config):
        self.calls.append(("stance", faction.id, world.tick))

    def plan(self, faction, pool, world, config):
        self.calls.append(("plan", faction.id, [t.type for t in faction.blackboard.desires]))


def _model(world, controller, seed=3):
    return SettlementModel(random_seed=seed, config=make_config(), world=world, controller=controller)


def test_only_due_ai_factions_run_with_stagger_then_jitter():
    world = make_world()
    for faction_id in ("a", "b"):
        add_faction(world, faction_id)
    add_faction(world, "human", is_ai=False)
    recorder = _Recorder()
    controller = AIController(stance_evaluator=recorder.stance, planner=recorder.plan)
    model = _model(world, controller)
    config = model.config.ai

    runs = defaultdict(list)
    for tick in range(0, 120):
        world.tick = tick
        for faction_id in controller.update(model):
            runs[faction_id].append(tick)

    assert set(runs) == {"a", "b"}
    for ticks in runs.values():
        assert ticks[0] == 0
        first_gap = ticks[1] - ticks[0]
        assert config.check_interval <= first_gap <= config.check_interval + config.stagger_max
        for earlier, later in zip(ticks[1:], ticks[2:]):
            gap = later - earlier
            assert config.check_interval - config.interval_jitter <= gap <= config.check_interval + config.interval_jitter


def test_governance_pass_runs_in_fixed_order(monkeypatch):
    world = make_world()
    faction = add_faction(world)
    add_settlement(world, faction, "1,1", settlement_id="s1")
    add_settlement(world, faction, "5,5", settlement_id="s2")
    faction.blackboard.desires = [DesireTicket("s1", "REPLENISH", 1.0, ["Food"])]
    recorder = _Recorder()

    def governor(settlement, faction, world, config):
        recorder.calls.append(("governor", settlement.id, list(faction.blackboard.desires)))

    def flags(settlement, config):
        recorder.calls.append(("flags", settlement.id))

    def resolve(world, faction, config, rng, finder):
        recorder.calls.append(("resolve", faction.id))
        return []

    monkeypatch.setattr(ai_controller, "evaluate_settlement", governor)
    monkeypatch.setattr(ai_controller, "update_influence_flags", flags)
    monkeypatch.setattr(ai_controller, "resolve_instant_desires", resolve)
    controller = AIController(stance_evaluator=recorder.stance, planner=recorder.plan)
    model = _model(world, controller)

    assert controller.update(model) == ["f1"]

    assert recorder.calls == [
        ("stance", "f1", 0),
        # the planner still sees the previous pass's desires
        ("plan", "f1", ["REPLENISH"]),
        ("governor", "s1", []),
        ("governor", "s2", []),
        ("flags", "s1"),
        ("flags", "s2"),
        ("resolve", "f1"),
    ]
    assert faction.job_pool is not None


def test_non_ai_faction_is_never_processed():
    world = make_world()
    add_faction(world, "human", is_ai=False)
    recorder = _Recorder()
    controller = AIController(stance_evaluator=recorder.stance, planner=recorder.plan)
    model = _model(world, controller)

    assert controller.update(model) == []
    assert recorder.calls == []
