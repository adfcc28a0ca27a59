import pytest

from src.model.sovereign import evaluate_stance
from tests.helpers import add_faction, add_settlement, make_config, make_world


def test_faction_without_settlements_only_exploits():
    config = make_config()
    world = make_world()
    faction = add_faction(world)

    evaluate_stance(faction, world, config)

    assert faction.blackboard.stances == {"expand": 0.0, "exploit": 1.0}
    assert faction.blackboard.critical_shortages == []


def test_fed_faction_with_room_leans_towards_expansion():
    config = make_config()
    world = make_world()
    faction = add_faction(world)
    add_settlement(world, faction, "3,3", stockpile={"Food": 500.0, "Timber": 400.0, "Stone": 200.0})

    evaluate_stance(faction, world, config)

    assert faction.blackboard.stances["expand"] == pytest.approx(0.8)
    assert faction.blackboard.stances["exploit"] == pytest.approx(0.6)
    assert faction.blackboard.critical_shortages == []


def test_food_shortage_forces_exploit():
    config = make_config()
    world = make_world()
    faction = add_faction(world)
    add_settlement(world, faction, "3,3", stockpile={"Food": 0.0, "Timber": 400.0, "Stone": 200.0})

    evaluate_stance(faction, world, config)

    assert faction.blackboard.stances == {"expand": 0.0, "exploit": 1.0}
    assert "Food" in faction.blackboard.critical_shortages


def test_material_shortages_and_goals_follow_next_upgrade():
    config = make_config()
    world = make_world()
    faction = add_faction(world)
    settlement = add_settlement(world, faction, "3,3", population=90.0, stockpile={"Food": 1000.0})

    evaluate_stance(faction, world, config)

    assert faction.blackboard.critical_shortages == ["Timber", "Stone"]
    assert settlement.resource_goals == pytest.approx({"Food": 360.0, "Timber": 300.0, "Stone": 150.0})
