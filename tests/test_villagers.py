import pytest

from src.agents.mobile import Villager
from src.model.movement import update_movement
from src.model.villagers import assign_villagers, update_villagers
from tests.helpers import add_faction, add_settlement, make_config, make_world


def _village(food=1000.0, villagers=1):
    config = make_config()
    world = make_world()
    faction = add_faction(world)
    settlement = add_settlement(world, faction, "3,3", stockpile={"Food": food}, settlement_id="s1")
    settlement.available_villagers = villagers
    return config, world, settlement


def _walk(world, config, ticks):
    for _ in range(ticks):
        world.tick += 1
        update_movement(world, config)
        update_villagers(world, config)


def test_villager_fetches_a_pile_and_rejoins_the_pool():
    config, world, settlement = _village()
    world.hexes["4,3"].resources = {"Stone": 15.0}

    assert assign_villagers(world, config) == 1
    assert settlement.available_villagers == 0

    _walk(world, config, 20)

    assert settlement.stockpile["Stone"] == pytest.approx(15.0)
    assert world.hexes["4,3"].resources["Stone"] == pytest.approx(0.0)
    assert settlement.available_villagers == 1
    assert world.agents_of_type(Villager) == []


def test_villager_carries_at_most_its_capacity():
    config, world, settlement = _village()
    world.hexes["4,3"].resources = {"Timber": 30.0, "Food": 12.0}

    assign_villagers(world, config)
    _walk(world, config, 20)

    assert settlement.stockpile["Timber"] == pytest.approx(20.0)
    assert world.hexes["4,3"].resources == {"Timber": 10.0, "Food": 12.0}


def test_survival_sends_villagers_after_food_first():
    config, world, settlement = _village(food=0.0)
    world.hexes["4,3"].resources = {"Stone": 30.0}
    world.hexes["2,3"].resources = {"Food": 5.0}

    assign_villagers(world, config)

    (villager,) = world.agents_of_type(Villager)
    assert villager.gather_target.id == "2,3"


def test_without_survival_the_richest_pile_wins():
    config, world, settlement = _village()
    world.hexes["4,3"].resources = {"Stone": 30.0}
    world.hexes["2,3"].resources = {"Food": 5.0}

    assign_villagers(world, config)

    (villager,) = world.agents_of_type(Villager)
    assert villager.gather_target.id == "4,3"


def test_small_piles_do_not_draw_a_second_villager():
    config, world, settlement = _village(villagers=3)
    world.hexes["4,3"].resources = {"Stone": 8.0}
    world.hexes["2,3"].resources = {"Stone": 25.0}

    assert assign_villagers(world, config) == 2
    # next pass: only the 25 pile still beats one villager already on it
    assert assign_villagers(world, config) == 1
    assert settlement.available_villagers == 0
    targets = sorted(v.gather_target.id for v in world.agents_of_type(Villager))
    assert targets == ["2,3", "2,3", "4,3"]
