import random

import pytest

from src.agents.mobile import Settler
from src.model.desires import construct, recruit_villager, resolve_instant_desires, send_settler
from src.model.world_state import DesireTicket
from tests.helpers import add_faction, add_settlement, make_config, make_world


def _setup(stockpile, population=100.0, tier=0):
    config = make_config()
    world = make_world(10, 10)
    faction = add_faction(world)
    settlement = add_settlement(world, faction, "2,2", population=population, stockpile=stockpile, settlement_id="s1", tier=tier)
    return config, world, faction, settlement


def test_recruit_spends_food_for_one_villager():
    config, _, faction, settlement = _setup({"Food": 150.0})

    assert recruit_villager(settlement, faction, config)
    assert settlement.stockpile["Food"] == pytest.approx(50.0)
    assert settlement.available_villagers == 1
    assert not recruit_villager(settlement, faction, config)
    assert faction.stats.villagers_recruited == 1


def test_construct_pays_once_and_never_duplicates():
    config, world, faction, settlement = _setup({"Timber": 250.0, "Stone": 100.0})

    assert construct(world, settlement, faction, "BUILD_GRANARY", config)
    assert not construct(world, settlement, faction, "BUILD_GRANARY", config)

    assert settlement.stockpile["Timber"] == pytest.approx(150.0)
    assert settlement.stockpile["Stone"] == pytest.approx(50.0)
    assert [(b.type, b.hex_id) for b in settlement.buildings] == [("Granary", "2,2")]
    assert world.chronicle[-1]["event_type"] == "building_built"


def test_unaffordable_building_leaves_stockpile_untouched():
    config, world, faction, settlement = _setup({"Timber": 99.0, "Stone": 500.0})
    before = dict(settlement.stockpile)

    assert not construct(world, settlement, faction, "BUILD_GRANARY", config)
    assert settlement.stockpile == before
    assert settlement.buildings == []


def test_building_respects_minimum_tier():
    config, world, faction, settlement = _setup({"Stone": 500.0, "Ore": 500.0})

    assert not construct(world, settlement, faction, "BUILD_SMITHY", config)
    settlement.tier = 1
    assert construct(world, settlement, faction, "BUILD_SMITHY", config)


def test_fishery_needs_land_next_to_water():
    config = make_config()
    world = make_world(10, 10, overrides={"3,2": "Water"})
    faction = add_faction(world)
    settlement = add_settlement(world, faction, "2,2", stockpile={"Timber": 200.0})
    dry = add_settlement(world, faction, "7,7", stockpile={"Timber": 200.0})

    assert construct(world, settlement, faction, "BUILD_FISHERY", config)
    assert world.hexes[settlement.buildings[0].hex_id].terrain != "Water"
    assert not construct(world, dry, faction, "BUILD_FISHERY", config)


def test_settler_pays_cost_and_starter_pack():
    config, world, faction, settlement = _setup({"Food": 700.0, "Timber": 300.0, "Stone": 20.0}, population=120.0)
    site = world.hexes["7,7"]

    agent = send_settler(world, settlement, faction, config, random.Random(1), lambda *args: site)

    assert isinstance(agent, Settler)
    assert agent.destination_id == "7,7"
    assert agent.cargo == {"Food": 100.0, "Timber": 50.0, "Stone": 20.0}
    assert settlement.population == pytest.approx(70.0)
    assert settlement.stockpile["Food"] == pytest.approx(100.0)
    assert settlement.stockpile["Timber"] == pytest.approx(50.0)
    assert settlement.stockpile["Stone"] == pytest.approx(0.0)
    assert faction.blackboard.targeted_hex_ids == ["7,7"]
    assert faction.stats.settlers_spawned == 1


def test_settler_without_site_changes_nothing():
    config, world, faction, settlement = _setup({"Food": 700.0, "Timber": 300.0, "Stone": 20.0}, population=120.0)
    before = dict(settlement.stockpile)

    assert send_settler(world, settlement, faction, config, random.Random(1), lambda *args: None) is None
    assert settlement.stockpile == before
    assert settlement.population == 120.0
    assert world.agents == {}


def test_instant_desires_resolve_best_score_first():
    config, world, faction, settlement = _setup({"Food": 100.0, "Timber": 100.0, "Stone": 50.0})
    faction.blackboard.desires = [
        DesireTicket("s1", "BUILD_GRANARY", 0.4),
        DesireTicket("s1", "TRADE_CARAVAN", 0.9),
        DesireTicket("s1", "RECRUIT_VILLAGER", 0.7),
    ]

    done = resolve_instant_desires(world, faction, config, random.Random(1), lambda *args: None)

    assert done == ["RECRUIT_VILLAGER@s1", "BUILD_GRANARY@s1"]
    assert settlement.ai_state.last_decisions["controller"] == done
    assert settlement.stockpile["Food"] == pytest.approx(0.0)
    assert settlement.has_building("Granary")


def test_upgrade_desire_advances_tier():
    config, world, faction, settlement = _setup({"Timber": 300.0, "Stone": 150.0}, population=100.0)
    faction.blackboard.desires = [DesireTicket("s1", "UPGRADE", 0.9)]

    done = resolve_instant_desires(world, faction, config, random.Random(1), lambda *args: None)

    assert done == ["UPGRADE@s1"]
    assert settlement.tier == 1


def test_gatherer_huts_take_one_free_plains_hex_each():
    config, world, faction, settlement = _setup({"Timber": 200.0})
    for hex_id in settlement.controlled_hex_ids:
        world.hexes[hex_id].terrain = "Forest"
    world.hexes["2,2"].terrain = "Plains"
    world.hexes["3,2"].terrain = "Plains"

    assert construct(world, settlement, faction, "BUILD_GATHERERHUT", config)
    assert construct(world, settlement, faction, "BUILD_GATHERERHUT", config)
    assert not construct(world, settlement, faction, "BUILD_GATHERERHUT", config)

    assert [(b.type, b.hex_id) for b in settlement.buildings] == [("GathererHut", "2,2"), ("GathererHut", "3,2")]
    assert settlement.stockpile["Timber"] == pytest.approx(100.0)
    assert faction.stats.buildings_built == 2


def test_guard_post_skips_hexes_that_already_hold_a_building():
    config, world, faction, settlement = _setup({"Timber": 250.0, "Stone": 100.0})

    assert construct(world, settlement, faction, "BUILD_GRANARY", config)
    assert construct(world, settlement, faction, "BUILD_GUARDPOST", config)

    granary, post = settlement.buildings
    assert granary.hex_id == "2,2"
    assert post.type == "GuardPost"
    assert post.hex_id != granary.hex_id
    assert post.hex_id in settlement.controlled_hex_ids
