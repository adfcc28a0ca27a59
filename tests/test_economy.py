import random

import pytest

from src.model.economy import (
    evaluate_role,
    extraction_step,
    industry_step,
    maintenance_step,
    metabolism_step,
    settlement_step,
)
from src.model.world_state import Building
from tests.helpers import add_faction, add_settlement, make_config, make_world


def _one_settlement(stockpile=None, population=100.0, terrain="Plains", overrides=None, config_overrides=None):
    config = make_config(config_overrides)
    world = make_world(terrain=terrain, overrides=overrides)
    faction = add_faction(world)
    settlement = add_settlement(world, faction, "3,3", population=population, stockpile=stockpile, settlement_id="s1")
    return config, world, faction, settlement


def test_centre_yield_goes_to_stockpile_and_remote_yield_piles_up():
    config, world, faction, settlement = _one_settlement(overrides={"4,3": "Water"})

    extraction_step(world, config, random.Random(0))

    assert settlement.stockpile["Food"] == pytest.approx(4.0)
    assert settlement.stockpile["Timber"] == pytest.approx(1.0)
    assert world.hexes["2,3"].resources == {"Food": 4.0, "Timber": 1.0}
    assert world.hexes["4,3"].resources == {"Food": 3.0}
    assert faction.gold == pytest.approx(0.75)


def test_tools_boost_every_yield():
    config, world, _, settlement = _one_settlement(
        stockpile={"Tools": 5.0}, config_overrides={"costs": {"tool_break_chance": 0.0}}
    )

    extraction_step(world, config, random.Random(0))

    assert settlement.stockpile["Food"] == pytest.approx(6.0)
    assert settlement.stockpile["Tools"] == 5.0


def test_yield_bonus_building_only_boosts_its_hex():
    config, world, _, settlement = _one_settlement()
    settlement.buildings.append(Building(type="GathererHut", hex_id="2,3"))

    extraction_step(world, config, random.Random(0))

    assert world.hexes["2,3"].resources["Food"] == pytest.approx(4.8)
    assert world.hexes["3,2"].resources["Food"] == pytest.approx(4.0)


def test_industry_forges_only_from_surplus():
    config, world, _, settlement = _one_settlement(stockpile={"Timber": 100.0, "Ore": 60.0})

    industry_step(world, config)
    assert settlement.stockpile["Tools"] == 1
    assert settlement.stockpile["Timber"] == pytest.approx(95.0)
    assert settlement.stockpile["Ore"] == pytest.approx(58.0)

    industry_step(world, config)
    industry_step(world, config)
    industry_step(world, config)
    # Ore is now at the 52 floor (cost 2 plus 50 surplus buffer)
    assert settlement.stockpile["Tools"] == 4
    assert settlement.stockpile["Ore"] == pytest.approx(52.0)


def test_upkeep_shortfall_erodes_integrity():
    config, world, _, settlement = _one_settlement()

    maintenance_step(world, config)

    assert settlement.integrity == pytest.approx(95.0)


def test_buildings_decay_and_get_repaired_when_affordable():
    config, world, _, settlement = _one_settlement(stockpile={"Timber": 100.0, "Stone": 100.0})
    settlement.buildings.append(Building(type="Granary", hex_id="3,3", integrity=50.0))

    maintenance_step(world, config)

    granary = settlement.buildings[0]
    assert granary.integrity == pytest.approx(58.0)
    assert settlement.integrity == pytest.approx(100.0)
    # upkeep 0.35 timber + 0.15 stone, repair 5 timber + 3 stone
    assert settlement.stockpile["Timber"] == pytest.approx(94.65)
    assert settlement.stockpile["Stone"] == pytest.approx(96.85)


def test_fed_settlement_grows_and_pays_tax():
    config, world, _, settlement = _one_settlement(stockpile={"Food": 100.0})

    metabolism_step(world, config)

    assert settlement.stockpile["Food"] == pytest.approx(90.0)
    assert settlement.population == pytest.approx(100.8)
    assert settlement.stockpile["Gold"] == pytest.approx(100.8 * config.costs.tax_rate)


def test_hungry_settlement_starves():
    config, world, _, settlement = _one_settlement(stockpile={"Food": 5.0})

    metabolism_step(world, config)

    assert settlement.stockpile["Food"] == 0.0
    assert settlement.population == pytest.approx(98.0)
    assert settlement.last_growth == pytest.approx(-2.0)


def test_empty_settlement_is_removed_and_releases_land():
    config, world, _, settlement = _one_settlement(population=0.0)

    dead = metabolism_step(world, config)

    assert dead == ["s1"]
    assert "s1" not in world.settlements
    assert world.hexes["3,3"].owner_id is None
    assert world.chronicle[-1]["event_type"] == "settlement_died"


def test_roles_follow_territory_terrain():
    config, world, _, settlement = _one_settlement(terrain="Forest")
    assert evaluate_role(world, settlement, config) == "LUMBER"

    world.tick = config.ai.role_check_interval
    settlement_step(world, config)
    assert settlement.role == "LUMBER"
    assert settlement.job_cap == 7 * config.costs.max_labor_per_hex
    assert settlement.pop_history == [100.0]


def test_population_history_keeps_the_configured_window():
    config, world, _, settlement = _one_settlement(config_overrides={"simulation": {"pop_history_limit": 3}})

    for pop in (100.0, 101.0, 102.0, 103.0, 104.0):
        settlement.population = pop
        world.tick += 1
        settlement_step(world, config)

    assert settlement.pop_history == [102.0, 103.0, 104.0]
