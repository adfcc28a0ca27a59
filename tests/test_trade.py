import pytest

from src.model.trade import (
    comfort_level,
    export_level,
    find_best_buyer,
    find_best_seller,
    food_safe_level,
    settlement_shortages,
)
from tests.helpers import add_faction, add_settlement, make_config, make_world


def _market():
    config = make_config()
    world = make_world(12, 12)
    faction = add_faction(world)
    buyer = add_settlement(world, faction, "1,1", stockpile={"Gold": 200.0}, settlement_id="buyer")
    return config, world, faction, buyer


def test_levels_scale_with_consumption():
    config, _, _, buyer = _market()

    assert food_safe_level(buyer, config) == pytest.approx(200.0)
    assert comfort_level(buyer, "Food", config) == pytest.approx(200.0)
    assert export_level(buyer, "Food", config) == pytest.approx(500.0)
    assert comfort_level(buyer, "Stone", config) == config.trade.neighbor_surplus_flat

    buyer.population = 2.0
    assert food_safe_level(buyer, config) == config.ai.survival.survive_food


def test_shortages_include_upgrade_inputs_near_next_tier():
    config, world, _, buyer = _market()
    buyer.stockpile["Food"] = 1000.0
    buyer.stockpile["Timber"] = 300.0

    assert settlement_shortages(world, buyer, config) == ["Stone"]
    buyer.population = 70.0
    assert settlement_shortages(world, buyer, config) == []


def test_best_seller_weighs_value_against_distance():
    config, world, faction, buyer = _market()
    add_settlement(world, faction, "9,9", stockpile={"Food": 1000.0}, settlement_id="far")
    add_settlement(world, faction, "4,1", stockpile={"Food": 1000.0}, settlement_id="near")
    add_settlement(world, faction, "1,4", stockpile={"Food": 210.0}, settlement_id="thin")

    route = find_best_seller(world, config, buyer, "Food", budget=200.0)

    assert route.partner_id == "near"
    assert route.amount == pytest.approx(config.trade.buy_cap)
    assert route.distance == 3


def test_seller_search_respects_budget_and_roi():
    config, world, faction, buyer = _market()
    add_settlement(world, faction, "4,1", stockpile={"Food": 1000.0}, settlement_id="near")

    assert find_best_seller(world, config, buyer, "Food", budget=10.0) is None
    route = find_best_seller(world, config, buyer, "Food", budget=30.0)
    assert route.amount == pytest.approx(30.0)


def test_buyer_needs_gold_and_a_gap_below_comfort():
    config, world, faction, seller = _market()
    broke = add_settlement(world, faction, "4,1", stockpile={"Stone": 0.0}, settlement_id="broke")

    assert find_best_buyer(world, config, seller, "Stone", available=50.0) is None
    broke.stockpile["Gold"] = 100.0
    route = find_best_buyer(world, config, seller, "Stone", available=50.0)
    assert route.partner_id == "broke"
    assert route.amount == pytest.approx(50.0)
