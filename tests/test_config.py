import logging

import pytest

import config as defaults
from src.model.buildings import BUILDING_TYPES
from src.model.game_config import (
    ConfigError,
    config_to_dict,
    load_config,
    resolve_config,
    save_config,
)


def test_defaults_resolve_with_every_registry_building():
    cfg = resolve_config()

    assert cfg.version == 1
    assert set(BUILDING_TYPES) <= set(cfg.buildings)
    assert cfg.trade.capacity == defaults.CARAVAN_CAPACITY
    assert cfg.upgrades.step_for(0).cost == {"Timber": 300.0, "Stone": 150.0}
    assert cfg.upgrades.step_for(2) is None


def test_overrides_merge_without_touching_other_defaults():
    cfg = resolve_config({"trade": {"capacity": 80}, "ai": {"governor": {"thresholds": {"UPGRADE": 0.6}}}})

    assert cfg.trade.capacity == 80
    assert cfg.trade.loading_time == defaults.LOADING_TIME
    assert cfg.ai.governor.thresholds["UPGRADE"] == 0.6
    assert cfg.ai.governor.thresholds["SETTLER"] == defaults.GOVERNOR_THRESHOLDS["SETTLER"]


def test_resolved_configs_do_not_share_state():
    first = resolve_config()
    first.costs.settlement["Food"] = 1.0

    assert resolve_config().costs.settlement["Food"] == defaults.SETTLEMENT_COST["Food"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"trade": {"no_such_knob": 1}},
        {"trade": {"capacity": "lots"}},
        {"ai": {"check_interval": 2.5}},
        {"simulation": {"resource_tick_interval": 0}},
        {"costs": {"settlement": {"Unobtainium": 5}}},
        {"version": 2},
    ],
)
def test_bad_overrides_are_rejected(overrides):
    with pytest.raises(ConfigError):
        resolve_config(overrides)


def test_build_threshold_falls_back_to_generic_bar():
    cfg = resolve_config({"ai": {"governor": {"thresholds": {"BUILD": 0.25}}}})

    assert cfg.ai.governor.threshold("BUILD_FISHERY") == 0.25
    with pytest.raises(ConfigError):
        cfg.ai.governor.threshold("HOLD_FEAST")


def test_new_building_can_be_added_from_overrides():
    cfg = resolve_config({"buildings": {"Shrine": {"cost": {"Stone": 40}, "min_tier": 1}}})

    assert cfg.buildings["Shrine"].cost == {"Stone": 40.0}
    assert cfg.buildings["Shrine"].min_tier == 1


def test_missing_building_cost_is_filled_from_registry(monkeypatch, caplog):
    trimmed = {key: spec for key, spec in defaults.BUILDINGS.items() if key != "GuardPost"}
    monkeypatch.setattr(defaults, "BUILDINGS", trimmed)

    with caplog.at_level(logging.WARNING, logger="src.model.game_config"):
        cfg = resolve_config()

    assert cfg.buildings["GuardPost"].cost == BUILDING_TYPES["GuardPost"].default_cost
    assert "GuardPost" in caplog.text


def test_saved_config_loads_back_identically(tmp_path):
    cfg = resolve_config({"world": {"width": 12}, "villagers": {"range": 2}})
    path = tmp_path / "config.json"

    save_config(cfg, path)
    loaded = load_config(path)

    assert config_to_dict(loaded) == config_to_dict(cfg)
