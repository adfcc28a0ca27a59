"""Quick card: resolved GameConfig tree built from the defaults in ``config.py``.

Every system reads a ``GameConfig`` produced by :func:`resolve_config`. Overrides arrive as a
nested mapping (for example parsed JSON), get merged onto a fresh copy of the defaults and are
validated once, so scoring and economy code never has to guess at missing keys.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import config
from src.model.buildings import BUILDING_TYPES
from src.model.world_state import RESOURCES, TERRAINS

log = logging.getLogger(__name__)

CONFIG_VERSION = 1


class ConfigError(ValueError):
    """Raised when a configuration override is malformed or out of range."""


@dataclass
class SimulationSettings:
    tick_rate_ms: int = config.TICK_RATE_MS
    resource_tick_interval: int = config.RESOURCE_TICK_INTERVAL
    pop_history_limit: int = config.POP_HISTORY_LIMIT


@dataclass
class WorldSettings:
    width: int = config.MAP_WIDTH
    height: int = config.MAP_HEIGHT
    faction_count: int = config.FACTION_COUNT
    faction_colors: List[str] = field(default_factory=lambda: list(config.FACTION_COLORS))
    starting_population: float = config.STARTING_POPULATION
    starting_territory_radius: int = config.STARTING_TERRITORY_RADIUS
    starting_stockpile: Dict[str, float] = field(default_factory=lambda: dict(config.STARTING_STOCKPILE))
    terrain_thresholds: List[List[Any]] = field(
        default_factory=lambda: [[name, cut] for name, cut in config.TERRAIN_THRESHOLDS]
    )


@dataclass
class CostSettings:
    base_movement: float = config.BASE_MOVEMENT
    terrain_move_costs: Dict[str, float] = field(default_factory=lambda: dict(config.TERRAIN_MOVE_COSTS))
    impassable_cost: float = config.IMPASSABLE_COST
    base_consume: float = config.BASE_CONSUME
    growth_rate: float = config.GROWTH_RATE
    growth_surplus_bonus: float = config.GROWTH_SURPLUS_BONUS
    soft_cap_growth_factor: float = config.SOFT_CAP_GROWTH_FACTOR
    starvation_rate: float = config.STARVATION_RATE
    max_labor_per_hex: int = config.MAX_LABOR_PER_HEX
    maintenance_per_pop: float = config.MAINTENANCE_PER_POP
    tool_bonus: float = config.TOOL_BONUS
    tool_break_chance: float = config.TOOL_BREAK_CHANCE
    settlement: Dict[str, float] = field(default_factory=lambda: dict(config.SETTLEMENT_COST))
    tax_rate: float = config.TAX_RATE


@dataclass
class IndustrySettings:
    target_tool_ratio: float = config.TARGET_TOOL_RATIO
    cost_timber: float = config.TOOL_COST_TIMBER
    cost_ore: float = config.TOOL_COST_ORE
    surplus_threshold: float = config.INDUSTRY_SURPLUS_THRESHOLD


@dataclass
class MaintenanceSettings:
    decay_rate: float = config.BUILDING_DECAY_RATE
    repair_amount: float = config.BUILDING_REPAIR_AMOUNT
    repair_cost_factor: float = config.BUILDING_REPAIR_COST_FACTOR
    upkeep_split: Dict[str, float] = field(default_factory=lambda: dict(config.UPKEEP_SPLIT))


@dataclass
class UpgradeStep:
    population: float
    plains_count: int
    cost: Dict[str, float]
    territory_radius: int


@dataclass
class UpgradeSettings:
    village_pop_cap: float = config.VILLAGE_POP_CAP
    town_pop_cap: float = config.TOWN_POP_CAP
    city_pop_cap: float = config.CITY_POP_CAP
    village_to_town: UpgradeStep = field(default_factory=lambda: UpgradeStep(**copy.deepcopy(config.VILLAGE_TO_TOWN)))
    town_to_city: UpgradeStep = field(default_factory=lambda: UpgradeStep(**copy.deepcopy(config.TOWN_TO_CITY)))

    MAX_TIER = 2

    def pop_cap(self, tier: int) -> float:
        if tier <= 0:
            return self.village_pop_cap
        if tier == 1:
            return self.town_pop_cap
        return self.city_pop_cap

    def step_for(self, tier: int) -> Optional[UpgradeStep]:
        """Return the requirement for leaving ``tier`` (None once the settlement is a city)."""
        if tier <= 0:
            return self.village_to_town
        if tier == 1:
            return self.town_to_city
        return None


@dataclass
class TradeSettings:
    caravan_timber_cost: float = config.CARAVAN_TIMBER_COST
    gold_per_resource: float = config.GOLD_PER_RESOURCE
    capacity: float = config.CARAVAN_CAPACITY
    surplus_threshold_multi: float = config.SURPLUS_THRESHOLD_MULTI
    neighbor_surplus_multi: float = config.NEIGHBOR_SURPLUS_MULTI
    neighbor_surplus_flat: float = config.NEIGHBOR_SURPLUS_FLAT
    buy_cap: float = config.BUY_CAP
    loading_time: int = config.LOADING_TIME
    force_trade_gold: float = config.FORCE_TRADE_GOLD


@dataclass
class LogisticsSettings:
    caravan_integrity_loss_per_hex: float = config.CARAVAN_INTEGRITY_LOSS_PER_HEX
    caravan_repair_cost: float = config.CARAVAN_REPAIR_COST
    caravan_repair_amount: float = config.CARAVAN_REPAIR_AMOUNT
    freight_threshold: float = config.FREIGHT_THRESHOLD
    trade_roi_threshold: float = config.TRADE_ROI_THRESHOLD
    construction_roi_threshold: float = config.CONSTRUCTION_ROI_THRESHOLD
    freight_construction_threshold: float = config.FREIGHT_CONSTRUCTION_THRESHOLD
    stuck_tick_limit: int = config.STUCK_TICK_LIMIT
    job_poll_limit: int = config.JOB_POLL_LIMIT
    urgency_weights: Dict[str, float] = field(default_factory=lambda: dict(config.URGENCY_WEIGHTS))


@dataclass
class VillagerSettings:
    cost: float = config.VILLAGER_COST
    speed: float = config.VILLAGER_SPEED
    capacity: float = config.VILLAGER_CAPACITY
    range: int = config.VILLAGER_RANGE
    pop_ratio: int = config.VILLAGER_POP_RATIO
    base_villagers: int = config.BASE_VILLAGERS
    job_score_multi: float = config.VILLAGER_JOB_SCORE_MULTI
    survival_food_weight: float = config.VILLAGER_SURVIVAL_FOOD_WEIGHT


@dataclass
class SurvivalSettings:
    survive_food: float = config.SURVIVE_FOOD
    survive_ticks: int = config.SURVIVE_TICKS
    survive_exit_multiplier: float = config.SURVIVE_EXIT_MULTIPLIER
    recruit_buffer: float = config.RECRUIT_BUFFER
    new_settlement_pop: float = config.NEW_SETTLEMENT_POP
    new_settlement_integrity: float = config.NEW_SETTLEMENT_INTEGRITY


@dataclass
class GovernorWeights:
    trade_base: float = config.GOVERNOR_WEIGHTS["trade_base"]
    trade_shortage: float = config.GOVERNOR_WEIGHTS["trade_shortage"]
    settler_expand_base: float = config.GOVERNOR_WEIGHTS["settler_expand_base"]
    settler_cost_buffer: float = config.GOVERNOR_WEIGHTS["settler_cost_buffer"]
    survive_penalty: float = config.GOVERNOR_WEIGHTS["survive_penalty"]
    upgrade_expand_share: float = config.GOVERNOR_WEIGHTS["upgrade_expand_share"]
    fishery_water: float = config.GOVERNOR_WEIGHTS["fishery_water"]
    smithy_tool_factor: float = config.GOVERNOR_WEIGHTS["smithy_tool_factor"]
    tool_per_pop: float = config.GOVERNOR_WEIGHTS["tool_per_pop"]
    replenish_factor: float = config.GOVERNOR_WEIGHTS["replenish_factor"]
    replenish_health_trigger: float = config.GOVERNOR_WEIGHTS["replenish_health_trigger"]
    freight_score: float = config.GOVERNOR_WEIGHTS["freight_score"]
    freight_goal_fraction: float = config.GOVERNOR_WEIGHTS["freight_goal_fraction"]
    construction_buffer: float = config.GOVERNOR_WEIGHTS["construction_buffer"]
    gatherer_food_factor: float = config.GOVERNOR_WEIGHTS["gatherer_food_factor"]
    guard_post_score: float = config.GOVERNOR_WEIGHTS["guard_post_score"]
    guard_post_timber_surplus: float = config.GOVERNOR_WEIGHTS["guard_post_timber_surplus"]
    guard_post_stone_surplus: float = config.GOVERNOR_WEIGHTS["guard_post_stone_surplus"]


@dataclass
class GovernorSettings:
    weights: GovernorWeights = field(default_factory=GovernorWeights)
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(config.GOVERNOR_THRESHOLDS))
    role_multipliers: Dict[str, Dict[str, float]] = field(
        default_factory=lambda: copy.deepcopy(config.ROLE_BUILD_MULTIPLIERS)
    )

    def threshold(self, desire_type: str) -> float:
        """BUILD_* tags share the ``BUILD`` threshold unless a specific one is configured."""
        if desire_type in self.thresholds:
            return self.thresholds[desire_type]
        if desire_type.startswith("BUILD_"):
            return self.thresholds["BUILD"]
        raise ConfigError(f"No governor threshold configured for {desire_type}")

    def role_multiplier(self, role: str, building_key: str) -> float:
        return self.role_multipliers.get(role, {}).get(building_key, 1.0)


@dataclass
class AISettings:
    check_interval: int = config.AI_CHECK_INTERVAL
    stagger_max: int = config.AI_STAGGER_MAX
    interval_jitter: int = config.AI_INTERVAL_JITTER
    settlement_cap: int = config.SETTLEMENT_CAP
    settler_pop_cost: float = config.SETTLER_POP_COST
    expansion_buffer: float = config.EXPANSION_BUFFER
    starter_pack: Dict[str, float] = field(default_factory=lambda: dict(config.STARTER_PACK))
    role_check_interval: int = config.ROLE_CHECK_INTERVAL
    role_thresholds: Dict[str, float] = field(default_factory=lambda: dict(config.ROLE_THRESHOLDS))
    survival: SurvivalSettings = field(default_factory=SurvivalSettings)
    governor: GovernorSettings = field(default_factory=GovernorSettings)


@dataclass
class BuildingSpec:
    cost: Dict[str, float]
    min_tier: int = 0
    effects: List[Dict[str, Any]] = field(default_factory=list)


def _default_buildings() -> Dict[str, BuildingSpec]:
    return {key: _building_from_mapping(spec, key) for key, spec in copy.deepcopy(config.BUILDINGS).items()}


def _default_yields() -> Dict[str, Dict[str, float]]:
    return copy.deepcopy(config.TERRAIN_YIELDS)


@dataclass
class GameConfig:
    """Config card: the single resolved object every system reads."""

    version: int = CONFIG_VERSION
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    world: WorldSettings = field(default_factory=WorldSettings)
    costs: CostSettings = field(default_factory=CostSettings)
    yields: Dict[str, Dict[str, float]] = field(default_factory=_default_yields)
    industry: IndustrySettings = field(default_factory=IndustrySettings)
    maintenance: MaintenanceSettings = field(default_factory=MaintenanceSettings)
    upgrades: UpgradeSettings = field(default_factory=UpgradeSettings)
    trade: TradeSettings = field(default_factory=TradeSettings)
    logistics: LogisticsSettings = field(default_factory=LogisticsSettings)
    villagers: VillagerSettings = field(default_factory=VillagerSettings)
    ai: AISettings = field(default_factory=AISettings)
    buildings: Dict[str, BuildingSpec] = field(default_factory=_default_buildings)


def _building_from_mapping(value: Any, key: str) -> BuildingSpec:
    if isinstance(value, BuildingSpec):
        return copy.deepcopy(value)
    if not isinstance(value, Mapping) or "cost" not in value:
        raise ConfigError(f"Building '{key}' needs a mapping with a 'cost' entry")
    unknown = set(value) - {"cost", "min_tier", "effects"}
    if unknown:
        raise ConfigError(f"Unknown keys for building '{key}': {sorted(unknown)}")
    return BuildingSpec(
        cost={res: float(amount) for res, amount in dict(value["cost"]).items()},
        min_tier=int(value.get("min_tier", 0)),
        effects=[dict(effect) for effect in value.get("effects", [])],
    )


def _coerce_scalar(current: Any, value: Any, where: str) -> Any:
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{where} expects a boolean, got {value!r}")
        return value
    if isinstance(current, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{where} expects a number, got {value!r}")
        if isinstance(current, int) and not isinstance(value, int):
            if not float(value).is_integer():
                raise ConfigError(f"{where} expects a whole number, got {value!r}")
            return int(value)
        return value
    if isinstance(current, str) and not isinstance(value, str):
        raise ConfigError(f"{where} expects a string, got {value!r}")
    return copy.deepcopy(value)


def _merge_mapping(current: Dict[str, Any], overrides: Any, where: str, building_map: bool = False) -> None:
    if not isinstance(overrides, Mapping):
        raise ConfigError(f"{where} expects a mapping, got {type(overrides).__name__}")
    for key, value in overrides.items():
        existing = current.get(key)
        if building_map:
            if existing is None:
                current[key] = _building_from_mapping(value, key)
            else:
                _merge_dataclass(existing, value, f"{where}.{key}")
        elif isinstance(existing, dict):
            _merge_mapping(existing, value, f"{where}.{key}")
        elif existing is None:
            current[key] = copy.deepcopy(value)
        else:
            current[key] = _coerce_scalar(existing, value, f"{where}.{key}")


def _merge_dataclass(target: Any, overrides: Any, where: str) -> None:
    if not isinstance(overrides, Mapping):
        raise ConfigError(f"{where} expects a mapping, got {type(overrides).__name__}")
    known = {f.name for f in fields(target)}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigError(f"Unknown config key '{where}.{key}'")
        current = getattr(target, key)
        path = f"{where}.{key}"
        if is_dataclass(current):
            _merge_dataclass(current, value, path)
        elif isinstance(current, dict):
            _merge_mapping(current, value, path, building_map=(target.__class__ is GameConfig and key == "buildings"))
        else:
            setattr(target, key, _coerce_scalar(current, value, path))


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def _validate(cfg: GameConfig) -> None:
    _require(cfg.simulation.resource_tick_interval >= 1, "simulation.resource_tick_interval must be >= 1")
    _require(cfg.simulation.pop_history_limit >= 1, "simulation.pop_history_limit must be >= 1")
    _require(cfg.ai.check_interval >= 1, "ai.check_interval must be >= 1")
    _require(cfg.ai.stagger_max >= 0 and cfg.ai.interval_jitter >= 0, "ai stagger/jitter must be >= 0")
    _require(cfg.world.width > 0 and cfg.world.height > 0, "world dimensions must be positive")
    _require(cfg.trade.capacity > 0, "trade.capacity must be positive")
    _require(cfg.trade.gold_per_resource > 0, "trade.gold_per_resource must be positive")
    _require(cfg.villagers.capacity > 0 and cfg.villagers.speed > 0, "villager capacity/speed must be positive")
    _require(cfg.villagers.pop_ratio > 0, "villagers.pop_ratio must be positive")
    _require(0.0 <= cfg.costs.tool_break_chance <= 1.0, "costs.tool_break_chance must be within [0, 1]")
    _require(cfg.costs.base_movement > 0, "costs.base_movement must be positive")
    for terrain in TERRAINS:
        _require(terrain in cfg.costs.terrain_move_costs, f"costs.terrain_move_costs is missing {terrain}")
        _require(cfg.costs.terrain_move_costs[terrain] >= 1.0, f"terrain cost for {terrain} must be >= 1")
    for terrain, yields in cfg.yields.items():
        _require(terrain in TERRAINS, f"yields reference unknown terrain {terrain}")
        for resource in yields:
            _require(resource in RESOURCES, f"yields.{terrain} references unknown resource {resource}")
    for name, amounts in (
        ("world.starting_stockpile", cfg.world.starting_stockpile),
        ("costs.settlement", cfg.costs.settlement),
        ("ai.starter_pack", cfg.ai.starter_pack),
        ("maintenance.upkeep_split", cfg.maintenance.upkeep_split),
        ("upgrades.village_to_town.cost", cfg.upgrades.village_to_town.cost),
        ("upgrades.town_to_city.cost", cfg.upgrades.town_to_city.cost),
    ):
        for resource, amount in amounts.items():
            _require(resource in RESOURCES, f"{name} references unknown resource {resource}")
            _require(amount >= 0, f"{name}.{resource} must be >= 0")
    for desire_type, value in cfg.ai.governor.thresholds.items():
        _require(value >= 0, f"ai.governor.thresholds.{desire_type} must be >= 0")
    _require("BUILD" in cfg.ai.governor.thresholds, "ai.governor.thresholds needs a BUILD entry")
    _require(
        0.0 <= cfg.ai.governor.weights.survive_penalty <= 1.0,
        "ai.governor.weights.survive_penalty must be within [0, 1]",
    )
    for key, spec in cfg.buildings.items():
        for resource, amount in spec.cost.items():
            _require(resource in RESOURCES, f"buildings.{key} cost references unknown resource {resource}")
            _require(amount >= 0, f"buildings.{key}.cost.{resource} must be >= 0")


def _fill_registry_buildings(cfg: GameConfig) -> None:
    for key, building_type in BUILDING_TYPES.items():
        if key not in cfg.buildings:
            log.warning("Building %s missing from config; using registry default cost %s", key, building_type.default_cost)
            cfg.buildings[key] = BuildingSpec(cost=dict(building_type.default_cost), min_tier=building_type.min_tier)


def resolve_config(overrides: Optional[Mapping[str, Any]] = None) -> GameConfig:
    """Merge ``overrides`` onto fresh defaults, validate, and return a complete config."""
    cfg = GameConfig()
    if overrides:
        data = dict(overrides)
        version = data.pop("version", CONFIG_VERSION)
        if version != CONFIG_VERSION:
            raise ConfigError(f"Unsupported config version {version!r} (expected {CONFIG_VERSION})")
        _merge_dataclass(cfg, data, "config")
    _fill_registry_buildings(cfg)
    _validate(cfg)
    return cfg


def config_to_dict(cfg: GameConfig) -> Dict[str, Any]:
    return asdict(cfg)


def save_config(cfg: GameConfig, path: str | Path) -> None:
    """Export cue: write the resolved config as JSON so a run can be replayed with the same knobs."""
    Path(path).write_text(json.dumps(config_to_dict(cfg), indent=2), encoding="utf-8")


def load_config(path: str | Path) -> GameConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return resolve_config(data)
