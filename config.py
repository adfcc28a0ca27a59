"""I centralise the default numeric knobs for the caravan simulation so I can tweak balance easily.

These are defaults only: ``src.model.game_config.resolve_config`` folds them into a validated
``GameConfig`` and every system reads that resolved object instead of these constants."""

# --- Simulation cadence ---
TICK_RATE_MS: int = 100
RESOURCE_TICK_INTERVAL: int = 10

# --- World setup ---
MAP_WIDTH: int = 20
MAP_HEIGHT: int = 20
FACTION_COUNT: int = 3
FACTION_COLORS = ["#c0392b", "#2980b9", "#27ae60", "#8e44ad", "#d35400", "#16a085"]
STARTING_POPULATION: float = 100.0
STARTING_TERRITORY_RADIUS: int = 1
STARTING_STOCKPILE = {
    "Food": 300.0,
    "Timber": 150.0,
    "Stone": 50.0,
    "Ore": 20.0,
    "Tools": 5.0,
    "Gold": 20.0,
}

# Terrain distribution cut points for the map generator (cumulative)
TERRAIN_THRESHOLDS = [
    ("Plains", 0.30),
    ("Forest", 0.50),
    ("Hills", 0.70),
    ("Mountains", 0.85),
    ("Water", 1.00),
]

# --- Movement & terrain ---
BASE_MOVEMENT: float = 1.0
TERRAIN_MOVE_COSTS = {
    "Plains": 1.0,
    "Forest": 1.5,
    "Hills": 2.0,
    "Mountains": 3.0,
    "Water": 999.9,
}
# Anything at or above this cost is never entered by the pathfinder
IMPASSABLE_COST: float = 999.0

# --- Population & upkeep ---
BASE_CONSUME: float = 0.1
GROWTH_RATE: float = 0.008
GROWTH_SURPLUS_BONUS: float = 0.0001
SOFT_CAP_GROWTH_FACTOR: float = 0.1
STARVATION_RATE: float = 0.02
MAX_LABOR_PER_HEX: int = 40
MAINTENANCE_PER_POP: float = 0.005
TOOL_BONUS: float = 1.5
TOOL_BREAK_CHANCE: float = 0.05
SETTLEMENT_COST = {"Food": 500.0, "Timber": 200.0}
TAX_RATE: float = 0.005

# --- Yields per terrain per resource tick ---
TERRAIN_YIELDS = {
    "Plains": {"Food": 4.0, "Timber": 1.0},
    "Forest": {"Timber": 4.0, "Food": 2.0},
    "Hills": {"Stone": 2.0, "Ore": 1.0},
    "Mountains": {"Ore": 2.0, "Stone": 1.0},
    "Water": {"Food": 3.0, "Gold": 0.75},
}

# --- Industry ---
TARGET_TOOL_RATIO: float = 0.2
TOOL_COST_TIMBER: float = 5.0
TOOL_COST_ORE: float = 2.0
INDUSTRY_SURPLUS_THRESHOLD: float = 50.0

# --- Maintenance ---
BUILDING_DECAY_RATE: float = 2.0
BUILDING_REPAIR_AMOUNT: float = 10.0
BUILDING_REPAIR_COST_FACTOR: float = 0.05
UPKEEP_SPLIT = {"Stone": 0.3, "Timber": 0.7}

# --- Upgrades (tier 0 -> 1 -> 2) ---
VILLAGE_POP_CAP: int = 200
TOWN_POP_CAP: int = 500
CITY_POP_CAP: int = 2000
VILLAGE_TO_TOWN = {
    "population": 100.0,
    "plains_count": 1,
    "cost": {"Timber": 300.0, "Stone": 150.0},
    "territory_radius": 2,
}
TOWN_TO_CITY = {
    "population": 400.0,
    "plains_count": 2,
    "cost": {"Timber": 800.0, "Stone": 400.0, "Ore": 200.0},
    "territory_radius": 3,
}

# --- Trade ---
CARAVAN_TIMBER_COST: float = 50.0
GOLD_PER_RESOURCE: float = 1.0
CARAVAN_CAPACITY: float = 50.0
SURPLUS_THRESHOLD_MULTI: float = 50.0
NEIGHBOR_SURPLUS_MULTI: float = 20.0
# Non-food goods count as surplus above this flat stock
NEIGHBOR_SURPLUS_FLAT: float = 100.0
BUY_CAP: float = 50.0
LOADING_TIME: int = 20
FORCE_TRADE_GOLD: float = 50.0

# --- Logistics ---
CARAVAN_INTEGRITY_LOSS_PER_HEX: float = 0.5
CARAVAN_REPAIR_COST: float = 2.0
CARAVAN_REPAIR_AMOUNT: float = 20.0
FREIGHT_THRESHOLD: float = 40.0
TRADE_ROI_THRESHOLD: float = 20.0
CONSTRUCTION_ROI_THRESHOLD: float = 50.0
FREIGHT_CONSTRUCTION_THRESHOLD: float = 100.0
STUCK_TICK_LIMIT: int = 40
JOB_POLL_LIMIT: int = 5
URGENCY_WEIGHTS = {"HIGH": 1.5, "MEDIUM": 1.0, "LOW": 0.75}

# --- Villagers ---
VILLAGER_COST: float = 100.0
VILLAGER_SPEED: float = 0.5
VILLAGER_CAPACITY: float = 20.0
VILLAGER_RANGE: int = 3
VILLAGER_POP_RATIO: int = 50
BASE_VILLAGERS: int = 2
VILLAGER_JOB_SCORE_MULTI: float = 10.0
VILLAGER_SURVIVAL_FOOD_WEIGHT: float = 10.0

# --- AI scheduling ---
AI_CHECK_INTERVAL: int = 10
AI_STAGGER_MAX: int = 3
AI_INTERVAL_JITTER: int = 2
SETTLEMENT_CAP: int = 5
SETTLER_POP_COST: float = 50.0
EXPANSION_BUFFER: float = 1.5
STARTER_PACK = {"Food": 100.0, "Timber": 50.0, "Stone": 20.0}
ROLE_CHECK_INTERVAL: int = 100
ROLE_THRESHOLDS = {"lumber_forest_ratio": 0.3, "mining_hill_ratio": 0.3, "granary_plains_ratio": 0.5}

# --- Survival thresholds ---
SURVIVE_FOOD: float = 50.0
SURVIVE_TICKS: int = 20
SURVIVE_EXIT_MULTIPLIER: float = 2.0
RECRUIT_BUFFER: float = 2.0
NEW_SETTLEMENT_POP: float = 100.0
NEW_SETTLEMENT_INTEGRITY: float = 100.0

# --- Governor weights ---
# I keep these as plain numbers so balancing passes never touch the scoring code.
GOVERNOR_WEIGHTS = {
    "trade_base": 0.4,
    "trade_shortage": 0.15,
    "settler_expand_base": 0.8,
    "settler_cost_buffer": 2.0,
    "survive_penalty": 0.1,
    "upgrade_expand_share": 0.0,
    "fishery_water": 0.8,
    "smithy_tool_factor": 0.5,
    "tool_per_pop": 0.1,
    "replenish_factor": 5.0,
    "replenish_health_trigger": 0.8,
    "freight_score": 0.8,
    "freight_goal_fraction": 0.2,
    "construction_buffer": 50.0,
    "gatherer_food_factor": 2.0,
    "guard_post_score": 0.4,
    "guard_post_timber_surplus": 200.0,
    "guard_post_stone_surplus": 100.0,
}
GOVERNOR_THRESHOLDS = {
    "UPGRADE": 0.5,
    "SETTLER": 0.3,
    "TRADE_CARAVAN": 0.5,
    "RECRUIT_VILLAGER": 0.3,
    "BUILD": 0.3,
    "REPLENISH": 0.5,
    "REQUEST_FREIGHT": 0.5,
}
# Role multipliers applied to building ambitions (role -> building key -> multiplier)
ROLE_BUILD_MULTIPLIERS = {
    "GRANARY": {"Granary": 1.5, "Fishery": 1.2},
    "MINING": {"Smithy": 1.5},
    "LUMBER": {},
    "GENERAL": {},
}

# --- Buildings ---
BUILDINGS = {
    "GathererHut": {"cost": {"Timber": 50.0}, "min_tier": 0, "effects": [{"type": "YIELD_BONUS", "value": 0.2}]},
    "Granary": {"cost": {"Timber": 100.0, "Stone": 50.0}, "min_tier": 0, "effects": []},
    "Fishery": {"cost": {"Timber": 80.0}, "min_tier": 0, "effects": []},
    "Smithy": {"cost": {"Stone": 150.0, "Ore": 50.0}, "min_tier": 1, "effects": []},
    "GuardPost": {"cost": {"Timber": 100.0, "Stone": 20.0}, "min_tier": 0, "effects": []},
}

# --- Rounding / display ---
POP_DISPLAY_DECIMALS: int = 0
RESOURCE_DISPLAY_DECIMALS: int = 1
POP_HISTORY_LIMIT: int = 100
