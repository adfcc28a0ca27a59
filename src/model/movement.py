"""Quick card: per-tick movement along precomputed paths using accumulated movement points."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.agents.mobile import Caravan, MobileAgent, Villager
from src.model.pathfinding import is_passable, terrain_cost

if TYPE_CHECKING:
    from src.model.game_config import GameConfig
    from src.model.world_state import WorldState


def movement_speed(agent: MobileAgent, config: "GameConfig") -> float:
    if isinstance(agent, Villager):
        return config.villagers.speed
    return config.costs.base_movement


def advance_agent(world: "WorldState", agent: MobileAgent, config: "GameConfig") -> bool:
    """Move ``agent`` at most one hex; returns True when it entered a new hex."""
    if not agent.path or agent.wait_ticks > 0:
        return False
    nxt = agent.path[0]
    cell = world.hexes.get(nxt.id)
    if cell is None or not is_passable(cell, config):
        # Map changed under the route; the mission logic will re-plan or head home
        agent.path = []
        agent.movement_progress = 0.0
        return False

    agent.movement_progress += movement_speed(agent, config)
    cost = terrain_cost(cell, config)
    if agent.movement_progress < cost:
        return False

    agent.position = nxt
    agent.path.pop(0)
    agent.movement_progress -= cost
    if isinstance(agent, Caravan):
        agent.integrity = max(0.0, agent.integrity - config.logistics.caravan_integrity_loss_per_hex)
    if not agent.path:
        agent.target = None
        agent.movement_progress = 0.0
    return True


def update_movement(world: "WorldState", config: "GameConfig") -> None:
    for agent in list(world.agents.values()):
        if not agent.path or agent.wait_ticks > 0:
            continue
        if advance_agent(world, agent, config):
            agent.stuck_ticks = 0
        else:
            agent.stuck_ticks += 1
