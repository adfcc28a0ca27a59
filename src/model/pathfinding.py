"""Quick card: A* shortest-path oracle over the hex map."""

from __future__ import annotations

import heapq
from itertools import count
from typing import TYPE_CHECKING, Dict, List, Optional

from src.model.hexgrid import Hex, distance, neighbors

if TYPE_CHECKING:
    from src.model.game_config import GameConfig
    from src.model.world_state import HexCell


def terrain_cost(cell: "HexCell", config: "GameConfig") -> float:
    return config.costs.terrain_move_costs.get(cell.terrain, 1.0)


def is_passable(cell: "HexCell", config: "GameConfig") -> bool:
    return terrain_cost(cell, config) < config.costs.impassable_cost


def find_path(start: Hex, end: Hex, hexes: Dict[str, "HexCell"], config: "GameConfig") -> Optional[List[Hex]]:
    """Return the hexes to walk from ``start`` to ``end`` (start excluded, end included).

    ``[]`` means already there; ``None`` means no walkable route exists.
    """
    if start == end:
        return []
    goal = hexes.get(end.id)
    if goal is None or not is_passable(goal, config):
        return None

    tie = count()
    frontier: list[tuple[float, int, Hex]] = [(0.0, next(tie), start)]
    came_from: Dict[Hex, Optional[Hex]] = {start: None}
    cost_so_far: Dict[Hex, float] = {start: 0.0}

    while frontier:
        _, _, current = heapq.heappop(frontier)
        if current == end:
            break
        for nxt in neighbors(current):
            cell = hexes.get(nxt.id)
            if cell is None or not is_passable(cell, config):
                continue
            new_cost = cost_so_far[current] + terrain_cost(cell, config)
            if nxt not in cost_so_far or new_cost < cost_so_far[nxt]:
                cost_so_far[nxt] = new_cost
                heapq.heappush(frontier, (new_cost + distance(nxt, end), next(tie), nxt))
                came_from[nxt] = current

    if end not in came_from:
        return None
    path: List[Hex] = []
    node: Optional[Hex] = end
    while node is not None and node != start:
        path.append(node)
        node = came_from[node]
    path.reverse()
    return path
