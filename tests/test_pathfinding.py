import pytest

from src.agents.mobile import Caravan, Villager
from src.model.hexgrid import Hex, distance, neighbors, parse_hex_id, spiral
from src.model.movement import update_movement
from src.model.pathfinding import find_path
from tests.helpers import make_config, make_world


def test_hex_helpers():
    assert parse_hex_id("3,-2") == Hex(3, -2)
    assert distance(Hex(0, 0), Hex(3, -1)) == 3
    assert len(set(neighbors(Hex(2, 2)))) == 6
    ring = spiral(Hex(0, 0), 2)
    assert ring[0] == Hex(0, 0)
    assert len(ring) == len(set(ring)) == 19
    assert max(distance(Hex(0, 0), h) for h in ring) == 2


def test_path_excludes_start_and_ends_on_goal():
    config = make_config()
    world = make_world()

    path = find_path(Hex(0, 0), Hex(4, 0), world.hexes, config)

    assert path[-1] == Hex(4, 0)
    assert Hex(0, 0) not in path
    assert len(path) == 4
    assert find_path(Hex(2, 2), Hex(2, 2), world.hexes, config) == []


def test_water_is_never_entered():
    config = make_config()
    wall = {f"3,{r}": "Water" for r in range(8)}
    world = make_world(overrides=wall)

    assert find_path(Hex(0, 3), Hex(3, 3), world.hexes, config) is None
    assert find_path(Hex(0, 3), Hex(6, 3), world.hexes, config) is None
    assert find_path(Hex(0, 3), Hex(9, 9), world.hexes, config) is None


def test_route_detours_around_expensive_terrain():
    config = make_config()
    mountains = {"2,2": "Mountains", "3,2": "Mountains", "4,2": "Mountains"}
    world = make_world(overrides=mountains)

    path = find_path(Hex(1, 2), Hex(5, 2), world.hexes, config)

    assert not set(path) & {Hex(2, 2), Hex(3, 2), Hex(4, 2)}
    cost = sum(config.costs.terrain_move_costs[world.hexes[h.id].terrain] for h in path)
    assert cost == pytest.approx(5.0)


def test_caravan_moves_one_plains_hex_per_tick_and_wears_down():
    config = make_config()
    world = make_world()
    path = find_path(Hex(0, 0), Hex(3, 0), world.hexes, config)
    caravan = Caravan(id="c", owner_id="f1", position=Hex(0, 0), path=path, target=Hex(3, 0))
    world.add_agent(caravan)

    for _ in range(3):
        update_movement(world, config)

    assert caravan.position == Hex(3, 0)
    assert caravan.path == []
    assert caravan.target is None
    assert caravan.integrity == pytest.approx(100.0 - 3 * config.logistics.caravan_integrity_loss_per_hex)


def test_villager_takes_two_ticks_per_plains_hex():
    config = make_config()
    world = make_world()
    villager = Villager(id="v", owner_id="f1", position=Hex(0, 0), path=[Hex(1, 0)], target=Hex(1, 0))
    world.add_agent(villager)

    update_movement(world, config)
    assert villager.position == Hex(0, 0)
    update_movement(world, config)
    assert villager.position == Hex(1, 0)


def test_forest_carries_movement_points_over():
    config = make_config()
    world = make_world(overrides={"1,0": "Forest"})
    caravan = Caravan(id="c", owner_id="f1", position=Hex(0, 0), path=[Hex(1, 0), Hex(2, 0)], target=Hex(2, 0))
    world.add_agent(caravan)

    update_movement(world, config)
    assert caravan.position == Hex(0, 0)
    assert caravan.stuck_ticks == 1
    update_movement(world, config)
    assert caravan.position == Hex(1, 0)
    assert caravan.movement_progress == pytest.approx(0.5)
    assert caravan.stuck_ticks == 0


def test_route_blocked_by_map_change_is_dropped():
    config = make_config()
    world = make_world()
    caravan = Caravan(id="c", owner_id="f1", position=Hex(0, 0), path=[Hex(1, 0), Hex(2, 0)], target=Hex(2, 0))
    world.add_agent(caravan)
    world.hexes["1,0"].terrain = "Water"

    update_movement(world, config)

    assert caravan.position == Hex(0, 0)
    assert caravan.path == []
