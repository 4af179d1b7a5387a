from __future__ import annotations

import numpy as np
import pytest

from fluvia.config import SimulationParams
from fluvia.solver import Solver
from fluvia.terrain import SurfaceNormal, Terrain


def _generated(size: int = 32, seed: int = 1234) -> Terrain:
    terrain = Terrain(size, SimulationParams(terrain_size=size))
    terrain.generate(seed)
    return terrain


def test_generate_normalizes_heights_to_unit_range() -> None:
    terrain = _generated()
    bounds = terrain.get_map_bounds(terrain.height_map)

    assert bounds.min == pytest.approx(0.0, abs=1e-6)
    assert bounds.max == pytest.approx(1.0, abs=1e-6)
    assert terrain.height_map.dtype == np.float32
    assert terrain.height_map.shape == (terrain.area,)


def test_generate_splits_height_into_bedrock_only() -> None:
    terrain = _generated()

    assert np.array_equal(terrain.height_map, terrain.bedrock_map)
    assert np.array_equal(terrain.height_map, terrain.original_height_map)
    assert not terrain.sediment_map.any()
    assert not terrain.discharge_map.any()
    assert not terrain.momentum_x.any()
    assert not terrain.momentum_y.any()
    assert terrain.check_invariant()


def test_generate_is_deterministic_per_seed() -> None:
    a = _generated(seed=99)
    b = _generated(seed=99)
    c = _generated(seed=100)

    assert np.array_equal(a.height_map, b.height_map)
    assert not np.array_equal(a.height_map, c.height_map)


def test_generate_without_seed_records_one() -> None:
    terrain = Terrain(8, SimulationParams(terrain_size=8))
    terrain.generate()

    assert terrain.seed is not None
    assert np.isfinite(terrain.height_map).all()


def test_reset_restores_generated_shape() -> None:
    params = SimulationParams(terrain_size=24, droplets_per_frame=30, max_age=40)
    terrain = Terrain(24, params)
    terrain.generate(5)
    original = terrain.height_map.copy()

    Solver(terrain, params).step()
    assert not np.array_equal(terrain.height_map, original)

    terrain.reset()

    assert np.array_equal(terrain.height_map, original)
    assert np.array_equal(terrain.bedrock_map, original)
    for values in (
        terrain.sediment_map,
        terrain.discharge_map,
        terrain.discharge_track,
        terrain.momentum_x,
        terrain.momentum_y,
        terrain.momentum_x_track,
        terrain.momentum_y_track,
    ):
        assert not values.any()
    assert terrain.check_invariant()


def test_get_height_returns_zero_off_grid() -> None:
    terrain = _generated(size=8)
    terrain.height_map.fill(0.7)

    assert terrain.get_height(3, 3) == pytest.approx(0.7)
    assert terrain.get_height(-1, 0) == 0.0
    assert terrain.get_height(0, 8) == 0.0
    assert terrain.get_height(8, 8) == 0.0


def test_update_total_height_recombines_layers() -> None:
    terrain = Terrain(4, SimulationParams(terrain_size=4))
    index = terrain.get_index(2, 1)
    terrain.bedrock_map[index] = 0.25
    terrain.sediment_map[index] = 0.5

    terrain.update_total_height(index)

    assert terrain.height_map[index] == pytest.approx(0.75)


def test_surface_normal_is_vertical_on_flat_ground() -> None:
    terrain = Terrain(4, SimulationParams(terrain_size=4))
    terrain.height_map.fill(0.5)

    normal = terrain.get_surface_normal(1, 1)

    assert isinstance(normal, SurfaceNormal)
    assert normal == pytest.approx((0.0, 1.0, 0.0))


def test_surface_normal_points_downhill_and_is_unit_length() -> None:
    params = SimulationParams(terrain_size=5, render_height_scale=10.0)
    terrain = Terrain(5, params)
    # Height falls off towards +x.
    terrain.grid(terrain.height_map)[:] = np.array([1.0, 0.8, 0.6, 0.4, 0.2], dtype=np.float32)

    normal = terrain.get_surface_normal(2, 2)

    assert normal.x > 0
    assert normal.z == pytest.approx(0.0)
    assert np.hypot(np.hypot(normal.x, normal.y), normal.z) == pytest.approx(1.0)
    # (0.8 - 0.4) * 10 = 4 over the two-cell span
    assert normal.x == pytest.approx(4.0 / np.sqrt(17.0))


def test_surface_normal_clamps_at_border() -> None:
    params = SimulationParams(terrain_size=5, render_height_scale=10.0)
    terrain = Terrain(5, params)
    terrain.grid(terrain.height_map)[:] = np.array([1.0, 0.8, 0.6, 0.4, 0.2], dtype=np.float32)

    west_edge = terrain.get_surface_normal(0, 0)

    # The border cell stands in for its missing west neighbour: (1.0 - 0.8) * 10.
    assert west_edge.x == pytest.approx(2.0 / np.sqrt(5.0))


def test_surface_normals_are_owned_values() -> None:
    terrain = _generated(size=8)
    first = terrain.get_surface_normal(2, 2)
    second = terrain.get_surface_normal(5, 5)
    snapshot = tuple(first)

    terrain.height_map.fill(0.0)
    terrain.get_surface_normal(2, 2)

    assert tuple(first) == snapshot
    assert first is not second


def test_vectorized_normals_match_per_cell_normals() -> None:
    terrain = _generated(size=12)
    nx, ny, nz = terrain.surface_normals()

    for x, y in ((0, 0), (11, 0), (5, 7), (11, 11), (0, 6)):
        normal = terrain.get_surface_normal(x, y)
        assert nx[y, x] == pytest.approx(normal.x, abs=1e-6)
        assert ny[y, x] == pytest.approx(normal.y, abs=1e-6)
        assert nz[y, x] == pytest.approx(normal.z, abs=1e-6)


def test_get_discharge_is_bounded_response_of_raw_discharge() -> None:
    terrain = Terrain(4, SimulationParams(terrain_size=4))
    terrain.discharge_map[:4] = np.array([0.0, 1.0, 50.0, -3.0], dtype=np.float32)

    assert terrain.get_discharge(0) == 0.0
    assert 0.0 < terrain.get_discharge(1) < 1.0
    assert terrain.get_discharge(2) == 1.0
    assert terrain.get_discharge(3) < 0.0
    assert terrain.discharge_field()[1] == pytest.approx(terrain.get_discharge(1))


def test_terrain_rejects_empty_grid() -> None:
    with pytest.raises(ValueError):
        Terrain(0, SimulationParams())
