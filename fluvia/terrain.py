"""Height-field grid mutated by the erosion solver."""

from __future__ import annotations

import math
from typing import NamedTuple

from numba import njit
import numpy as np

from fluvia.config import SimulationParams
from fluvia.noise import ValueNoise
from fluvia.numerics import MapBounds, map_bounds, saturating_response
from fluvia.rng import RngStream


PEAK_EXPONENT = 1.2
OCTAVE_OFFSET_RANGE = 100000.0
DISCHARGE_GAIN = 0.4


class SurfaceNormal(NamedTuple):
    """Unit surface normal; ``y`` is the vertical component."""

    x: float
    y: float
    z: float


@njit(cache=True)
def cell_normal(heights, size, x, y, scale):
    """Unit normal ``(x, up, z)`` of one cell of a flat height array."""

    row = y * size
    west = row + (x - 1 if x > 0 else x)
    east = row + (x + 1 if x < size - 1 else x)
    north = (y - 1 if y > 0 else y) * size + x
    south = (y + 1 if y < size - 1 else y) * size + x

    dx = float(heights[west] - heights[east]) * scale
    dz = float(heights[north] - heights[south]) * scale
    magnitude = math.sqrt(dx * dx + 1.0 + dz * dz)
    return dx / magnitude, 1.0 / magnitude, dz / magnitude


class Terrain:
    """Square grid of bedrock and sediment layers plus flow accumulators.

    Every per-cell field is a flat float32 array indexed ``y * size + x``.
    Outside an in-progress mutation ``height_map == bedrock_map + sediment_map``.
    The solver is the only writer during a step; everyone else reads between steps.
    """

    def __init__(self, size: int, params: SimulationParams) -> None:
        if size < 1:
            raise ValueError("size must be positive")

        self.size = int(size)
        self.area = self.size * self.size
        self.params = params
        self.seed: int | None = None

        self.height_map = np.zeros(self.area, dtype=np.float32)
        self.original_height_map = np.zeros(self.area, dtype=np.float32)

        self.bedrock_map = np.zeros(self.area, dtype=np.float32)
        self.sediment_map = np.zeros(self.area, dtype=np.float32)

        self.discharge_map = np.zeros(self.area, dtype=np.float32)
        self.discharge_track = np.zeros(self.area, dtype=np.float32)

        self.momentum_x = np.zeros(self.area, dtype=np.float32)
        self.momentum_y = np.zeros(self.area, dtype=np.float32)
        self.momentum_x_track = np.zeros(self.area, dtype=np.float32)
        self.momentum_y_track = np.zeros(self.area, dtype=np.float32)

    def _dynamic_maps(self) -> tuple[np.ndarray, ...]:
        return (
            self.sediment_map,
            self.discharge_map,
            self.discharge_track,
            self.momentum_x,
            self.momentum_y,
            self.momentum_x_track,
            self.momentum_y_track,
        )

    def get_index(self, x: int, y: int) -> int:
        return y * self.size + x

    def grid(self, values: np.ndarray) -> np.ndarray:
        """View a flat per-cell array as ``(size, size)`` rows."""

        return values.reshape(self.size, self.size)

    def get_height(self, x: int, y: int) -> float:
        """Height at a cell, or 0 when the cell is off the grid."""

        size = self.size
        if x < 0 or x >= size or y < 0 or y >= size:
            return 0.0
        return float(self.height_map[y * size + x])

    def update_total_height(self, index: int) -> None:
        self.height_map[index] = self.bedrock_map[index] + self.sediment_map[index]

    def get_map_bounds(self, values: np.ndarray) -> MapBounds:
        return map_bounds(values)

    def get_surface_normal(self, x: int, y: int, scale: float | None = None) -> SurfaceNormal:
        """Central-difference normal at a cell, clamping neighbours at the border.

        ``scale`` defaults to the live ``render_height_scale``; the solver passes
        the value from its step snapshot.
        """

        if scale is None:
            scale = self.params.render_height_scale
        return SurfaceNormal(*cell_normal(self.height_map, self.size, int(x), int(y), float(scale)))

    def surface_normals(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Normals for every cell as three ``(size, size)`` component arrays."""

        heights = self.grid(self.height_map).astype(np.float64)
        padded = np.pad(heights, 1, mode="edge")
        scale = float(self.params.render_height_scale)

        dx = (padded[1:-1, :-2] - padded[1:-1, 2:]) * scale
        dz = (padded[:-2, 1:-1] - padded[2:, 1:-1]) * scale
        magnitude = np.sqrt(dx * dx + 1.0 + dz * dz)
        return dx / magnitude, 1.0 / magnitude, dz / magnitude

    def get_discharge(self, index: int) -> float:
        """Bounded flow intensity in (-1, 1) for one cell."""

        return saturating_response(DISCHARGE_GAIN * float(self.discharge_map[index]))

    def discharge_field(self) -> np.ndarray:
        return saturating_response(DISCHARGE_GAIN * self.discharge_map.astype(np.float64))

    def check_invariant(self, *, atol: float = 1e-5) -> bool:
        return bool(np.allclose(self.height_map, self.bedrock_map + self.sediment_map, rtol=0.0, atol=atol))

    def generate(self, seed: int | None = None) -> None:
        """Fill the grid with fresh multi-octave noise normalized to [0, 1]."""

        params = self.params
        stream = RngStream(seed) if seed is not None else RngStream.from_entropy()
        self.seed = stream.seed

        for values in (self.height_map, self.original_height_map, self.bedrock_map, *self._dynamic_maps()):
            values.fill(0.0)

        noise = ValueNoise(stream.fork("noise-lattice").generator())
        offsets = stream.fork("octave-offsets").generator().uniform(
            0.0, OCTAVE_OFFSET_RANGE, size=(max(params.noise_octaves, 0), 2)
        )

        pos_y, pos_x = np.divmod(np.arange(self.area, dtype=np.float64), self.size)
        accumulated = np.zeros(self.area, dtype=np.float64)
        amplitude = 1.0
        frequency = params.noise_scale / 100.0

        for offset_x, offset_y in offsets:
            sample_x = pos_x * frequency + offset_x
            sample_y = pos_y * frequency + offset_y
            accumulated += noise.sample(sample_x, sample_y) * amplitude
            frequency *= 2.0
            amplitude *= params.amplitude_falloff

        heights = np.power(accumulated, PEAK_EXPONENT)
        bounds = map_bounds(heights)
        normalized = ((heights - bounds.min) / bounds.range).astype(np.float32)

        self.height_map[:] = normalized
        self.bedrock_map[:] = normalized
        self.original_height_map[:] = normalized

    def reset(self) -> None:
        """Restore the last generated shape and clear all flow and sediment state."""

        self.height_map[:] = self.original_height_map
        self.bedrock_map[:] = self.original_height_map
        for values in self._dynamic_maps():
            values.fill(0.0)
