"""Coherent noise sampled at arbitrary coordinates."""

from __future__ import annotations

import numpy as np


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


class ValueNoise:
    """Lattice value noise in [0, 1] backed by a shuffled permutation table.

    The lattice repeats every ``table_size`` units on each axis, which is far
    larger than any feature the terrain generator asks for.
    """

    def __init__(self, rng: np.random.Generator, *, table_size: int = 256) -> None:
        if table_size < 2 or table_size & (table_size - 1):
            raise ValueError("table_size must be a power of two >= 2")

        self._mask = table_size - 1
        self._perm = rng.permutation(table_size).astype(np.int64)
        self._values = rng.random(table_size)

    def _lattice(self, ix: np.ndarray, iy: np.ndarray) -> np.ndarray:
        mask = self._mask
        return self._values[self._perm[(self._perm[ix & mask] + iy) & mask]]

    def sample(self, x: float | np.ndarray, y: float | np.ndarray) -> float | np.ndarray:
        """Sample the noise at ``(x, y)``; scalars in, float out, arrays in, float32 array out."""

        xs = np.asarray(x, dtype=np.float64)
        ys = np.asarray(y, dtype=np.float64)

        x0 = np.floor(xs)
        y0 = np.floor(ys)
        tx = _smoothstep(xs - x0)
        ty = _smoothstep(ys - y0)

        ix = x0.astype(np.int64)
        iy = y0.astype(np.int64)

        g00 = self._lattice(ix, iy)
        g10 = self._lattice(ix + 1, iy)
        g01 = self._lattice(ix, iy + 1)
        g11 = self._lattice(ix + 1, iy + 1)

        top = g00 * (1.0 - tx) + g10 * tx
        bottom = g01 * (1.0 - tx) + g11 * tx
        value = np.clip(top * (1.0 - ty) + bottom * ty, 0.0, 1.0)

        if value.ndim == 0:
            return float(value)
        return value.astype(np.float32)
