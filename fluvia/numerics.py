"""Numeric helpers shared by the terrain grid, the solver and the renderers."""

from __future__ import annotations

from dataclasses import dataclass
import math

from numba import njit
import numpy as np


# erf is 1.0 to double precision well before this; past it we return the asymptote.
ERF_SATURATION = 9.3


@dataclass(frozen=True)
class MapBounds:
    min: float
    max: float

    @property
    def range(self) -> float:
        """Span of the bounds, or 1 for a constant map so callers can divide by it."""

        span = self.max - self.min
        return span if span != 0 else 1.0


def map_bounds(values: np.ndarray) -> MapBounds:
    """Return the min and max of a per-cell array."""

    if values.size == 0:
        raise ValueError("values must be non-empty")
    return MapBounds(min=float(np.min(values)), max=float(np.max(values)))


@njit(cache=True)
def erf_response(x):
    """Error function of one value, forced to exactly +/-1 past ``ERF_SATURATION``."""

    if x > ERF_SATURATION:
        return 1.0
    if x < -ERF_SATURATION:
        return -1.0
    return math.erf(x)


@njit(cache=True)
def _erf_response_into(values, out):
    for i in range(values.size):
        out[i] = erf_response(values[i])


def saturating_response(x: float | np.ndarray) -> float | np.ndarray:
    """Monotonic, odd, bounded response of a scalar (returns float) or an array.

    Used to map an unbounded flow accumulation onto a stable intensity; the
    solver calls ``erf_response`` directly from compiled code.
    """

    values = np.asarray(x, dtype=np.float64)
    if values.ndim == 0:
        return float(erf_response(float(values)))

    flat = np.ascontiguousarray(values).ravel()
    out = np.empty_like(flat)
    _erf_response_into(flat, out)
    return out.reshape(values.shape)
