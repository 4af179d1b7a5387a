"""Preview rasters derived from terrain state (read-only)."""

from __future__ import annotations

import matplotlib
import numpy as np

from fluvia.config import RenderConfig
from fluvia.terrain import Terrain


COLOUR_MAPS = ("greyscale", "viridis", "plasma", "magma", "inferno", "cividis", "turbo")
SURFACE_MAPS = ("composite", "height", "sediment", "delta", "slope", "discharge")

_MATPLOTLIB_NAMES = {"greyscale": "gray"}
_MIN_SHADE = 0.15


def colour_lut(colour_map: str) -> np.ndarray:
    """Return a ``(256, 3)`` uint8 lookup table for a named colour map."""

    if colour_map not in COLOUR_MAPS:
        raise ValueError(f"unknown colour map: {colour_map}")
    cmap = matplotlib.colormaps[_MATPLOTLIB_NAMES.get(colour_map, colour_map)]
    rgba = cmap(np.linspace(0.0, 1.0, 256))
    return np.round(rgba[:, :3] * 255.0).astype(np.uint8)


def colourize(values: np.ndarray, colour_map: str = "greyscale") -> np.ndarray:
    """Map values nominally in [0, 1] to RGB; out-of-range values clamp to the ends."""

    lut = colour_lut(colour_map)
    scaled = np.nan_to_num(values.astype(np.float64) * 255.0, nan=0.0, posinf=255.0, neginf=0.0)
    idx = np.clip(scaled.astype(np.int64), 0, 255)
    return lut[idx]


def surface_values(terrain: Terrain, surface: str) -> np.ndarray:
    """Normalized ``(size, size)`` field for one of the data surface maps."""

    if surface == "height":
        bounds = terrain.get_map_bounds(terrain.height_map)
        values = (terrain.height_map - bounds.min) / bounds.range
    elif surface == "sediment":
        bounds = terrain.get_map_bounds(terrain.sediment_map)
        values = (terrain.sediment_map - bounds.min) / bounds.range
    elif surface == "delta":
        values = 0.5 + (terrain.height_map.astype(np.float64) - terrain.original_height_map) * 10.0
    elif surface == "slope":
        _, up, _ = terrain.surface_normals()
        return 1.0 - up
    elif surface == "discharge":
        discharge = terrain.discharge_field()
        peak = max(float(np.max(discharge)), 0.0)
        values = discharge / (peak or 1.0)
    else:
        raise ValueError(f"unknown surface map: {surface}")
    return terrain.grid(np.asarray(values, dtype=np.float64))


def composite_rgb(terrain: Terrain, render: RenderConfig | None = None) -> np.ndarray:
    """Lit slope colouring with sediment and water overlays, as uint8 RGB."""

    render = render or RenderConfig()
    nx, ny, nz = terrain.surface_normals()

    light = np.asarray(render.light_dir, dtype=np.float64)
    light = light / ((float(np.linalg.norm(light)) or 1.0) / 2.0)
    shade = np.maximum(nx * light[0] + ny * light[1] + nz * light[2], _MIN_SHADE)[..., None]

    steepness = (1.0 - ny)[..., None]
    flat = np.asarray(render.flat_colour, dtype=np.float64)
    steep = np.asarray(render.steep_colour, dtype=np.float64)
    rgb = ((1.0 - steepness) * flat + steepness * steep) * shade

    sediment = terrain.grid(terrain.sediment_map).astype(np.float64)
    # alpha may exceed 1; only the final channels are clamped
    sediment_alpha = np.where(sediment > 0, np.minimum(1.0, sediment) * 5.0, 0.0)[..., None]
    sediment_rgb = np.asarray(render.sediment_colour, dtype=np.float64) * shade
    rgb = (1.0 - sediment_alpha) * rgb + sediment_alpha * sediment_rgb

    discharge = terrain.grid(terrain.discharge_field())
    water_alpha = np.where(discharge > 0, np.minimum(1.0, discharge), 0.0)[..., None]
    depth_shade = np.maximum(0.3, 1.0 - discharge * 0.25)[..., None] * shade
    water_rgb = np.asarray(render.water_colour, dtype=np.float64) * depth_shade
    rgb = (1.0 - water_alpha) * rgb + water_alpha * water_rgb

    return np.clip(np.round(rgb), 0.0, 255.0).astype(np.uint8)


def render_surface(terrain: Terrain, surface: str = "composite", render: RenderConfig | None = None) -> np.ndarray:
    render = render or RenderConfig()
    if surface == "composite":
        return composite_rgb(terrain, render)
    return colourize(surface_values(terrain, surface), render.colour_map)


def height_preview_u8(terrain: Terrain) -> np.ndarray:
    """Raw ``height * 255`` grayscale, the height texture a 3D view would displace."""

    values = np.clip(terrain.grid(terrain.height_map).astype(np.float64) * 255.0, 0.0, 255.0)
    return values.astype(np.uint8)
