"""Configuration records for the erosion simulation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


DEFAULT_SIZE = 512
DEFAULT_SEED = 383342929


@dataclass(frozen=True)
class StepParams:
    """Immutable per-step copy of the solver parameters."""

    droplets_per_frame: int
    max_age: int
    min_volume: float
    precipitation_rate: float
    gravity: float
    momentum_transfer: float
    entrainment: float
    sediment_erosion_rate: float
    bedrock_erosion_rate: float
    deposition_rate: float
    evaporation_rate: float
    learning_rate: float
    max_height_diff: float
    settling_rate: float
    render_height_scale: float


@dataclass
class SimulationParams:
    """Shared parameter record, mutated in place by whoever owns the controls.

    Nothing here is range-checked; the owner is expected to keep values sane.
    """

    droplets_per_frame: int = 512
    max_age: int = 500
    min_volume: float = 0.01

    terrain_size: int = DEFAULT_SIZE
    noise_scale: float = 0.1
    noise_octaves: int = 8
    amplitude_falloff: float = 0.6

    sediment_erosion_rate: float = 0.1
    bedrock_erosion_rate: float = 0.1
    deposition_rate: float = 0.1
    evaporation_rate: float = 0.001
    precipitation_rate: float = 1.0

    entrainment: float = 2.0
    gravity: float = 1.0
    momentum_transfer: float = 1.0

    learning_rate: float = 0.1
    max_height_diff: float = 0.01
    settling_rate: float = 0.8

    render_height_scale: float = 100.0

    def snapshot(self) -> StepParams:
        values = {f.name: getattr(self, f.name) for f in fields(StepParams)}
        return StepParams(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RenderConfig:
    """Colours and lighting for preview rasters."""

    flat_colour: tuple[int, int, int] = (50, 81, 33)
    steep_colour: tuple[int, int, int] = (115, 115, 95)
    water_colour: tuple[int, int, int] = (20, 64, 128)
    sediment_colour: tuple[int, int, int] = (201, 189, 117)
    light_dir: tuple[float, float, float] = (50.0, 50.0, -50.0)
    colour_map: str = "greyscale"
    surface_maps: tuple[str, ...] = field(
        default=("composite", "height", "sediment", "delta", "slope", "discharge")
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
