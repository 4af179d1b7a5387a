"""Real-time hydraulic and thermal erosion over a height-field grid."""

from .config import DEFAULT_SEED, DEFAULT_SIZE, RenderConfig, SimulationParams, StepParams
from .solver import Solver, StepMetrics
from .terrain import SurfaceNormal, Terrain

__all__ = [
    "DEFAULT_SEED",
    "DEFAULT_SIZE",
    "RenderConfig",
    "SimulationParams",
    "StepParams",
    "Solver",
    "StepMetrics",
    "SurfaceNormal",
    "Terrain",
]
