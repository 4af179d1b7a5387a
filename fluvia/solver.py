"""Per-frame hydraulic and thermal erosion solver."""

from __future__ import annotations

from dataclasses import dataclass
import math
import time
from typing import NamedTuple

from numba import njit
import numpy as np

from fluvia.config import SimulationParams, StepParams
from fluvia.numerics import erf_response
from fluvia.rng import RngStream
from fluvia.terrain import DISCHARGE_GAIN, Terrain, cell_normal


SQRT2 = math.sqrt(2.0)
SPAWN_MIN_HEIGHT = 0.1
BOUNDARY_DROP = 0.002
DROPLET_SPEED = SQRT2

# Thermal relaxation visits neighbours in this order.
_NEIGHBOUR_DX = np.array([-1, -1, -1, 0, 0, 1, 1, 1], dtype=np.int64)
_NEIGHBOUR_DY = np.array([-1, 0, 1, -1, 1, -1, 0, 1], dtype=np.int64)
_NEIGHBOUR_DIST = np.array([SQRT2, 1.0, SQRT2, 1.0, 1.0, SQRT2, 1.0, SQRT2], dtype=np.float64)


class DropletResult(NamedTuple):
    iterations: int
    eroded: float
    deposited: float
    # spawned on ground below SPAWN_MIN_HEIGHT
    discarded: bool


@dataclass(frozen=True)
class DropletTally:
    spawned: int
    discarded: int
    iterations: int
    eroded: float
    deposited: float


@dataclass(frozen=True)
class StepMetrics:
    step: int
    droplets_spawned: int
    droplets_discarded: int
    droplet_iterations: int
    eroded: float
    deposited: float
    step_seconds: float


@njit(cache=True)
def _thermal_kernel(heights, sediment_map, bedrock_map, size, x, y, max_height_diff, settling_rate):
    cx = math.floor(x)
    cy = math.floor(y)
    if cx < 0 or cx >= size or cy < 0 or cy >= size:
        return

    centre = cy * size + cx
    centre_height = float(heights[centre])

    for k in range(_NEIGHBOUR_DX.size):
        nx = cx + _NEIGHBOUR_DX[k]
        ny = cy + _NEIGHBOUR_DY[k]
        if nx < 0 or nx >= size or ny < 0 or ny >= size:
            continue

        neighbour = ny * size + nx
        diff = centre_height - float(heights[neighbour])
        if diff == 0:
            continue

        excess = abs(diff) - _NEIGHBOUR_DIST[k] * max_height_diff
        if excess <= 0:
            continue

        transfer = settling_rate * excess / 2.0
        if diff > 0:
            donor = centre
            receiver = neighbour
        else:
            donor = neighbour
            receiver = centre

        heights[donor] -= transfer
        heights[receiver] += transfer

        from_sediment = min(transfer, float(sediment_map[donor]))
        sediment_map[donor] -= from_sediment
        remaining = transfer - from_sediment
        if remaining > 0:
            bedrock_map[donor] -= remaining

        sediment_map[receiver] += transfer


@njit(cache=True)
def _droplet_kernel(
    heights,
    sediment_map,
    bedrock_map,
    discharge_map,
    momentum_x,
    momentum_y,
    discharge_track,
    momentum_x_track,
    momentum_y_track,
    size,
    x,
    y,
    max_age,
    min_volume,
    precipitation_rate,
    gravity,
    momentum_transfer,
    entrainment,
    sediment_erosion_rate,
    bedrock_erosion_rate,
    deposition_rate,
    evaporation_rate,
    max_height_diff,
    settling_rate,
    render_height_scale,
):
    cell_x = math.floor(x)
    cell_y = math.floor(y)
    if cell_x < 0 or cell_x >= size or cell_y < 0 or cell_y >= size:
        return 0, 0.0, 0.0, True
    if heights[cell_y * size + cell_x] < SPAWN_MIN_HEIGHT:
        return 0, 0.0, 0.0, True

    vx = 0.0
    vy = 0.0
    sediment = 0.0
    age = 0
    iterations = 0
    volume = precipitation_rate
    eroded = 0.0
    deposited = 0.0
    evaporation = 1.0 - evaporation_rate

    while age < max_age and volume >= min_volume:
        cell_x = math.floor(x)
        cell_y = math.floor(y)
        if cell_x < 0 or cell_x >= size or cell_y < 0 or cell_y >= size:
            break

        iterations += 1
        index = cell_y * size + cell_x
        height_start = float(heights[index])
        nx, _, nz = cell_normal(heights, size, cell_x, cell_y, render_height_scale)

        vx += gravity * nx / volume
        vy += gravity * nz / volume

        px = float(momentum_x[index])
        py = float(momentum_y[index])
        flow_speed = math.sqrt(px * px + py * py)
        if flow_speed > 0:
            speed = math.sqrt(vx * vx + vy * vy)
            if speed > 0:
                alignment = (px * vx + py * vy) / (flow_speed * speed)
                transfer = momentum_transfer * alignment / (volume + float(discharge_map[index]))
                vx += transfer * px
                vy += transfer * py

        speed = math.sqrt(vx * vx + vy * vy)
        if speed > 0:
            vx *= DROPLET_SPEED / speed
            vy *= DROPLET_SPEED / speed

        x += vx
        y += vy

        discharge_track[index] += volume
        momentum_x_track[index] += volume * vx
        momentum_y_track[index] += volume * vy

        left_grid = not (0 <= x < size and 0 <= y < size)
        if left_grid:
            height_end = height_start - BOUNDARY_DROP
        else:
            height_end = float(heights[math.floor(y) * size + math.floor(x)])

        discharge = erf_response(DISCHARGE_GAIN * float(discharge_map[index]))
        capacity = max(0.0, (1.0 + entrainment * discharge) * (height_start - height_end))
        deficit = capacity - sediment

        if deficit > 0:
            from_sediment = min(float(sediment_map[index]), deficit * sediment_erosion_rate)
            sediment_map[index] -= from_sediment
            removed = from_sediment

            if sediment_erosion_rate > 0:
                shortfall = deficit - from_sediment / sediment_erosion_rate
            else:
                shortfall = deficit
            if shortfall > 0:
                from_bedrock = shortfall * bedrock_erosion_rate
                bedrock_map[index] -= from_bedrock
                removed += from_bedrock

            sediment += removed
            eroded += removed
        else:
            dropped = -deficit * deposition_rate
            sediment_map[index] += dropped
            sediment -= dropped
            deposited += dropped

        heights[index] = bedrock_map[index] + sediment_map[index]

        volume *= evaporation
        sediment *= evaporation

        if left_grid:
            break

        _thermal_kernel(heights, sediment_map, bedrock_map, size, x, y, max_height_diff, settling_rate)
        age += 1

    return iterations, eroded, deposited, False


class Solver:
    """Runs one erosion step at a time against a single terrain.

    A step is a droplet pass followed by the discharge/momentum smoothing
    pass. Parameters are snapshotted once at the start of each step so a
    control panel editing the shared record cannot tear a step in half.
    """

    def __init__(self, terrain: Terrain, params: SimulationParams, rng: RngStream | None = None) -> None:
        self.terrain = terrain
        self.params = params
        self.steps = 0

        if rng is None:
            rng = RngStream(terrain.seed) if terrain.seed is not None else RngStream.from_entropy()
        self._rng = rng.fork("droplets").generator()

    def step(self) -> StepMetrics:
        t0 = time.perf_counter()
        params = self.params.snapshot()

        tally = self.hydraulic_erosion(params)
        self.update_discharge_map(params)
        self.steps += 1

        return StepMetrics(
            step=self.steps,
            droplets_spawned=tally.spawned,
            droplets_discarded=tally.discarded,
            droplet_iterations=tally.iterations,
            eroded=tally.eroded,
            deposited=tally.deposited,
            step_seconds=time.perf_counter() - t0,
        )

    def update_discharge_map(self, params: StepParams | None = None) -> None:
        """Blend this step's raw flow tracks into the persistent discharge and momentum."""

        params = params or self.params.snapshot()
        terrain = self.terrain
        rate = params.learning_rate
        keep = 1.0 - rate

        for persistent, track in (
            (terrain.discharge_map, terrain.discharge_track),
            (terrain.momentum_x, terrain.momentum_x_track),
            (terrain.momentum_y, terrain.momentum_y_track),
        ):
            persistent *= keep
            persistent += rate * track

    def hydraulic_erosion(self, params: StepParams | None = None) -> DropletTally:
        params = params or self.params.snapshot()
        terrain = self.terrain

        terrain.discharge_track.fill(0.0)
        terrain.momentum_x_track.fill(0.0)
        terrain.momentum_y_track.fill(0.0)

        count = max(int(params.droplets_per_frame), 0)
        spawns = self._rng.uniform(0.0, terrain.size, size=(count, 2))

        discarded = 0
        iterations = 0
        eroded = 0.0
        deposited = 0.0
        for spawn_x, spawn_y in spawns:
            result = self.simulate_droplet(float(spawn_x), float(spawn_y), params)
            if result.discarded:
                discarded += 1
            iterations += result.iterations
            eroded += result.eroded
            deposited += result.deposited

        return DropletTally(count, discarded, iterations, eroded, deposited)

    def simulate_droplet(self, x: float, y: float, params: StepParams) -> DropletResult:
        """Run one droplet from ``(x, y)`` until it dies, evaporates or leaves the grid.

        A droplet spawned below ``SPAWN_MIN_HEIGHT`` is discarded without touching
        any array. Transport capacity and momentum blending read the persistent
        discharge/momentum from previous steps, never this step's tracks.
        """

        terrain = self.terrain
        iterations, eroded, deposited, discarded = _droplet_kernel(
            terrain.height_map,
            terrain.sediment_map,
            terrain.bedrock_map,
            terrain.discharge_map,
            terrain.momentum_x,
            terrain.momentum_y,
            terrain.discharge_track,
            terrain.momentum_x_track,
            terrain.momentum_y_track,
            terrain.size,
            float(x),
            float(y),
            int(params.max_age),
            float(params.min_volume),
            float(params.precipitation_rate),
            float(params.gravity),
            float(params.momentum_transfer),
            float(params.entrainment),
            float(params.sediment_erosion_rate),
            float(params.bedrock_erosion_rate),
            float(params.deposition_rate),
            float(params.evaporation_rate),
            float(params.max_height_diff),
            float(params.settling_rate),
            float(params.render_height_scale),
        )
        return DropletResult(int(iterations), float(eroded), float(deposited), bool(discarded))

    def thermal_erosion(self, x: float, y: float, params: StepParams | None = None) -> None:
        """Relax slopes steeper than the repose threshold around one cell.

        Each neighbour is settled as soon as it is visited, against the centre
        height read on entry, so the result depends on neighbour order. Heights
        are adjusted directly alongside the sediment/bedrock split.
        """

        params = params or self.params.snapshot()
        terrain = self.terrain
        _thermal_kernel(
            terrain.height_map,
            terrain.sediment_map,
            terrain.bedrock_map,
            terrain.size,
            float(x),
            float(y),
            float(params.max_height_diff),
            float(params.settling_rate),
        )
