"""CLI entry point: generate a terrain, erode it for a number of steps, write previews."""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
import platform
import shutil
import tempfile
import time

import numpy as np

from fluvia.config import DEFAULT_SEED, RenderConfig, SimulationParams
from fluvia.derive import COLOUR_MAPS, SURFACE_MAPS, height_preview_u8, render_surface
from fluvia.io import clear_dir, resolve_output_dir, write_json, write_png_rgb, write_png_u8
from fluvia.solver import Solver
from fluvia.terrain import Terrain


def build_parser() -> argparse.ArgumentParser:
    defaults = SimulationParams()
    parser = argparse.ArgumentParser(description="Droplet-based hydraulic and thermal terrain erosion")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Terrain and droplet seed")
    parser.add_argument("--size", type=int, default=128, help="Grid edge length in cells")
    parser.add_argument("--steps", type=int, default=20, help="Number of erosion steps to run")
    parser.add_argument(
        "--droplets",
        type=int,
        default=defaults.droplets_per_frame,
        help="Droplets simulated per step",
    )
    parser.add_argument("--max-age", type=int, default=defaults.max_age, help="Maximum droplet lifetime")
    parser.add_argument("--surface", choices=SURFACE_MAPS, default="composite", help="Surface map to render")
    parser.add_argument("--colour-map", choices=COLOUR_MAPS, default="greyscale", help="Colour map for data surfaces")
    parser.add_argument("--out", default="out", help="Output root directory")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite files in existing output directory")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write metadata JSON files",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.size < 3:
        parser.error("--size must be at least 3")
    if args.steps < 0:
        parser.error("--steps must be non-negative")
    if args.droplets < 0:
        parser.error("--droplets must be non-negative")

    params = SimulationParams(
        terrain_size=args.size,
        droplets_per_frame=args.droplets,
        max_age=args.max_age,
    )
    render = replace(RenderConfig(), colour_map=args.colour_map)

    terrain = Terrain(params.terrain_size, params)
    generation_start = time.perf_counter()
    terrain.generate(args.seed)
    generation_seconds = time.perf_counter() - generation_start

    solver = Solver(terrain, params)
    erosion_start = time.perf_counter()
    eroded = 0.0
    deposited = 0.0
    iterations = 0
    discarded = 0
    for _ in range(args.steps):
        metrics = solver.step()
        eroded += metrics.eroded
        deposited += metrics.deposited
        iterations += metrics.droplet_iterations
        discarded += metrics.droplets_discarded
        print(
            f"Step {metrics.step}/{args.steps}: "
            f"iterations={metrics.droplet_iterations}, "
            f"discarded={metrics.droplets_discarded}, "
            f"time={metrics.step_seconds:.3f}s"
        )
    erosion_seconds = time.perf_counter() - erosion_start

    surface_rgb = render_surface(terrain, args.surface, render)
    height_8 = height_preview_u8(terrain)

    out_dir = resolve_output_dir(args.out, args.seed, args.size, overwrite=args.overwrite)
    stage_dir = Path(tempfile.mkdtemp(prefix=".staging-", dir=str(out_dir.parent)))
    try:
        write_png_rgb(stage_dir / f"{args.surface}.png", surface_rgb)
        write_png_u8(stage_dir / "height_8.png", height_8)
        if args.json:
            height_bounds = terrain.get_map_bounds(terrain.height_map)
            sediment_bounds = terrain.get_map_bounds(terrain.sediment_map)
            deterministic_meta = {
                "seed": args.seed,
                "size": args.size,
                "steps": args.steps,
                "surface": args.surface,
                "params": params.to_dict(),
                "render": render.to_dict(),
                "height_bounds": {"min": height_bounds.min, "max": height_bounds.max},
                "sediment_bounds": {"min": sediment_bounds.min, "max": sediment_bounds.max},
                "erosion": {
                    "droplet_iterations": iterations,
                    "droplets_discarded": discarded,
                    "eroded": eroded,
                    "deposited": deposited,
                    "height_invariant_ok": terrain.check_invariant(atol=1e-4),
                },
            }
            meta = {
                **deterministic_meta,
                "generated_at_utc": datetime.now(timezone.utc).isoformat(),
                "generation_seconds": generation_seconds,
                "erosion_seconds": erosion_seconds,
                "python_version": platform.python_version(),
                "numpy_version": np.__version__,
            }
            write_json(stage_dir / "deterministic_meta.json", deterministic_meta)
            write_json(stage_dir / "meta.json", meta)

        clear_dir(out_dir)
        for child in stage_dir.iterdir():
            shutil.move(str(child), str(out_dir / child.name))
    finally:
        shutil.rmtree(stage_dir, ignore_errors=True)

    print(f"Eroded terrain: {out_dir}")
    print(
        "Erosion: "
        f"steps={args.steps}, "
        f"iterations={iterations}, "
        f"eroded={eroded:.4f}, "
        f"deposited={deposited:.4f}, "
        f"runtime={erosion_seconds:.3f}s"
    )
    print(f"Generation time: {generation_seconds:.3f} s ({args.size}x{args.size})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
