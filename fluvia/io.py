"""Writers for rendered previews and run metadata."""

from __future__ import annotations

import json
from pathlib import Path
import shutil
from typing import Any

import numpy as np
from PIL import Image


def resolve_output_dir(
    out_root: str | Path,
    seed: int,
    size: int,
    *,
    overwrite: bool,
) -> Path:
    """Create and return ``<out_root>/<seed>/<size>x<size>`` for one run."""

    target = Path(out_root) / str(seed) / f"{size}x{size}"
    if target.exists() and any(target.iterdir()) and not overwrite:
        raise FileExistsError(
            f"Output directory already exists and is not empty: {target}. Use --overwrite to replace files."
        )
    target.mkdir(parents=True, exist_ok=True)
    return target


def clear_dir(target: Path) -> None:
    """Remove every child of ``target``, leaving the directory itself."""

    for child in target.iterdir():
        if child.is_symlink() or child.is_file():
            child.unlink()
        elif child.is_dir():
            shutil.rmtree(child)


def write_png_u8(path: str | Path, raster_u8: np.ndarray) -> None:
    Image.fromarray(raster_u8.astype(np.uint8)).save(Path(path))


def write_png_rgb(path: str | Path, raster_rgb: np.ndarray) -> None:
    if raster_rgb.ndim != 3 or raster_rgb.shape[2] != 3:
        raise ValueError("raster_rgb must have shape (height, width, 3)")
    Image.fromarray(raster_rgb.astype(np.uint8)).save(Path(path))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    Path(path).write_text(text + "\n", encoding="utf-8")
