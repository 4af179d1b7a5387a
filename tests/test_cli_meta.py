from __future__ import annotations

import json

import pytest
from PIL import Image

from cli.main import main


def _args(out_dir, *extra: str) -> list[str]:
    return [
        "--seed",
        "383342929",
        "--out",
        str(out_dir),
        "--size",
        "24",
        "--steps",
        "2",
        "--droplets",
        "20",
        "--max-age",
        "30",
        *extra,
    ]


def test_runtime_fields_only_in_meta_json(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"

    assert main(_args(out_dir, "--overwrite")) == 0

    base = out_dir / "383342929" / "24x24"
    meta = json.loads((base / "meta.json").read_text(encoding="utf-8"))
    deterministic_meta = json.loads((base / "deterministic_meta.json").read_text(encoding="utf-8"))

    assert meta["generation_seconds"] >= 0.0
    assert meta["erosion_seconds"] >= 0.0
    assert "generated_at_utc" in meta

    for key in ("generation_seconds", "erosion_seconds", "generated_at_utc"):
        assert key not in deterministic_meta

    assert deterministic_meta["params"]["droplets_per_frame"] == 20
    assert deterministic_meta["params"]["max_age"] == 30
    assert deterministic_meta["erosion"]["height_invariant_ok"] is True
    assert deterministic_meta["height_bounds"]["max"] <= 1.0

    with Image.open(base / "composite.png") as image:
        assert image.mode == "RGB"
        assert image.size == (24, 24)
    with Image.open(base / "height_8.png") as image:
        assert image.mode == "L"


def test_deterministic_meta_is_reproducible(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    base = out_dir / "383342929" / "24x24"

    assert main(_args(out_dir, "--overwrite")) == 0
    first = (base / "deterministic_meta.json").read_text(encoding="utf-8")
    assert main(_args(out_dir, "--overwrite")) == 0
    second = (base / "deterministic_meta.json").read_text(encoding="utf-8")

    assert first == second


def test_overwrite_cleans_stale_outputs(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    base = out_dir / "383342929" / "24x24"

    assert main(_args(out_dir, "--overwrite", "--surface", "discharge", "--colour-map", "viridis")) == 0
    assert (base / "discharge.png").exists()

    assert main(_args(out_dir, "--overwrite", "--no-json")) == 0
    assert (base / "composite.png").exists()
    assert not (base / "discharge.png").exists()
    assert not (base / "meta.json").exists()


def test_existing_output_requires_overwrite(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"

    assert main(_args(out_dir)) == 0
    with pytest.raises(FileExistsError):
        main(_args(out_dir))


def test_invalid_size_is_a_usage_error(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit):
        main(_args(tmp_path / "out", "--size", "2"))
