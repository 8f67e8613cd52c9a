from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from omnicam.cli.main import main
from omnicam.core.image_io import save_image

PARAM_TEXT = """640 480
-69.6915 0.0 0.00054772 2.1371e-05 -8.7523e-09
320.0 240.0
1.0 0.0 0.0
142.7468 104.8486 7.3973 17.4581 12.6308 -4.3751 6.9093 10.9703 -0.6053 -3.9119 -1.0675 0.0
"""


@pytest.fixture()
def params(tmp_path: Path) -> Path:
    p = tmp_path / "ocam_param.txt"
    p.write_text(PARAM_TEXT, encoding="utf-8")
    return p


def test_describe(params: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["describe", str(params)]) == 0
    out = capsys.readouterr().out
    assert "Projection = Omni" in out
    assert "Image size = 640 480" in out


def test_missing_parameter_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["describe", str(tmp_path / "nope.txt")]) == 1
    assert "Cannot open" in capsys.readouterr().out


def test_project_and_back_project(params: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["project", str(params), "0,0,-1", "0.5,0,1", "--jacobian"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "0 0 -1 -> 320 240"
    assert lines[1].startswith("  J = [nan")
    assert lines[2].startswith("0.5 0 1 -> ")

    assert main(["back-project", str(params), "420,240"]) == 0
    line = capsys.readouterr().out.strip()
    bearing = np.array([float(v) for v in line.split("->")[1].split()])
    assert bearing.shape == (3,)
    assert bearing[0] > 0.0
    assert abs(np.linalg.norm(bearing) - 1.0) < 1e-8


def test_check_prints_stats(params: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["check", str(params), "--samples", "50"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["n_samples"] == 50.0
    assert stats["roundtrip_max_px"] < 0.02


def test_convert_to_json_and_back(params: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out_json = tmp_path / "model.json"
    assert main(["convert", str(params), str(out_json)]) == 0
    assert out_json.exists()
    out_txt = tmp_path / "again.txt"
    assert main(["convert", str(out_json), str(out_txt)]) == 0
    assert out_txt.read_text(encoding="utf-8").split()[0:2] == ["640", "480"]


def test_undistort_writes_image(params: Path, tmp_path: Path) -> None:
    img = (np.indices((480, 640)).sum(axis=0) % 256).astype(np.uint8)
    src = save_image(tmp_path / "fisheye.png", img)
    dst = tmp_path / "persp.png"
    assert main(["undistort", str(params), str(src), str(dst), "--width", "64", "--height", "48"]) == 0
    assert dst.exists()

    pano = tmp_path / "pano.png"
    assert (
        main(["undistort", str(params), str(src), str(pano), "--mode", "panoramic", "--width", "90", "--height", "20"])
        == 0
    )
    assert pano.exists()


def test_project_without_jacobian_prints_pixels_only(params: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["project", str(params), "0,0,-1", "0.5,0,1"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert lines[0] == "0 0 -1 -> 320 240"
    assert not any("J =" in line for line in lines)
