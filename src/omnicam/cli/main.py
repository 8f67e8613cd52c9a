from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import numpy as np

from omnicam.api.model_io import load_ocam, load_ocam_json, save_ocam, save_ocam_json
from omnicam.core.image_io import load_image, save_image
from omnicam.core.ocam import OmniCameraModel
from omnicam.core.undistort import panoramic_remap_tables, perspective_remap_tables, remap_image
from omnicam.eval.consistency import check_model_consistency

log = logging.getLogger(__name__)


def _parse_vector(text: str, n: int) -> np.ndarray:
    parts = [p for p in text.replace(" ", "").split(",") if p]
    if len(parts) != n:
        raise argparse.ArgumentTypeError(f"expected {n} comma-separated numbers, got {text!r}")
    try:
        return np.array([float(p) for p in parts], dtype=np.float64)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid number in {text!r}") from e


def _point3(text: str) -> np.ndarray:
    return _parse_vector(text, 3)


def _pixel2(text: str) -> np.ndarray:
    return _parse_vector(text, 2)


def _load_model(path: Path) -> OmniCameraModel | None:
    if path.suffix.lower() == ".json":
        if not path.exists():
            log.error("Fail to open file %s", path)
            return None
        return load_ocam_json(path)
    return load_ocam(path)


def _fmt(v: np.ndarray) -> str:
    return " ".join(f"{float(c):.10g}" for c in np.asarray(v).reshape(-1))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="omnicam")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    desc = sub.add_parser("describe", help="Print the model parameters.")
    desc.add_argument("params", type=Path)

    proj = sub.add_parser("project", help="Project camera-frame points X,Y,Z to pixels.")
    proj.add_argument("params", type=Path)
    proj.add_argument("points", type=_point3, nargs="+")
    proj.add_argument("--jacobian", action="store_true", help="Also print the 2x3 Jacobian per point.")

    back = sub.add_parser("back-project", help="Back-project pixels U,V to unit bearing vectors.")
    back.add_argument("params", type=Path)
    back.add_argument("pixels", type=_pixel2, nargs="+")

    check = sub.add_parser("check", help="Round-trip and Jacobian self-consistency of a model (JSON stats).")
    check.add_argument("params", type=Path)
    check.add_argument("--samples", type=int, default=500)
    check.add_argument("--seed", type=int, default=0)
    check.add_argument("--max-radius-px", type=float, default=None)

    conv = sub.add_parser("convert", help="Convert between text and JSON parameter files (by output suffix).")
    conv.add_argument("params", type=Path)
    conv.add_argument("out", type=Path)

    und = sub.add_parser("undistort", help="Remap a fisheye image to a perspective or panoramic view.")
    und.add_argument("params", type=Path)
    und.add_argument("image", type=Path)
    und.add_argument("out", type=Path)
    und.add_argument("--mode", type=str, default="perspective", choices=["perspective", "panoramic"])
    und.add_argument("--width", type=int, default=None, help="Output width (default: model width).")
    und.add_argument("--height", type=int, default=None, help="Output height (default: model height).")
    und.add_argument("--zoom", type=float, default=4.0, help="Perspective: focal length = width / zoom.")
    und.add_argument("--r-min", type=float, default=0.0, help="Panoramic: inner radius (px).")
    und.add_argument("--r-max", type=float, default=None, help="Panoramic: outer radius (px).")
    und.add_argument(
        "--interp",
        type=str,
        default="linear",
        choices=["nearest", "linear", "cubic", "lanczos4"],
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    model = _load_model(args.params)
    if model is None:
        print(f"Cannot open parameter file {args.params}")
        return 1

    if args.cmd == "describe":
        model.print()
        return 0

    if args.cmd == "project":
        points = np.stack(args.points, axis=0)
        if not args.jacobian:
            for p, kp in zip(args.points, model.project(points)):
                print(f"{_fmt(p)} -> {_fmt(kp)}")
            return 0
        uv, J = model.project(points, with_jacobian=True)
        for p, kp, jac in zip(args.points, uv, J):
            print(f"{_fmt(p)} -> {_fmt(kp)}")
            print(f"  J = [{_fmt(jac[0])}; {_fmt(jac[1])}]")
        return 0

    if args.cmd == "back-project":
        bearings = model.back_project(np.stack(args.pixels, axis=0))
        for kp, b in zip(args.pixels, bearings):
            print(f"{_fmt(kp)} -> {_fmt(b)}")
        return 0

    if args.cmd == "check":
        stats = check_model_consistency(
            model, n_samples=args.samples, seed=args.seed, max_radius_px=args.max_radius_px
        )
        print(json.dumps(stats, sort_keys=True))
        return 0

    if args.cmd == "convert":
        if args.out.suffix.lower() == ".json":
            out = save_ocam_json(args.out, model)
        else:
            out = save_ocam(args.out, model)
        print(f"Wrote {out}")
        return 0

    if args.cmd == "undistort":
        width = int(args.width) if args.width else model.width_px
        height = int(args.height) if args.height else model.height_px
        if args.mode == "perspective":
            map_x, map_y = perspective_remap_tables(model, width, height, zoom=args.zoom)
        else:
            w, h = model.image_size
            cx, cy = (float(c) for c in model.principal_point)
            r_max = args.r_max if args.r_max is not None else min(cx, (w - 1) - cx, cy, (h - 1) - cy)
            map_x, map_y = panoramic_remap_tables(model, width, height, r_min=args.r_min, r_max=r_max)
        image = load_image(args.image)
        out = save_image(args.out, remap_image(image, map_x, map_y, interpolation=args.interp))
        print(f"Wrote {out}")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
