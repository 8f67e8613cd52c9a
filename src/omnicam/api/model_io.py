from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterator

import numpy as np

from omnicam.core.ocam import INVERSE_POLYNOMIAL_ORDER, POLYNOMIAL_ORDER, OmniCameraModel
from omnicam.errors import ParameterFileError, ParameterValidationError, _require

log = logging.getLogger(__name__)

SCHEMA_VERSION = "omnicam.model.ocam.v0"


def _take(tokens: Iterator[str], n: int, what: str, cast: Callable[[str], Any] = float) -> list[Any]:
    values = []
    for _ in range(n):
        try:
            values.append(cast(next(tokens)))
        except (StopIteration, ValueError) as e:
            raise ParameterFileError(f"Reading {what} fails.") from e
    return values


def parse_ocam_text(text: str) -> OmniCameraModel:
    """
    Parse the whitespace-separated parameter layout:

      width height
      c0 c1 c2 c3 c4
      principal_x principal_y
      d0 d1 d2
      a0 .. a11
    """
    tokens = iter(text.split())
    image_size = _take(tokens, 2, "image size", int)
    polynomial = _take(tokens, POLYNOMIAL_ORDER, "polynomial")
    principal_point = _take(tokens, 2, "principal point")
    distortion = _take(tokens, 3, "distortion")
    inverse_polynomial = _take(tokens, INVERSE_POLYNOMIAL_ORDER, "inverse polynomial")
    return OmniCameraModel(
        image_size=(image_size[0], image_size[1]),
        polynomial=np.asarray(polynomial, dtype=np.float64),
        principal_point=np.asarray(principal_point, dtype=np.float64),
        distortion=np.asarray(distortion, dtype=np.float64),
        inverse_polynomial=np.asarray(inverse_polynomial, dtype=np.float64),
    )


def load_ocam(parameter_file: str | Path) -> OmniCameraModel | None:
    """
    Load a model from a text parameter file.

    Returns None if the file cannot be opened. Malformed content raises
    `ParameterFileError`.
    """
    path = Path(parameter_file)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParameterFileError(f"Reading {path} fails: not a text file.") from e
    except OSError as e:
        log.error("Fail to open file %s: %s", path, e)
        return None
    return parse_ocam_text(text)


def _fmt(values: np.ndarray) -> str:
    return " ".join(repr(float(v)) for v in np.asarray(values).reshape(-1))


def save_ocam(parameter_file: str | Path, model: OmniCameraModel) -> Path:
    path = Path(parameter_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"{model.image_size[0]} {model.image_size[1]}",
        _fmt(model.polynomial),
        _fmt(model.principal_point),
        _fmt(model.distortion),
        _fmt(model.inverse_polynomial),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def ocam_to_dict(model: OmniCameraModel) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "image": {"width_px": int(model.image_size[0]), "height_px": int(model.image_size[1])},
        "polynomial": [float(v) for v in model.polynomial],
        "principal_point": [float(v) for v in model.principal_point],
        "distortion": [float(v) for v in model.distortion],
        "inverse_polynomial": [float(v) for v in model.inverse_polynomial],
    }


def _float_list(data: dict[str, Any], key: str, n: int) -> list[float]:
    raw = data.get(key)
    _require(isinstance(raw, (list, tuple)) and len(raw) == n, f"{key} must be a list of {n} numbers")
    try:
        return [float(v) for v in raw]
    except (TypeError, ValueError) as e:
        raise ParameterValidationError(f"{key} must contain numbers") from e


def parse_ocam_dict(data: dict[str, Any]) -> OmniCameraModel:
    _require(data.get("schema_version") == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    image = data.get("image", {})
    _require(isinstance(image, dict), "image must be an object with width_px and height_px")
    w_raw = image.get("width_px")
    h_raw = image.get("height_px")
    _require(w_raw is not None and h_raw is not None, "image.width_px and image.height_px are required")

    return OmniCameraModel(
        image_size=(w_raw, h_raw),
        polynomial=np.asarray(_float_list(data, "polynomial", POLYNOMIAL_ORDER)),
        principal_point=np.asarray(_float_list(data, "principal_point", 2)),
        distortion=np.asarray(_float_list(data, "distortion", 3)),
        inverse_polynomial=np.asarray(_float_list(data, "inverse_polynomial", INVERSE_POLYNOMIAL_ORDER)),
    )


def save_ocam_json(path: str | Path, model: OmniCameraModel) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(ocam_to_dict(model), indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_ocam_json(path: str | Path) -> OmniCameraModel:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_ocam_dict(data)
