from __future__ import annotations

import cv2
import numpy as np

from omnicam.core.ocam import OmniCameraModel

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "lanczos4": cv2.INTER_LANCZOS4,
}


def perspective_remap_tables(
    model: OmniCameraModel, width: int, height: int, zoom: float = 4.0
) -> tuple[np.ndarray, np.ndarray]:
    """
    Remap tables for a virtual pinhole view centered on the optical axis.

    The virtual camera has focal length width / zoom (pixels) and looks along the
    side of the axis where the bearing of the principal point lies (sign of -c0).
    Returns (map_x, map_y), float32 arrays of shape (height, width) holding source
    pixel coordinates, ready for `remap_image`.
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    if zoom <= 0:
        raise ValueError("zoom must be > 0")

    focal = float(width) / float(zoom)
    axis_sign = -1.0 if float(model.polynomial[0]) > 0.0 else 1.0
    cx = (width - 1) / 2.0
    cy = (height - 1) / 2.0
    yy, xx = np.meshgrid(np.arange(height, dtype=np.float64), np.arange(width, dtype=np.float64), indexing="ij")
    points = np.stack([xx - cx, yy - cy, np.full_like(xx, axis_sign * focal)], axis=-1)

    uv = model.project(points)
    return uv[..., 0].astype(np.float32), uv[..., 1].astype(np.float32)


def panoramic_remap_tables(
    model: OmniCameraModel, width: int, height: int, r_min: float, r_max: float
) -> tuple[np.ndarray, np.ndarray]:
    """
    Remap tables unrolling the ring r_min..r_max (pixels, around the principal point).

    Columns sweep the full circle, row 0 samples r_max and the last row r_min.
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    if not 0.0 <= r_min < r_max:
        raise ValueError("need 0 <= r_min < r_max")

    rows, cols = np.meshgrid(np.arange(height, dtype=np.float64), np.arange(width, dtype=np.float64), indexing="ij")
    theta = -cols / float(width) * 2.0 * np.pi
    rho = r_max - (r_max - r_min) / float(height) * rows
    cx, cy = (float(c) for c in model.principal_point)
    map_x = cx + rho * np.cos(theta)
    map_y = cy + rho * np.sin(theta)
    return map_x.astype(np.float32), map_y.astype(np.float32)


def remap_image(image: np.ndarray, map_x: np.ndarray, map_y: np.ndarray, interpolation: str = "linear") -> np.ndarray:
    if interpolation not in _INTERPOLATION:
        raise ValueError(f"unknown interpolation: {interpolation}")
    map_x = np.asarray(map_x, dtype=np.float32)
    map_y = np.asarray(map_y, dtype=np.float32)
    if map_x.shape != map_y.shape or map_x.ndim != 2:
        raise ValueError("map_x and map_y must be 2D arrays with the same shape")
    return cv2.remap(
        np.ascontiguousarray(image),
        map_x,
        map_y,
        interpolation=_INTERPOLATION[interpolation],
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
