from __future__ import annotations

import numpy as np

from omnicam.core.ocam import OmniCameraModel


def numerical_jacobian(model: OmniCameraModel, point: np.ndarray, step: float = 1e-6) -> np.ndarray:
    """Central-difference d(pixel)/d(point), shape (2,3)."""
    point = np.asarray(point, dtype=np.float64).reshape(3)
    J = np.zeros((2, 3), dtype=np.float64)
    for k in range(3):
        dp = np.zeros(3, dtype=np.float64)
        dp[k] = step
        J[:, k] = (model.project(point + dp) - model.project(point - dp)) / (2.0 * step)
    return J


def check_model_consistency(
    model: OmniCameraModel,
    n_samples: int = 500,
    seed: int = 0,
    max_radius_px: float | None = None,
    min_radius_px: float = 5.0,
) -> dict[str, float]:
    """
    Self-consistency of the forward and inverse polynomials of a model.

    Pixels are sampled on a disk around the principal point (clipped to the image),
    back-projected, pushed to random depths and re-projected. Also compares the
    analytic projection Jacobian against central differences at those points.
    """
    if n_samples < 1:
        raise ValueError("n_samples must be >= 1")
    rng = np.random.default_rng(seed)
    w, h = model.image_size
    cx, cy = (float(c) for c in model.principal_point)
    if max_radius_px is None:
        max_radius_px = max(min_radius_px + 1.0, min(cx, (w - 1) - cx, cy, (h - 1) - cy))

    r = np.sqrt(rng.uniform(min_radius_px**2, max_radius_px**2, size=n_samples))
    phi = rng.uniform(-np.pi, np.pi, size=n_samples)
    uv = np.stack([cx + r * np.cos(phi), cy + r * np.sin(phi)], axis=-1)

    bearings = model.back_project(uv)
    depth = rng.uniform(0.5, 10.0, size=(n_samples, 1))
    points = bearings * depth
    uv2, J = model.project(points, with_jacobian=True)

    err = np.linalg.norm(uv2 - uv, axis=-1)
    norm_dev = np.abs(np.linalg.norm(bearings, axis=-1) - 1.0)

    rel = np.empty(n_samples, dtype=np.float64)
    for i in range(n_samples):
        step = 1e-6 * max(1.0, float(np.linalg.norm(points[i])))
        J_num = numerical_jacobian(model, points[i], step=step)
        rel[i] = float(np.max(np.abs(J[i] - J_num)) / max(float(np.max(np.abs(J_num))), 1e-12))

    return {
        "roundtrip_max_px": float(np.max(err)),
        "roundtrip_rms_px": float(np.sqrt(np.mean(err**2))),
        "bearing_norm_max_dev": float(np.max(norm_dev)),
        "jacobian_max_rel_err": float(np.max(rel)),
        "n_samples": float(n_samples),
    }
