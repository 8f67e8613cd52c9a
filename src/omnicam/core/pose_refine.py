from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from omnicam.core.ocam import OmniCameraModel


@dataclass(frozen=True)
class PoseRefinementResult:
    rvec: np.ndarray  # (3,)
    tvec: np.ndarray  # (3,)
    rms_px: float
    diagnostics: dict[str, float]


def _skew(v: np.ndarray) -> np.ndarray:
    x, y, z = (float(c) for c in v)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]], dtype=np.float64)


def so3_right_jacobian(rvec: np.ndarray) -> np.ndarray:
    """
    Right Jacobian of SO(3): R(rvec + d) ~= R(rvec) Exp(J_r(rvec) d).
    """
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    angle = float(np.linalg.norm(rvec))
    W = _skew(rvec)
    if angle < 1e-8:
        return np.eye(3) - 0.5 * W + (W @ W) / 6.0
    a2 = angle * angle
    return np.eye(3) - (1.0 - np.cos(angle)) / a2 * W + (angle - np.sin(angle)) / (a2 * angle) * (W @ W)


def refine_pose(
    model: OmniCameraModel,
    points_world: np.ndarray,
    uv_px: np.ndarray,
    rvec0: np.ndarray | None = None,
    tvec0: np.ndarray | None = None,
    *,
    loss: Literal["linear", "huber", "soft_l1", "cauchy", "arctan"] = "linear",
    f_scale_px: float = 1.0,
    max_nfev: int = 200,
) -> PoseRefinementResult:
    """
    Refine a camera pose X_cam = R(rvec) X_world + t from 3D-2D correspondences.

    Residuals are pixel reprojection errors; the Jacobian chains the analytic
    projection derivative with the SO(3) right Jacobian, so no finite differences
    are evaluated.
    """
    from scipy.optimize import least_squares  # type: ignore
    from scipy.spatial.transform import Rotation as Rot  # type: ignore

    points_world = np.asarray(points_world, dtype=np.float64).reshape(-1, 3)
    uv_px = np.asarray(uv_px, dtype=np.float64).reshape(-1, 2)
    if points_world.shape[0] != uv_px.shape[0]:
        raise ValueError("points_world and uv_px must have the same length")
    if points_world.shape[0] < 3:
        raise ValueError("need >= 3 correspondences")

    rvec0 = np.zeros(3) if rvec0 is None else np.asarray(rvec0, dtype=np.float64).reshape(3)
    tvec0 = np.zeros(3) if tvec0 is None else np.asarray(tvec0, dtype=np.float64).reshape(3)
    p0 = np.concatenate([rvec0, tvec0], axis=0)

    def to_camera(p: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        Rm = Rot.from_rotvec(p[:3]).as_matrix()
        return Rm, points_world @ Rm.T + p[3:]

    def fun(p: np.ndarray) -> np.ndarray:
        _Rm, X_cam = to_camera(p)
        return (model.project(X_cam) - uv_px).reshape(-1)

    def jac(p: np.ndarray) -> np.ndarray:
        Rm, X_cam = to_camera(p)
        _uv, J_point = model.project(X_cam, with_jacobian=True)  # (N,2,3)
        Jr = so3_right_jacobian(p[:3])
        # d(R X)/d(rvec) = -R [X]x J_r
        skew_X = np.stack([_skew(X) for X in points_world], axis=0)  # (N,3,3)
        dX_drot = -(Rm @ skew_X) @ Jr
        J = np.concatenate([J_point @ dX_drot, J_point], axis=-1)  # (N,2,6)
        return J.reshape(-1, 6)

    sol = least_squares(
        fun,
        p0,
        jac=jac,
        method="trf",
        loss=str(loss),
        f_scale=float(f_scale_px),
        max_nfev=int(max_nfev),
    )

    r = fun(sol.x).reshape(-1, 2)
    err = np.linalg.norm(r, axis=-1)
    rms = float(np.sqrt(np.mean(err**2)))
    diag = {
        "opt_cost": float(sol.cost),
        "opt_nfev": float(sol.nfev),
        "opt_success": float(bool(sol.success)),
        "reproj_p95_px": float(np.quantile(err, 0.95)),
        "n_obs": float(err.size),
    }
    return PoseRefinementResult(rvec=sol.x[:3].copy(), tvec=sol.x[3:].copy(), rms_px=rms, diagnostics=diag)
