from __future__ import annotations

import numbers
import sys
from dataclasses import dataclass, field
from typing import TextIO

import numpy as np

from omnicam.core.polynomial import derivative_from_powers, horner, power_sequence
from omnicam.errors import _require

POLYNOMIAL_ORDER = 5
INVERSE_POLYNOMIAL_ORDER = 12
DISTORTION_SIZE = 3


def distortion_to_affine_correction(distortion: np.ndarray) -> np.ndarray:
    """
    Build the 2x2 sensor-plane correction from the toolbox triple (d0, d1, d2).

    The calibration toolbox writes the triple row-major, so it is transposed here:
    [[1, d2], [d1, d0]].
    """
    d = np.asarray(distortion, dtype=np.float64).reshape(DISTORTION_SIZE)
    return np.array([[1.0, d[2]], [d[1], d[0]]], dtype=np.float64)


def _frozen(x: np.ndarray) -> np.ndarray:
    x = np.array(x, dtype=np.float64, copy=True)
    x.setflags(write=False)
    return x


@dataclass(frozen=True, eq=False)
class OmniCameraModel:
    """
    Unified polynomial omnidirectional camera (Scaramuzza OCam model).

    Convention:
    - `back_project` maps a pixel to a unit bearing along (x, y, -P(rho)) where P is
      the forward polynomial evaluated at the rectified radius rho
    - `project` uses z = -point[2] and theta = atan(z / ||(x, y)||), then
      rho = sum_i inverse_polynomial[i] theta^i
    - pixel = affine_correction @ (rho * (x, y) / ||(x, y)||) + principal_point
    """

    image_size: tuple[int, int]
    polynomial: np.ndarray  # (5,)
    principal_point: np.ndarray  # (2,)
    distortion: np.ndarray  # (3,)
    inverse_polynomial: np.ndarray  # (12,)
    affine_correction: np.ndarray = field(init=False, repr=False)  # (2,2)
    affine_correction_inverse: np.ndarray = field(init=False, repr=False)  # (2,2)

    def __post_init__(self) -> None:
        size = tuple(self.image_size)
        _require(len(size) == 2, "image_size must be (width, height)")
        _require(
            all(isinstance(s, numbers.Real) and not isinstance(s, bool) and bool(np.isfinite(s)) for s in size),
            "image_size values must be finite numbers",
        )
        _require(all(int(s) == s and int(s) > 0 for s in size), "image_size values must be positive integers")

        poly = np.asarray(self.polynomial, dtype=np.float64).reshape(-1)
        pp = np.asarray(self.principal_point, dtype=np.float64).reshape(-1)
        dist = np.asarray(self.distortion, dtype=np.float64).reshape(-1)
        inv_poly = np.asarray(self.inverse_polynomial, dtype=np.float64).reshape(-1)
        _require(poly.size == POLYNOMIAL_ORDER, f"polynomial must have {POLYNOMIAL_ORDER} coefficients")
        _require(pp.size == 2, "principal_point must have 2 coordinates")
        _require(dist.size == DISTORTION_SIZE, f"distortion must have {DISTORTION_SIZE} coefficients")
        _require(
            inv_poly.size == INVERSE_POLYNOMIAL_ORDER,
            f"inverse_polynomial must have {INVERSE_POLYNOMIAL_ORDER} coefficients",
        )

        affine = distortion_to_affine_correction(dist)
        det = float(np.linalg.det(affine))
        _require(bool(np.isfinite(det)) and det != 0.0, "affine correction is not invertible")

        object.__setattr__(self, "image_size", (int(size[0]), int(size[1])))
        object.__setattr__(self, "polynomial", _frozen(poly))
        object.__setattr__(self, "principal_point", _frozen(pp))
        object.__setattr__(self, "distortion", _frozen(dist))
        object.__setattr__(self, "inverse_polynomial", _frozen(inv_poly))
        object.__setattr__(self, "affine_correction", _frozen(affine))
        object.__setattr__(self, "affine_correction_inverse", _frozen(np.linalg.inv(affine)))

    @property
    def width_px(self) -> int:
        return self.image_size[0]

    @property
    def height_px(self) -> int:
        return self.image_size[1]

    def back_project(self, keypoints: np.ndarray) -> np.ndarray:
        """
        Pixels (..., 2) -> unit bearing vectors (..., 3) in the camera frame.

        A pixel whose rectified offset and depth are both zero has no direction and
        yields NaN.
        """
        keypoints = np.asarray(keypoints, dtype=np.float64)
        if keypoints.ndim == 0 or keypoints.shape[-1] != 2:
            raise ValueError("keypoints must have shape (2,) or (N,2)")
        uv = keypoints.reshape(-1, 2)

        rectified = (uv - self.principal_point) @ self.affine_correction_inverse.T
        rho = np.linalg.norm(rectified, axis=-1)
        z = -horner(self.polynomial, rho)

        bearing = np.concatenate([rectified, z[:, None]], axis=-1)
        norms = np.linalg.norm(bearing, axis=-1, keepdims=True)
        with np.errstate(invalid="ignore", divide="ignore"):
            bearing = bearing / norms
        return bearing.reshape(keypoints.shape[:-1] + (3,))

    def project(
        self, points: np.ndarray, with_jacobian: bool = False
    ) -> np.ndarray | tuple[np.ndarray, np.ndarray]:
        """
        Camera-frame points (..., 3) -> pixels (..., 2).

        With `with_jacobian=True` also returns d(pixel)/d(point) with shape (..., 2, 3).
        Points on the optical axis map to the principal point; their Jacobian is NaN.
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 0 or points.shape[-1] != 3:
            raise ValueError("points must have shape (3,) or (N,3)")
        batch_shape = points.shape[:-1]
        P = points.reshape(-1, 3)

        x = P[:, 0]
        y = P[:, 1]
        z = -P[:, 2]
        xy_norm2 = x * x + y * y
        xy_norm = np.sqrt(xy_norm2)
        theta = np.arctan2(z, xy_norm)

        theta_powers = power_sequence(theta, INVERSE_POLYNOMIAL_ORDER)
        rho = theta_powers @ self.inverse_polynomial

        off_axis = xy_norm > 0.0
        inv_xy_norm = np.divide(1.0, xy_norm, out=np.zeros_like(xy_norm), where=off_axis)
        raw_uv = np.stack([x * inv_xy_norm * rho, y * inv_xy_norm * rho], axis=-1)
        keypoints = (raw_uv @ self.affine_correction.T + self.principal_point).reshape(batch_shape + (2,))
        if not with_jacobian:
            return keypoints

        jac = np.full((P.shape[0], 2, 3), np.nan, dtype=np.float64)
        good = off_axis & np.isfinite(theta)
        if np.any(good):
            xg = x[good]
            yg = y[good]
            zg = z[good]
            n = xy_norm[good]
            n2 = xy_norm2[good]
            rho_g = rho[good]

            # rho w.r.t. theta
            drho_dtheta = derivative_from_powers(self.inverse_polynomial, theta_powers[good])
            # theta w.r.t. x, y, z
            xyz_norm2 = n2 + zg * zg
            z_by_xy_norm = zg / n
            dtheta_dx = -xg * z_by_xy_norm / xyz_norm2
            dtheta_dy = -yg * z_by_xy_norm / xyz_norm2
            dtheta_dz = n / xyz_norm2
            drho_dx = drho_dtheta * dtheta_dx
            drho_dy = drho_dtheta * dtheta_dy
            drho_dz = drho_dtheta * dtheta_dz
            # raw (u, v) w.r.t. x, y, z
            du_dx = (n - xg * xg / n) / n2 * rho_g + drho_dx * xg / n
            du_dy = (-xg * yg / n) / n2 * rho_g + drho_dy * xg / n
            du_dz = drho_dz * xg / n
            dv_dx = (-xg * yg / n) / n2 * rho_g + drho_dx * yg / n
            dv_dy = (n - yg * yg / n) / n2 * rho_g + drho_dy * yg / n
            dv_dz = drho_dz * yg / n

            # z column flips sign: z = -points[..., 2].
            jac_raw = np.stack(
                [
                    np.stack([du_dx, du_dy, -du_dz], axis=-1),
                    np.stack([dv_dx, dv_dy, -dv_dz], axis=-1),
                ],
                axis=-2,
            )
            jac[good] = self.affine_correction @ jac_raw
        return keypoints, jac.reshape(batch_shape + (2, 3))

    def get_intrinsic_parameters(self) -> np.ndarray:
        """(c0..c4, principal_x, principal_y)"""
        return np.concatenate([self.polynomial, self.principal_point]).astype(np.float64)

    def get_distortion_parameters(self) -> np.ndarray:
        """Affine correction entries, row-major."""
        return self.affine_correction.reshape(4).astype(np.float64)

    def describe(self) -> str:
        def row(v: np.ndarray) -> str:
            return " ".join(f"{float(c):g}" for c in np.asarray(v).reshape(-1))

        lines = [
            "  Projection = Omni",
            f"  Image size = {self.image_size[0]} {self.image_size[1]}",
            f"  Polynomial = {row(self.polynomial)}",
            f"  Principal point = {row(self.principal_point)}",
            f"  Inverse polynomial = {row(self.inverse_polynomial)}",
            "  Affine correction = ",
            row(self.affine_correction[0]),
            row(self.affine_correction[1]),
            "  Affine correction inverse = ",
            row(self.affine_correction_inverse[0]),
            row(self.affine_correction_inverse[1]),
        ]
        return "\n".join(lines) + "\n"

    def print(self, file: TextIO | None = None) -> None:
        out = sys.stdout if file is None else file
        out.write(self.describe())
