"""Kannala-Brandt fisheye projection model with four radial coefficients.

Parameters are ``fx, fy, cx, cy, kb0, kb1, kb2, kb3``. The first radial
coefficient of the original formulation is fixed to 1, so ``kb0`` multiplies
``theta**3``.
"""

from __future__ import annotations

import math

import numpy as np

from ariacalib.newton import MAX_ITERATIONS, has_converged, init_theta

__all__ = ["KannalaBrandtK3", "EPSILON"]

EPSILON = 1e-10


def _as_vector(value, size: int, what: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{what} must have {size} elements, got shape {arr.shape}")
    return arr


class KannalaBrandtK3:
    """Projection and unprojection for the Kannala-Brandt K3 model."""

    NUM_PARAMS = 8
    NAME = "KannalaBrandtK3"
    DESCRIPTION = "fx, fy, cx, cy, kb0, kb1, kb2, kb3"
    NUM_DISTORTION_PARAMS = 4
    FOCAL_X_IDX = 0
    FOCAL_Y_IDX = 1
    PRINCIPAL_POINT_COL_IDX = 2
    PRINCIPAL_POINT_ROW_IDX = 3
    IS_FISHEYE = True
    HAS_ANALYTICAL_PROJECTION = True

    def _params(self, params) -> np.ndarray:
        return _as_vector(params, self.NUM_PARAMS, "params")

    def _project(self, point, params, with_jacobians: bool):
        p = _as_vector(point, 3, "point")
        prm = self._params(params)
        x, y, z = p
        if z == 0.0:
            raise ValueError(f"z({z}) must not be zero.")

        ff = prm[0:2]
        pp = prm[2:4]
        k0, k1, k2, k3 = prm[4:8]

        radius_sq = x * x + y * y
        d_point = d_params = None

        if radius_sq > EPSILON:
            radius = math.sqrt(radius_sq)
            radius_inv = 1.0 / radius
            theta = math.atan2(radius, z)
            theta2 = theta * theta
            theta4 = theta2 * theta2
            theta6 = theta4 * theta2
            theta8 = theta4 * theta4
            r_distorted = theta * (1.0 + k0 * theta2 + k1 * theta4 + k2 * theta6 + k3 * theta8)
            scaling = r_distorted * radius_inv

            if with_jacobians:
                norm_sq = z * z + radius_sq
                r_dist_deriv = (
                    1.0
                    + 3.0 * k0 * theta2
                    + 5.0 * k1 * theta4
                    + 7.0 * k2 * theta6
                    + 9.0 * k3 * theta8
                )
                x13 = z * r_dist_deriv / norm_sq - scaling
                r_dist_deriv_norm = r_dist_deriv / norm_sq
                x20 = z * r_dist_deriv / norm_sq - radius_inv * r_distorted

                off_diag = y * x13 * x / radius_sq
                d_point = np.array(
                    [
                        [x * x / radius_sq * x20 + scaling, off_diag, -x * r_dist_deriv_norm],
                        [off_diag, y * y / radius_sq * x20 + scaling, -y * r_dist_deriv_norm],
                    ]
                )
                d_point = np.diag(ff) @ d_point

                x_scaled = x * prm[0] * radius_inv
                y_scaled = y * prm[1] * radius_inv
                theta3 = theta * theta2
                theta5 = theta3 * theta2
                theta7 = theta5 * theta2
                theta9 = theta7 * theta2
                d_params = np.array(
                    [
                        [x * scaling, 0.0, 1.0, 0.0,
                         x_scaled * theta3, x_scaled * theta5, x_scaled * theta7, x_scaled * theta9],
                        [0.0, y * scaling, 0.0, 1.0,
                         y_scaled * theta3, y_scaled * theta5, y_scaled * theta7, y_scaled * theta9],
                    ]
                )

            px = scaling * ff * np.array([x, y]) + pp
            return px, d_point, d_params

        # Linearise around radius = 0.
        if with_jacobians:
            z2 = z * z
            d_point = np.array(
                [
                    [ff[0] / z, 0.0, -ff[0] * x / z2],
                    [0.0, ff[1] / z, -ff[1] * y / z2],
                ]
            )
            d_params = np.zeros((2, self.NUM_PARAMS))
            d_params[0, 0] = x / z
            d_params[0, 2] = 1.0
            d_params[1, 1] = y / z
            d_params[1, 3] = 1.0
        px = ff * np.array([x, y]) / z + pp
        return px, d_point, d_params

    def project(self, point, params) -> np.ndarray:
        """Project a 3D point in the camera frame to pixel coordinates."""
        return self._project(point, params, with_jacobians=False)[0]

    def project_with_jacobians(self, point, params):
        """Project a point and return ``(pixel, d_pixel/d_point, d_pixel/d_params)``."""
        return self._project(point, params, with_jacobians=True)

    def unproject(self, uv, params) -> np.ndarray:
        """Unproject a pixel to a ray in the camera frame with ``|z| == 1``."""
        pix = _as_vector(uv, 2, "uv")
        prm = self._params(params)
        fu, fv, u0, v0 = prm[0:4]
        k0, k1, k2, k3 = prm[4:8]

        un = (pix[0] - u0) / fu
        vn = (pix[1] - v0) / fv
        rth2 = un * un + vn * vn

        if rth2 < EPSILON * EPSILON:
            return np.array([un, vn, 1.0])

        rth = math.sqrt(rth2)

        th = init_theta(rth)
        for _ in range(MAX_ITERATIONS):
            th2 = th * th
            th4 = th2 * th2
            th6 = th4 * th2
            th8 = th4 * th4
            thd = th * (1.0 + k0 * th2 + k1 * th4 + k2 * th6 + k3 * th8)
            d_thd = 1.0 + 3.0 * k0 * th2 + 5.0 * k1 * th4 + 7.0 * k2 * th6 + 9.0 * k3 * th8
            step = (thd - rth) / d_thd
            th -= step
            if has_converged(step):
                break

        radius_undistorted = math.tan(th)
        if radius_undistorted < 0.0:
            return np.array(
                [-radius_undistorted * un / rth, -radius_undistorted * vn / rth, -1.0]
            )
        return np.array([radius_undistorted * un / rth, radius_undistorted * vn / rth, 1.0])

    def unproject_unit_plane(self, uv, params) -> np.ndarray:
        """Unproject a pixel onto the ``z = 1`` plane, returning its ``(x, y)``."""
        return self.unproject(uv, params)[:2]

    def unproject_unit_plane_with_jacobian(self, uv, params):
        """Unproject onto the unit plane and return ``(point, d_point/d_pixel)``."""
        prm = self._params(params)
        ray = self.unproject(uv, prm)
        _, j_point, _ = self.project_with_jacobians(ray, prm)
        d_uv = j_point[:, :2] / prm[0]
        d_uv = np.linalg.inv(d_uv) / prm[0]
        return ray[:2], d_uv

    def scale_params(self, scale: float, params) -> np.ndarray:
        """Return parameters adjusted for an image scaled by ``scale``."""
        prm = self._params(params).copy()
        prm[0] *= scale
        prm[1] *= scale
        prm[2] = scale * (prm[2] + 0.5) - 0.5
        prm[3] = scale * (prm[3] + 0.5) - 0.5
        return prm

    def subtract_from_origin(self, u: float, v: float, params) -> np.ndarray:
        """Return parameters with the principal point shifted by ``(-u, -v)``."""
        prm = self._params(params).copy()
        prm[2] -= u
        prm[3] -= v
        return prm