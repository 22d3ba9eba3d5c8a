"""Fisheye projection model with radial, tangential and thin-prism distortion.

The model maps a point ``(x, y, z)`` in the camera frame to a pixel as::

    a = x / z, b = y / z, r = sqrt(a**2 + b**2), th = atan(r)
    [x_r, y_r] = (th + k0 th**3 + k1 th**5 + ...) * [a, b] / r
    uvDistorted = [x_r, y_r] + tangential + thinPrism
    pixel = diag(fu, fv) * uvDistorted + [cu, cv]

with the parameter vector laid out as
``[fu {fv} cu cv k_0 .. k_{numK-1} {p0 p1} {s0 s1 s2 s3}]``.

The model is symmetric: ``project(p) == project(-p)``, so points behind the
camera project onto the same pixels as their mirror images.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass

import numpy as np

from ariacalib.kannala_brandt import EPSILON
from ariacalib.newton import MAX_ITERATIONS, has_converged

__all__ = ["FisheyeRadTanThinPrism", "FISHEYE624"]

_MACHINE_EPSILON = sys.float_info.epsilon


def _as_vector(value, size: int, what: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{what} must have {size} elements, got shape {arr.shape}")
    return arr


@dataclass(frozen=True)
class FisheyeRadTanThinPrism:
    """A configurable fisheye model with optional tangential and thin-prism terms."""

    num_k: int
    use_tangential: bool
    use_thin_prism: bool
    use_single_focal_length: bool

    def __post_init__(self) -> None:
        if self.num_k < 0:
            raise ValueError("num_k must be non-negative")

    # Parameter layout -----------------------------------------------------

    @property
    def num_params(self) -> int:
        return (
            (4 - int(self.use_single_focal_length))
            + self.num_k
            + 2 * int(self.use_tangential)
            + 4 * int(self.use_thin_prism)
        )

    @property
    def num_distortion_params(self) -> int:
        return self.num_k + 2 * int(self.use_tangential) + 4 * int(self.use_thin_prism)

    @property
    def focal_x_idx(self) -> int:
        return 0

    @property
    def focal_y_idx(self) -> int:
        return 1 - int(self.use_single_focal_length)

    @property
    def principal_point_col_idx(self) -> int:
        return 2 - int(self.use_single_focal_length)

    @property
    def principal_point_row_idx(self) -> int:
        return 3 - int(self.use_single_focal_length)

    @property
    def is_fisheye(self) -> bool:
        return True

    @property
    def has_analytical_projection(self) -> bool:
        return True

    @property
    def _start_k(self) -> int:
        return self.principal_point_row_idx + 1

    @property
    def _start_p(self) -> int:
        return self._start_k + self.num_k

    @property
    def _start_s(self) -> int:
        return self._start_p + 2 * int(self.use_tangential)

    # Helpers --------------------------------------------------------------

    def _params(self, params) -> np.ndarray:
        return _as_vector(params, self.num_params, "params")

    def _focal(self, prm: np.ndarray) -> np.ndarray:
        if self.use_single_focal_length:
            return np.array([prm[0], prm[0]])
        return prm[0:2].copy()

    def _principal_point(self, prm: np.ndarray) -> np.ndarray:
        col = self.principal_point_col_idx
        return prm[col:col + 2].copy()

    def _radial_coeffs(self, prm: np.ndarray) -> np.ndarray:
        return prm[self._start_k:self._start_k + self.num_k]

    def _distort(self, xr_yr: np.ndarray, prm: np.ndarray):
        """Apply tangential and thin-prism terms; return (uv, squared norm, powers)."""
        sq_norm = float(xr_yr @ xr_yr)
        uv = xr_yr.copy()
        if self.use_tangential:
            p = prm[self._start_p:self._start_p + 2]
            temp = 2.0 * float(xr_yr @ p)
            uv += temp * xr_yr + sq_norm * p
        powers = np.array([sq_norm, sq_norm * sq_norm])
        if self.use_thin_prism:
            s = prm[self._start_s:self._start_s + 4]
            uv[0] += float(s[0:2] @ powers)
            uv[1] += float(s[2:4] @ powers)
        return uv, sq_norm, powers

    def _duv_distorted_dxryr(self, xr_yr: np.ndarray, sq_norm: float, prm: np.ndarray) -> np.ndarray:
        jac = np.eye(2)
        if self.use_tangential:
            p0, p1 = prm[self._start_p], prm[self._start_p + 1]
            jac[0, 0] = 1.0 + 6.0 * xr_yr[0] * p0 + 2.0 * xr_yr[1] * p1
            off_diag = 2.0 * (xr_yr[0] * p1 + xr_yr[1] * p0)
            jac[0, 1] = off_diag
            jac[1, 0] = off_diag
            jac[1, 1] = 1.0 + 6.0 * xr_yr[1] * p1 + 2.0 * xr_yr[0] * p0
        if self.use_thin_prism:
            s = prm[self._start_s:self._start_s + 4]
            temp1 = 2.0 * (s[0] + 2.0 * s[1] * sq_norm)
            jac[0, 0] += xr_yr[0] * temp1
            jac[0, 1] += xr_yr[1] * temp1
            temp2 = 2.0 * (s[2] + 2.0 * s[3] * sq_norm)
            jac[1, 0] += xr_yr[0] * temp2
            jac[1, 1] += xr_yr[1] * temp2
        return jac

    def _xr_yr_from_uv_distorted(self, uv_distorted: np.ndarray, prm: np.ndarray) -> np.ndarray:
        if not self.use_tangential and not self.use_thin_prism:
            return uv_distorted
        xr_yr = uv_distorted.copy()
        for _ in range(MAX_ITERATIONS):
            uv_est, sq_norm, _ = self._distort(xr_yr, prm)
            jac = self._duv_distorted_dxryr(xr_yr, sq_norm, prm)
            correction = np.linalg.inv(jac) @ (uv_distorted - uv_est)
            xr_yr = xr_yr + correction
            if has_converged(correction):
                break
        return xr_yr

    def _theta_from_norm_xr_yr(self, th_radial_desired: float, prm: np.ndarray) -> float:
        ks = self._radial_coeffs(prm)
        th = th_radial_desired
        for _ in range(MAX_ITERATIONS):
            theta_sq = th * th
            th_radial = 1.0
            dthd_dth = 1.0
            theta2is = theta_sq
            for i, k in enumerate(ks):
                th_radial += theta2is * k
                dthd_dth += (2 * i + 3) * k * theta2is
                theta2is *= theta_sq
            th_radial *= th

            if abs(dthd_dth) > EPSILON:
                step = (th_radial_desired - th_radial) / dthd_dth
            elif (th_radial_desired - th_radial) * dthd_dth > 0.0:
                step = 10.0 * EPSILON
            else:
                step = -10.0 * EPSILON

            th += step
            if has_converged(step):
                break
            # Stay within a 180 degree field of view to avoid numerical overflow.
            if abs(th) >= math.pi / 2.0:
                th = 0.999 * math.pi / 2.0
        return th

    # Projection -----------------------------------------------------------

    def _project(self, point, params, with_jacobians: bool):
        p = _as_vector(point, 3, "point")
        prm = self._params(params)
        z = float(p[2])
        if z == 0.0:
            raise ValueError(f"z({z}) must not be zero.")

        focal = self._focal(prm)
        ks = self._radial_coeffs(prm)

        inv_z = 1.0 / z
        ab = p[0:2] * inv_z
        ab_sq = ab * ab
        r_sq = float(ab_sq[0] + ab_sq[1])
        r = math.sqrt(r_sq)
        th = math.atan(r)
        theta_sq = th * th

        th_radial = 1.0
        theta2is = theta_sq
        for k in ks:
            th_radial += theta2is * k
            theta2is *= theta_sq

        th_divr = 1.0 if r < _MACHINE_EPSILON else th / r

        xr_yr = (th_radial * th_divr) * ab
        uv_distorted, sq_norm, powers = self._distort(xr_yr, prm)

        d_point = d_params = None
        if with_jacobians:
            duv_dxryr = self._duv_distorted_dxryr(xr_yr, sq_norm, prm)

            if r == 0.0:
                duv_dab = np.eye(2)
            else:
                dthd_dth = 1.0
                theta2i = theta_sq
                for i, k in enumerate(ks):
                    dthd_dth += (2 * i + 3) * k * theta2i
                    theta2i *= theta_sq
                w1 = dthd_dth / (r_sq + r_sq * r_sq)
                w2 = th_radial * th_divr / r_sq
                ab10 = ab[0] * ab[1]
                temp1 = np.array(
                    [
                        [w1 * ab_sq[0] + w2 * ab_sq[1], (w1 - w2) * ab10],
                        [(w1 - w2) * ab10, w1 * ab_sq[1] + w2 * ab_sq[0]],
                    ]
                )
                duv_dab = duv_dxryr @ temp1

            left = focal[:, None] * duv_dab * inv_z
            d_point = np.empty((2, 3))
            d_point[:, 0:2] = left
            d_point[:, 2] = -left @ ab

            d_params = np.zeros((2, self.num_params))
            if self.use_single_focal_length:
                d_params[:, 0] = uv_distorted
            else:
                d_params[:, 0:2] = np.diag(uv_distorted)
            col = self.principal_point_col_idx
            d_params[:, col:col + 2] = np.eye(2)

            if self.num_k > 0:
                temp = focal * (th_divr * (duv_dxryr @ ab))
                theta2i = theta_sq
                for i in range(self.num_k):
                    d_params[:, self._start_k + i] = theta2i * temp
                    theta2i *= theta_sq

            if self.use_tangential:
                sp = self._start_p
                d_params[:, sp:sp + 2] = np.outer(2.0 * xr_yr * focal, xr_yr)
                d_params[0, sp] += focal[0] * sq_norm
                d_params[1, sp + 1] += focal[1] * sq_norm

            if self.use_thin_prism:
                ss = self._start_s
                d_params[0, ss:ss + 2] = focal[0] * powers
                d_params[1, ss:ss + 2] = 0.0
                d_params[0, ss + 2:ss + 4] = 0.0
                d_params[1, ss + 2:ss + 4] = focal[1] * powers

        pixel = uv_distorted * focal + self._principal_point(prm)
        return pixel, d_point, d_params

    def project(self, point, params) -> np.ndarray:
        """Project a 3D point in the camera frame to pixel coordinates."""
        return self._project(point, params, with_jacobians=False)[0]

    def project_with_jacobians(self, point, params):
        """Project a point and return ``(pixel, d_pixel/d_point, d_pixel/d_params)``."""
        return self._project(point, params, with_jacobians=True)

    def unproject(self, uv, params) -> np.ndarray:
        """Unproject a pixel to a ray in the camera frame with ``z == 1``."""
        pix = _as_vector(uv, 2, "uv")
        prm = self._params(params)
        uv_distorted = (pix - self._principal_point(prm)) / self._focal(prm)

        xr_yr = self._xr_yr_from_uv_distorted(uv_distorted, prm)
        norm = float(np.linalg.norm(xr_yr))
        if norm == 0.0:
            return np.array([0.0, 0.0, 1.0])

        theta = self._theta_from_norm_xr_yr(norm, prm)
        head = math.tan(theta) / norm * xr_yr
        return np.array([head[0], head[1], 1.0])

    def unproject_unit_plane(self, uv, params) -> np.ndarray:
        """Unproject a pixel onto the ``z = 1`` plane, returning its ``(x, y)``."""
        return self.unproject(uv, params)[:2]

    def unproject_unit_plane_with_jacobian(self, uv, params):
        """Unproject onto the unit plane and return ``(point, d_point/d_pixel)``."""
        prm = self._params(params)
        ray = self.unproject(uv, prm)
        _, j_point, _ = self.project_with_jacobians(ray, prm)
        return ray[:2], np.linalg.inv(j_point[:, :2])

    def scale_params(self, scale: float, params) -> np.ndarray:
        """Return parameters adjusted for an image scaled by ``scale``."""
        prm = self._params(params).copy()
        prm[self.focal_x_idx] *= scale
        if not self.use_single_focal_length:
            prm[self.focal_y_idx] *= scale
        col, row = self.principal_point_col_idx, self.principal_point_row_idx
        prm[col] = scale * (prm[col] + 0.5) - 0.5
        prm[row] = scale * (prm[row] + 0.5) - 0.5
        return prm

    def subtract_from_origin(self, u: float, v: float, params) -> np.ndarray:
        """Return parameters with the principal point shifted by ``(-u, -v)``."""
        prm = self._params(params).copy()
        prm[self.principal_point_col_idx] -= u
        prm[self.principal_point_row_idx] -= v
        return prm


# Six radial, two tangential and four thin-prism coefficients, one focal length.
FISHEYE624 = FisheyeRadTanThinPrism(6, True, True, True)