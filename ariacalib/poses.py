"""Rigid-body poses and the CAD sensor placements of the supported device subtypes."""

from __future__ import annotations

from functools import lru_cache

import numpy as np

__all__ = [
    "SE3",
    "make_rotation_matrix",
    "build_cad_pose",
    "cad_pose",
    "DEVICE_SUBTYPES",
]

_ORTHOGONALITY_TOLERANCE = 1e-5
_QUATERNION_EPSILON = 1e-10


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class SE3:
    """A rigid transform made of a rotation matrix and a translation vector."""

    __slots__ = ("_rotation", "_translation")

    def __init__(self, rotation, translation) -> None:
        rot = np.array(rotation, dtype=float)
        trans = np.array(translation, dtype=float)
        if rot.shape != (3, 3):
            raise ValueError(f"rotation must be 3x3, got shape {rot.shape}")
        if trans.shape != (3,):
            raise ValueError(f"translation must have 3 elements, got shape {trans.shape}")
        if np.linalg.norm(rot @ rot.T - np.eye(3)) > _ORTHOGONALITY_TOLERANCE:
            raise ValueError("rotation matrix is not orthogonal")
        if np.linalg.det(rot) <= 0.0:
            raise ValueError("rotation matrix must have a positive determinant")
        self._rotation = _readonly(rot)
        self._translation = _readonly(trans)

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation

    @property
    def translation(self) -> np.ndarray:
        return self._translation

    @classmethod
    def identity(cls) -> SE3:
        """The transform that leaves every point in place."""
        return cls(np.eye(3), np.zeros(3))

    @classmethod
    def from_quaternion(cls, qw, qx, qy, qz, translation) -> SE3:
        """Build a pose from a (normalised on the way in) quaternion and a translation."""
        q = np.array([qw, qx, qy, qz], dtype=float)
        norm_sq = float(q @ q)
        if norm_sq <= _QUATERNION_EPSILON:
            raise ValueError("quaternion must not be (close to) zero")
        w, x, y, z = q / np.sqrt(norm_sq)
        rot = np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
                [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
                [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
            ]
        )
        return cls(rot, translation)

    def inverse(self) -> SE3:
        """The transform that undoes this one."""
        rot_t = self._rotation.T
        return SE3(rot_t, -(rot_t @ self._translation))

    def matrix(self) -> np.ndarray:
        """The 4x4 homogeneous matrix of this transform."""
        mat = np.eye(4)
        mat[:3, :3] = self._rotation
        mat[:3, 3] = self._translation
        return mat

    def __matmul__(self, other):
        if isinstance(other, SE3):
            return SE3(
                self._rotation @ other._rotation,
                self._rotation @ other._translation + self._translation,
            )
        point = np.asarray(other, dtype=float)
        if point.shape != (3,):
            return NotImplemented
        return self._rotation @ point + self._translation

    def __repr__(self) -> str:
        return f"SE3(rotation={self._rotation.tolist()}, translation={self._translation.tolist()})"


def make_rotation_matrix(matrix) -> np.ndarray:
    """Return the rotation matrix closest to ``matrix``."""
    mat = np.asarray(matrix, dtype=float)
    if mat.shape != (3, 3):
        raise ValueError(f"matrix must be 3x3, got shape {mat.shape}")
    u, _, vt = np.linalg.svd(mat)
    diag = np.eye(3)
    diag[2, 2] = np.linalg.det(u @ vt)
    return u @ diag @ vt


def build_cad_pose(pose_array) -> SE3:
    """Build a pose from a position followed by the rotation's second and third columns."""
    values = np.asarray(pose_array, dtype=np.float32).astype(float)
    if values.shape != (9,):
        raise ValueError(f"pose_array must have 9 elements, got shape {values.shape}")
    rot = np.empty((3, 3))
    rot[:, 1] = values[3:6]
    rot[:, 2] = values[6:9]
    rot[:, 0] = np.cross(rot[:, 1], rot[:, 2])
    return SE3(make_rotation_matrix(rot), values[0:3])


_CAD_POSE_ARRAYS = {
    "DVT-L": {
        "camera-slam-left": (0.071351, 0.002372, 0.008454, 0.793353, 0.000000, -0.608761,
                             0.607927, -0.052336, 0.792266),
        "camera-slam-right": (-0.071351, 0.002372, 0.008454, 0.793353, 0.000000, 0.608761,
                              -0.607927, -0.052336, 0.792266),
        "camera-et-left": (0.055753, -0.019589, 0.004786, 0.034096, -0.508436, -0.860424,
                           -0.674299, 0.623745, -0.395300),
        "camera-et-right": (-0.055753, -0.019589, 0.004786, -0.034096, -0.508436, -0.860424,
                            0.674299, 0.623745, -0.395300),
        "camera-rgb": (0.058250, 0.007186, 0.012096, 1.000000, 0.000000, 0.000000,
                       0.000000, -0.130526, 0.991445),
        "baro0": (-0.009258, 0.010842, 0.017200, 0.000000, 0.000000, -1.000000,
                  0.173648, 0.984808, 0.000000),
        "mag0": (0.066201, -0.005760, -0.001777, 0.588330, 0.006520, -0.808595,
                 -0.808020, 0.043280, -0.587563),
        "mic0": (-0.046137, -0.029296, 0.006233, 0.981006, -0.109790, 0.159915,
                 -0.087780, -0.986430, -0.138744),
        "mic1": (0.009200, 0.010304, 0.01725, -0.984807, -0.173648, 0,
                 -0.173648, 0.984807, 0),
        "mic2": (0.046138, -0.029297, 0.006233, -0.981006, -0.109790, 0.159915,
                 0.087780, -0.986430, -0.138744),
        "mic3": (0.065925, 0.011961, 0.004305, -0.017386, 0.001521, 0.999848,
                 0.087156, 0.996195, 0.000000),
        "mic4": (-0.054800, 0.013142, 0.010960, 0.965337, 0.033710, 0.258819,
                 -0.034899, 0.999391, 0.000000),
        "mic5": (0.072318, 0.008272, -0.094955, 0.002477, -0.996176, 0.087334,
                 0.990114, -0.009805, -0.139920),
        "mic6": (-0.072319, 0.008271, -0.094955, -0.002477, -0.996176, 0.087334,
                 -0.990114, -0.009805, -0.139920),
    },
    "DVT-S": {
        "camera-slam-left": (0.069051, 0.002372, 0.009254, 0.793353, 0.000000, -0.608761,
                             0.607927, -0.052336, 0.792266),
        "camera-slam-right": (-0.069051, 0.002372, 0.009254, 0.793353, 0.000000, 0.608761,
                              -0.607927, -0.052336, 0.792266),
        "camera-et-left": (0.054298, -0.018500, 0.006210, 0.034478, -0.508118, -0.860597,
                           -0.674245, 0.623794, -0.395316),
        "camera-et-right": (-0.054298, -0.018500, 0.006210, -0.034478, -0.508118, -0.860597,
                            0.674245, 0.623794, -0.395316),
        "camera-rgb": (0.056000, 0.007121, 0.012883, 1.000000, 0.000000, 0.000000,
                       0.000000, -0.130526, 0.991445),
        "baro0": (-0.009258, 0.010842, 0.017200, 0.000000, 0.000000, -1.000000,
                  0.173648, 0.984808, 0.000000),
        "mag0": (0.064372, -0.005868, 0.000699, 0.587481, -0.015929, -0.809081,
                 -0.808020, 0.043280, -0.587563),
        "mic0": (-0.045906, -0.027938, 0.006667, 0.97508224, -0.160939007, 0.152686805,
                 -0.14019156, -0.980440, -0.138144),
        "mic1": (0.009161, 0.010231, 0.017250, -0.984808, -0.173648, 0.000000,
                 -0.173648, 0.984808, 0.000000),
        "mic2": (0.045905, -0.027931, 0.006668, -0.975082, -0.160938, 0.152687,
                 0.140190, -0.980440, -0.138146),
        "mic3": (0.063471, 0.012034, 0.005566, -0.017386, 0.001521, 0.999848,
                 0.087156, 0.996195, 0.000000),
        "mic4": (-0.052398, 0.013200, 0.012160, 0.965337, 0.033710, 0.258819,
                 -0.034899, 0.999391, 0.000000),
        "mic5": (0.069856, 0.008270, -0.093105, 0.002466, -0.996176, 0.087334,
                 0.990147, -0.009795, -0.139689),
        "mic6": (-0.069822, 0.008268, -0.093138, -0.002487, -0.996176, 0.087333,
                 -0.990081, -0.009815, -0.140151),
    },
}

DEVICE_SUBTYPES = tuple(_CAD_POSE_ARRAYS)


@lru_cache(maxsize=None)
def cad_pose(device_subtype: str, label: str) -> SE3:
    """Return the CAD pose of sensor ``label`` on a device of ``device_subtype``.

    Raises KeyError when the subtype or the label is unknown.
    """
    try:
        subtype_table = _CAD_POSE_ARRAYS[device_subtype]
    except KeyError:
        raise KeyError(f"unknown device subtype: {device_subtype!r}") from None
    try:
        values = subtype_table[label]
    except KeyError:
        raise KeyError(f"no CAD pose for {label!r} on {device_subtype!r}") from None
    return build_cad_pose(values)