"""Calibration records for the cameras and other sensors of a device."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from ariacalib.fisheye import FISHEYE624
from ariacalib.kannala_brandt import KannalaBrandtK3
from ariacalib.poses import SE3

__all__ = [
    "ModelType",
    "CameraProjectionModel",
    "CameraCalibration",
    "LinearRectificationModel",
    "ImuCalibration",
    "MagnetometerCalibration",
    "LinearPressureModel",
    "BarometerCalibration",
    "MicrophoneCalibration",
]

_KANNALA_BRANDT = KannalaBrandtK3()


class ModelType(Enum):
    """Supported camera projection models, valued by their calibration-file names."""

    KANNALA_BRANDT_K3 = "KannalaBrandtK3"
    FISHEYE624 = "FisheyeRadTanThinPrism"


_MODELS = {
    ModelType.KANNALA_BRANDT_K3: _KANNALA_BRANDT,
    ModelType.FISHEYE624: FISHEYE624,
}


@dataclass
class CameraProjectionModel:
    """A projection model type together with its intrinsic parameters."""

    model_type: ModelType
    projection_params: np.ndarray

    def __post_init__(self) -> None:
        self.model_type = ModelType(self.model_type)
        self.projection_params = np.array(self.projection_params, dtype=float)

    @property
    def _model(self):
        return _MODELS[self.model_type]

    def _index(self, name: str) -> int:
        model = self._model
        if self.model_type is ModelType.KANNALA_BRANDT_K3:
            return getattr(model, name.upper())
        return getattr(model, name)

    def project(self, point) -> np.ndarray:
        """Project a 3D point in the camera frame to pixel coordinates."""
        return self._model.project(point, self.projection_params)

    def unproject(self, uv) -> np.ndarray:
        """Unproject a pixel to a ray in the camera frame."""
        return self._model.unproject(uv, self.projection_params)

    def principal_point(self) -> np.ndarray:
        """The principal point as ``[cx, cy]``."""
        params = self.projection_params
        return np.array(
            [
                params[self._index("principal_point_col_idx")],
                params[self._index("principal_point_row_idx")],
            ]
        )

    def focal_lengths(self) -> np.ndarray:
        """The focal lengths as ``[fx, fy]``."""
        params = self.projection_params
        return np.array(
            [params[self._index("focal_x_idx")], params[self._index("focal_y_idx")]]
        )


@dataclass
class CameraCalibration:
    """Intrinsics and extrinsics of one camera.

    ``valid_radius`` is the radius around the principal point that the lens
    covers; a negative value means the whole sensor holds image data.
    """

    label: str
    projection_model: CameraProjectionModel
    t_device_camera: SE3 = field(default_factory=SE3.identity)
    valid_radius: float = -1


@dataclass
class LinearRectificationModel:
    """A linear correction ``measured = M @ true + bias`` of a 3-axis sensor."""

    rectification_matrix: np.ndarray
    bias: np.ndarray

    def __post_init__(self) -> None:
        self.rectification_matrix = np.array(self.rectification_matrix, dtype=float)
        self.bias = np.array(self.bias, dtype=float)
        if self.rectification_matrix.shape != (3, 3):
            raise ValueError("rectification_matrix must be 3x3")
        if self.bias.shape != (3,):
            raise ValueError("bias must have 3 elements")

    def compensate_for_systematic_error_from_measurement(self, v_raw) -> np.ndarray:
        """Remove the bias and the linear distortion from a raw measurement."""
        return np.linalg.solve(self.rectification_matrix, np.asarray(v_raw, dtype=float) - self.bias)

    def distort_with_systematic_error(self, v_compensated) -> np.ndarray:
        """Apply the linear distortion and the bias to a compensated vector."""
        return self.rectification_matrix @ np.asarray(v_compensated, dtype=float) + self.bias


@dataclass
class ImuCalibration:
    """Accelerometer and gyroscope models of one IMU and its pose on the device."""

    label: str
    accel: LinearRectificationModel
    gyro: LinearRectificationModel
    t_device_imu: SE3 = field(default_factory=SE3.identity)


@dataclass
class MagnetometerCalibration:
    """Rectification model of one magnetometer and its pose on the device."""

    label: str
    model: LinearRectificationModel
    t_device_magnetometer: SE3 = field(default_factory=SE3.identity)


@dataclass
class LinearPressureModel:
    """Barometer correction ``corrected = slope * reading + offset_pa`` (pascals)."""

    slope: float
    offset_pa: float


@dataclass
class BarometerCalibration:
    """Pressure model of one barometer and its pose on the device."""

    label: str
    pressure: LinearPressureModel
    t_device_barometer: SE3 = field(default_factory=SE3.identity)


@dataclass
class MicrophoneCalibration:
    """Sensitivity offset (dBV at 1 kHz, against a reference) and pose of one microphone."""

    label: str
    d_sensitivity_1k_dbv: float
    t_device_microphone: SE3 = field(default_factory=SE3.identity)