"""Device calibration model: parses calibration JSON and relates sensor frames."""

from __future__ import annotations

import copy
import json
import math
from collections.abc import Mapping

import numpy as np

from ariacalib.calibration import (
    BarometerCalibration,
    CameraCalibration,
    CameraProjectionModel,
    ImuCalibration,
    LinearPressureModel,
    LinearRectificationModel,
    MagnetometerCalibration,
    MicrophoneCalibration,
    ModelType,
)
from ariacalib.fisheye import FISHEYE624
from ariacalib.kannala_brandt import KannalaBrandtK3
from ariacalib.poses import SE3, cad_pose

__all__ = [
    "DeviceModelError",
    "DeviceModel",
    "normalize_to_array_if_string",
    "SLAM_VALID_RADIUS",
    "RGB_VALID_RADIUS",
]

# Circular mask radius for full resolution RGB and SLAM cameras.
SLAM_VALID_RADIUS = 330
RGB_VALID_RADIUS = 1415

_REFERENCE_CAMERA = "camera-slam-left"


class DeviceModelError(ValueError):
    """Raised when a calibration cannot be parsed or a sensor is unknown."""


def normalize_to_array_if_string(value):
    """Decode a calibration section stored as a Python-style string.

    Online calibration data may hold a section as a string using single quotes
    and ``True``/``False``; such a string is turned into JSON and decoded.
    Any other value is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    text = value.replace("'", '"').replace("True", "true").replace("False", "false")
    return json.loads(text)


def _vector(values, size: int) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"expected {size} numbers, got shape {arr.shape}")
    return arr


def _matrix3(rows) -> np.ndarray:
    if len(rows) != 3:
        raise ValueError("expected a 3x3 matrix")
    return np.array([_vector(row, 3) for row in rows])


def _se3(data) -> SE3:
    translation = _vector(data["Translation"], 3)
    quaternion = data["UnitQuaternion"]
    if len(quaternion) != 2:
        raise ValueError("UnitQuaternion must hold a real part and an imaginary vector")
    qx, qy, qz = _vector(quaternion[1], 3)
    return SE3.from_quaternion(float(quaternion[0]), qx, qy, qz, translation)


def _camera(data) -> CameraCalibration:
    label = str(data["Label"])
    projection = data["Projection"]
    model = CameraProjectionModel(
        ModelType(projection["Name"]), np.array(projection["Params"], dtype=float)
    )
    if label == "camera-rgb":
        valid_radius = RGB_VALID_RADIUS
    elif label in ("camera-slam-left", "camera-slam-right"):
        valid_radius = SLAM_VALID_RADIUS
    else:
        valid_radius = -1
    return CameraCalibration(label, model, _se3(data["T_Device_Camera"]), valid_radius)


def _rect_model(data) -> LinearRectificationModel:
    return LinearRectificationModel(
        _matrix3(data["Model"]["RectificationMatrix"]), _vector(data["Bias"]["Offset"], 3)
    )


def _imu(data) -> ImuCalibration:
    return ImuCalibration(
        str(data["Label"]),
        _rect_model(data["Accelerometer"]),
        _rect_model(data["Gyroscope"]),
        _se3(data["T_Device_Imu"]),
    )


class DeviceModel:
    """Calibration of every sensor of one device, looked up by label."""

    def __init__(self) -> None:
        self._cameras: dict[str, CameraCalibration] = {}
        self._imus: dict[str, ImuCalibration] = {}
        self._magnetometers: dict[str, MagnetometerCalibration] = {}
        self._barometers: dict[str, BarometerCalibration] = {}
        self._microphones: dict[str, MicrophoneCalibration] = {}
        self._updated_cameras: set[str] = set()
        self._device_subtype = ""

    @property
    def device_subtype(self) -> str:
        """The device build version, such as ``"DVT-L"`` or ``"DVT-S"``; empty if unknown."""
        return self._device_subtype

    # Parsing --------------------------------------------------------------

    @classmethod
    def from_json(cls, json_data) -> DeviceModel:
        """Build a model from a calibration JSON string or an already decoded mapping."""
        if isinstance(json_data, (str, bytes, bytearray)):
            try:
                doc = json.loads(json_data)
            except json.JSONDecodeError as exc:
                raise DeviceModelError(f"invalid calibration JSON: {exc}") from exc
        else:
            doc = json_data
        if not isinstance(doc, Mapping):
            raise DeviceModelError("calibration document must be a JSON object")

        model = cls()
        try:
            model._load(doc)
        except DeviceModelError:
            raise
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise DeviceModelError(f"malformed calibration: {exc}") from exc
        return model

    def _load(self, doc: Mapping) -> None:
        if "CameraCalibrations" in doc:
            for item in normalize_to_array_if_string(doc["CameraCalibrations"]):
                camera = _camera(item)
                self._cameras[camera.label] = camera
        if "ImuCalibrations" in doc:
            for item in normalize_to_array_if_string(doc["ImuCalibrations"]):
                imu = _imu(item)
                self._imus[imu.label] = imu

        if "DeviceClassInfo" not in doc:
            return
        self._device_subtype = str(doc["DeviceClassInfo"]["BuildVersion"])
        for item in doc.get("MagCalibrations", ()):
            label = str(item["Label"])
            self._magnetometers[label] = MagnetometerCalibration(
                label, _rect_model(item), self._sensor_pose(label)
            )
        for item in doc.get("BaroCalibrations", ()):
            label = str(item["Label"])
            pressure = LinearPressureModel(
                float(item["PressureModel"]["Slope"]), float(item["PressureModel"]["OffsetPa"])
            )
            self._barometers[label] = BarometerCalibration(
                label, pressure, self._sensor_pose(label)
            )
        for item in doc.get("MicCalibrations", ()):
            label = str(item["Label"])
            self._microphones[label] = MicrophoneCalibration(
                label, float(item["DSensitivity1KDbv"]), self._sensor_pose(label)
            )

    def _sensor_pose(self, label: str) -> SE3:
        """Pose of a sensor from its CAD placement, anchored on the calibrated SLAM camera."""
        reference = self._cameras.get(_REFERENCE_CAMERA)
        if reference is None:
            raise DeviceModelError(
                "Camera calibration must exist for loading device model"
            )
        try:
            cad_reference = cad_pose(self._device_subtype, _REFERENCE_CAMERA)
            cad_sensor = cad_pose(self._device_subtype, label)
        except KeyError as exc:
            raise DeviceModelError(str(exc.args[0])) from exc
        return reference.t_device_camera @ cad_reference.inverse() @ cad_sensor

    # Lookups --------------------------------------------------------------

    def camera_calib(self, label: str) -> CameraCalibration | None:
        """A copy of the camera calibration with this label, or None."""
        return copy.deepcopy(self._cameras.get(label))

    def imu_calib(self, label: str) -> ImuCalibration | None:
        """A copy of the IMU calibration with this label, or None."""
        return copy.deepcopy(self._imus.get(label))

    def magnetometer_calib(self, label: str) -> MagnetometerCalibration | None:
        """A copy of the magnetometer calibration with this label, or None."""
        return copy.deepcopy(self._magnetometers.get(label))

    def barometer_calib(self, label: str) -> BarometerCalibration | None:
        """A copy of the barometer calibration with this label, or None."""
        return copy.deepcopy(self._barometers.get(label))

    def microphone_calib(self, label: str) -> MicrophoneCalibration | None:
        """A copy of the microphone calibration with this label, or None."""
        return copy.deepcopy(self._microphones.get(label))

    def cad_sensor_pose(self, label: str) -> SE3 | None:
        """The CAD pose of a sensor for this device's subtype, or None if unknown."""
        if not self._device_subtype:
            return None
        try:
            return cad_pose(self._device_subtype, label)
        except KeyError:
            return None

    def camera_labels(self) -> list[str]:
        return list(self._cameras)

    def imu_labels(self) -> list[str]:
        return list(self._imus)

    def magnetometer_labels(self) -> list[str]:
        return list(self._magnetometers)

    def barometer_labels(self) -> list[str]:
        return list(self._barometers)

    def microphone_labels(self) -> list[str]:
        return list(self._microphones)

    # Operations -----------------------------------------------------------

    def _device_pose(self, label: str) -> SE3:
        if label in self._cameras:
            return self._cameras[label].t_device_camera
        if label in self._imus:
            return self._imus[label].t_device_imu
        raise DeviceModelError(f"no camera or IMU calibration for {label!r}")

    def transform(self, point, source_label: str, dest_label: str) -> np.ndarray:
        """Express a point given in one camera or IMU frame in another one."""
        t_device_source = self._device_pose(source_label)
        t_device_dest = self._device_pose(dest_label)
        return t_device_dest.inverse() @ (t_device_source @ np.asarray(point, dtype=float))

    def try_crop_and_scale_camera_calibration(
        self, label: str, native_resolution: int, new_width: int
    ) -> bool:
        """Adapt a camera's intrinsics to a lower image resolution, at most once.

        RGB images are assumed centre-cropped then binned; eye-tracking images
        are assumed linearly rescaled. Returns True when the calibration has
        been (or already was) adapted.
        """
        if label in self._updated_cameras:
            return True
        camera = self._cameras.get(label)
        if camera is None:
            return False
        params = camera.projection_model.projection_params

        if label == "camera-rgb":
            col = FISHEYE624.principal_point_col_idx
            row = FISHEYE624.principal_point_row_idx
            if params[col] * 2 > new_width:
                rescale = math.floor(native_resolution / new_width)
                half_cropped = (native_resolution - new_width * rescale) / 2.0
                params[col] -= half_cropped
                params[row] -= half_cropped
                params[FISHEYE624.focal_x_idx] /= rescale
                params[col] /= rescale
                params[row] /= rescale
                if camera.valid_radius != -1:
                    camera.valid_radius = int(camera.valid_radius / rescale)
                self._updated_cameras.add(label)
                return True
        elif label in ("camera-et-left", "camera-et-right"):
            kb = KannalaBrandtK3
            if params[kb.PRINCIPAL_POINT_COL_IDX] * 2 > new_width:
                rescale = math.floor(native_resolution / new_width)
                params[kb.FOCAL_X_IDX] /= rescale
                params[kb.FOCAL_Y_IDX] /= rescale
                params[kb.PRINCIPAL_POINT_COL_IDX] /= rescale
                params[kb.PRINCIPAL_POINT_ROW_IDX] /= rescale
                self._updated_cameras.add(label)
                return True
        return False