# ariacalib

Calibration models for Aria glasses, built on NumPy.

The package reads a device calibration document and gives you:

- camera intrinsics with two fisheye projection models,
  `KannalaBrandtK3` (in `ariacalib.kannala_brandt`) and
  `FisheyeRadTanThinPrism` (in `ariacalib.fisheye`; radial, tangential and
  thin-prism distortion, with the 6-2-4 single-focal-length variant
  available as `FISHEYE624`), each with `project`, `unproject`,
  `unproject_unit_plane` and Jacobian-returning variants, plus
  `scale_params` and `subtract_from_origin`;
- linear rectification models for accelerometers, gyroscopes and
  magnetometers (`LinearRectificationModel` in `ariacalib.calibration`);
- barometer and microphone calibrations;
- rigid poses (`SE3` in `ariacalib.poses`), including the CAD poses of the
  `DVT-L` and `DVT-S` device subtypes (`cad_pose`);
- point transforms between any two camera or IMU frames.

## Library use

Loading a calibration and moving a point between sensor frames:

```python
from ariacalib.calib_io import get_calib_str_from_file
from ariacalib.device_model import DeviceModel

model = DeviceModel.from_json(get_calib_str_from_file("calib.json"))

print(model.camera_labels())
print(model.transform([3.0, 2.0, 1.0], "camera-slam-left", "imu-left"))
```

`DeviceModel.from_json` takes a JSON string or an already decoded mapping
and raises `DeviceModelError` when the document is malformed. Camera and
IMU sections may also be given as Python-style strings (single quotes,
`True`/`False`); `normalize_to_array_if_string` decodes those.

Lookups such as `camera_calib`, `imu_calib`, `magnetometer_calib`,
`barometer_calib`, `microphone_calib` and `cad_sensor_pose` return `None`
for a label the device does not have. `transform` raises `DeviceModelError`
for a label that is neither a camera nor an IMU.

Rectifying a gyroscope reading:

```python
gyro = model.imu_calib("imu-left").gyro
print(gyro.compensate_for_systematic_error_from_measurement([0.1, 0.2, 0.3]))
```

Using a projection model on its own:

```python
import numpy as np
from ariacalib.kannala_brandt import KannalaBrandtK3

kb3 = KannalaBrandtK3()
params = np.array([240.0, 240.0, 320.0, 240.0, 0.01, -0.002, 0.0005, 0.0])

uv = kb3.project(np.array([0.1, -0.2, 1.0]), params)
ray = kb3.unproject(uv, params)   # a ray with |z| = 1
```

`FisheyeRadTanThinPrism(num_k, use_tangential, use_thin_prism,
use_single_focal_length)` builds any member of the fisheye family with the
same methods.

When images are delivered at a lower resolution than the sensor's,
`DeviceModel.try_crop_and_scale_camera_calibration` adapts the RGB and
eye-tracking intrinsics once per camera.

## What the package does not do

- It has no command-line tool; it is used as a library only.
- `get_calib_str_from_file` reads calibration from `.json` files only.
  Reading the calibration stored in a recording container (`.vrs`) is not
  supported and raises `UnsupportedCalibrationFile`, as does any other
  file type.