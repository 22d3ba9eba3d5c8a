[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ariacalib"
version = "0.1.0"
description = "Device calibration models for Aria glasses: fisheye camera projections, IMU rectification and sensor poses"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "calibration",
    "camera",
    "fisheye",
    "kannala-brandt",
    "projection",
    "imu",
    "extrinsics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ariacalib"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
