"""Calibration models for Aria glasses: camera projections, IMU rectification and sensor poses."""

__version__ = "0.1.0"