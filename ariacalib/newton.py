"""Shared settings and helpers for the Newton iterations used by camera models."""

from __future__ import annotations

import math

import numpy as np

MAX_ITERATIONS = 50
FLOAT_TOLERANCE = 1e-5
DOUBLE_TOLERANCE = 1e-7

__all__ = [
    "MAX_ITERATIONS",
    "FLOAT_TOLERANCE",
    "DOUBLE_TOLERANCE",
    "has_converged",
    "init_theta",
]


def has_converged(step) -> bool:
    """Tell whether a Newton step is small enough to stop iterating.

    A scalar step converges when its magnitude is below the tolerance; a
    vector step converges when its squared norm is below the squared tolerance.
    """
    arr = np.asarray(step, dtype=float)
    if arr.ndim == 0:
        return abs(float(arr)) < DOUBLE_TOLERANCE
    flat = arr.ravel()
    return float(flat @ flat) < DOUBLE_TOLERANCE * DOUBLE_TOLERANCE


def init_theta(r: float) -> float:
    """Initial guess for the incidence angle given a distorted radius."""
    return math.sqrt(r)