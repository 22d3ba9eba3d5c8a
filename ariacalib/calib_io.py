"""Loading calibration text from files on disk."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["UnsupportedCalibrationFile", "get_calib_str_from_file"]


class UnsupportedCalibrationFile(ValueError):
    """Raised when a calibration cannot be read from a file of this kind."""


def get_calib_str_from_file(file_path: str | os.PathLike) -> str:
    """Return the calibration JSON text stored in ``file_path``.

    Only ``.json`` files are read; a missing file raises FileNotFoundError.
    """
    path = Path(file_path)
    ext = path.suffix
    if ext == ".json":
        return path.read_text(encoding="utf-8")
    if ext == ".vrs":
        raise UnsupportedCalibrationFile(
            f"reading calibration from recording containers is not supported: {path}"
        )
    raise UnsupportedCalibrationFile(f"Unsupported file type: {ext!r}")