"""Shared fixtures: synthetic FDF files written into a temporary directory."""

import os

os.environ.setdefault("MPLBACKEND", "Agg")

from typing import Callable, List, Optional

import numpy as np
import pytest


def fdf_header_lines(
    matrix: List[int],
    storage: str = "float",
    bigendian: int = 0,
    roi: Optional[List[float]] = None,
    origin: Optional[List[float]] = None,
    orientation: Optional[List[float]] = None,
    location: Optional[List[float]] = None,
) -> List[str]:
    """Header in the layout VnmrJ writes, including its C decorations."""
    if roi is None:
        roi = [float(m) / 10.0 for m in matrix]
    lines = [
        "#!/usr/local/fdf/startup",
        "float  rank = %d;" % len(matrix),
        'char  *spatial_rank = "%ddfov";' % len(matrix),
        'char  *storage = "%s";' % storage,
        "float  bits = 32;",
        "float  matrix[] = {%s};" % ", ".join(str(m) for m in matrix),
        "float  span[] = {%s};" % ", ".join(str(r) for r in roi),
        "float  roi[] = {%s};" % ", ".join(str(r) for r in roi),
    ]
    if origin is not None:
        lines.append("float  origin[] = {%s};" % ", ".join(str(o) for o in origin))
    if orientation is not None:
        lines.append("float  orientation[] = {%s};" % ", ".join(str(o) for o in orientation))
    if location is not None:
        lines.append("float  location[] = {%s};" % ", ".join(str(o) for o in location))
    lines += [
        "int    bigendian = %d;" % bigendian,
        "int    checksum = 1234;",
    ]
    return lines


def write_fdf_file(path, lines: List[str], payload: bytes, terminator: bytes = b"\x00") -> str:
    with open(path, "wb") as f:
        f.write(("\n".join(lines) + "\n").encode("latin-1"))
        f.write(terminator)
        f.write(payload)
    return str(path)


@pytest.fixture
def make_fdf(tmp_path) -> Callable[..., str]:
    """
    Factory writing an FDF file from a numpy array (X as last axis).

    The payload is written in the byte order declared by `bigendian`.
    """
    def _make(
        arr: np.ndarray,
        name: str = "image.fdf",
        storage: str = "float",
        bigendian: int = 0,
        directory=None,
        **header_fields,
    ) -> str:
        matrix = list(reversed(arr.shape))
        lines = fdf_header_lines(matrix, storage=storage, bigendian=bigendian, **header_fields)
        order = ">" if bigendian else "<"
        payload = arr.astype(arr.dtype.newbyteorder(order)).tobytes()
        directory = tmp_path if directory is None else directory
        os.makedirs(directory, exist_ok=True)
        return write_fdf_file(os.path.join(directory, name), lines, payload)

    return _make
