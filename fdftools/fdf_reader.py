#!/usr/bin/env python3
"""
Python FDF reader implementing the same logic as itk::FDFImageIO.

Requirements:
    pip install numpy SimpleITK
"""

import os
import logging
from typing import Optional, Tuple

import numpy as np
import SimpleITK as sitk

from fdftools.byteswap import swap_bytes_if_necessary
from fdftools.fdf_header import (
    FdfHeader,
    FdfFileNotFoundError,
    FdfIOError,
    InvalidGeometryError,
    NotRecognizedError,
    apply_line,
    resolve_header,
)

logger = logging.getLogger(__name__)

FDF_EXTENSIONS = (".fdf", ".FDF")


# -------------------------------------------------------------------------
# can_read_fdf (CanReadFile)
# -------------------------------------------------------------------------


def can_read_fdf(path: str) -> bool:
    """
    True for an existing `.fdf`/`.FDF` file. Other extensions are rejected
    without touching the filesystem; a matching path that cannot be opened
    raises FdfFileNotFoundError.
    """
    if not path:
        logger.debug("No filename specified.")
        return False

    if not path.endswith(FDF_EXTENSIONS):
        logger.debug(f"The filename extension of {path} is not recognized")
        return False

    try:
        with open(path, "rb"):
            pass
    except OSError as e:
        raise FdfFileNotFoundError(f'File "{path}" cannot be read.') from e

    return True


# -------------------------------------------------------------------------
# Header reading (ReadImageInformation)
# -------------------------------------------------------------------------


def _is_header_terminator(line: bytes) -> bool:
    return line.rstrip(b"\r\n") == b"" or line.startswith(b"\x00")


def read_header(fp) -> FdfHeader:
    """Parse the header from an open binary file and resolve the geometry."""
    header = FdfHeader()

    fp.seek(0, os.SEEK_SET)
    for raw in fp:
        if _is_header_terminator(raw):
            break
        apply_line(header, raw.decode("latin-1"))

    fp.seek(0, os.SEEK_END)
    file_size = fp.tell()
    return resolve_header(header, file_size)


def read_fdf_header(path: str) -> FdfHeader:
    if not can_read_fdf(path):
        raise NotRecognizedError(f"Not an FDF file: {path}")

    with open(path, "rb") as f:
        header = read_header(f)

    byte_order = header.byte_order.value if header.byte_order else "host"
    logger.debug(
        f"FDF header of {path}: dims={header.dimensions}, spacing={header.spacing}, "
        f"type={header.component_type.value}, byte order={byte_order}, "
        f"data offset={header.data_offset}"
    )
    return header


# -------------------------------------------------------------------------
# Payload reading (Read)
# -------------------------------------------------------------------------


def read_payload(fp, header: FdfHeader, buffer=None):
    """
    Read the pixel payload of an open file into `buffer` and fix its byte order.

    `buffer` must be writable and exactly `header.image_size_in_bytes` long;
    a new bytearray is allocated when omitted. The file is left open.
    """
    n_bytes = header.image_size_in_bytes
    if buffer is None:
        buffer = bytearray(n_bytes)
    elif memoryview(buffer).nbytes != n_bytes:
        raise InvalidGeometryError(
            f"Buffer holds {memoryview(buffer).nbytes} bytes, image needs {n_bytes}"
        )

    if header.data_offset < 0:
        raise InvalidGeometryError(
            f"Header declares {n_bytes} bytes of pixel data but the file "
            f"only holds {header.file_size} bytes"
        )

    fp.seek(0, os.SEEK_END)
    end = fp.tell()
    if header.data_offset > end:
        raise FdfIOError(f"Data offset {header.data_offset} is past end of file ({end})")
    fp.seek(header.data_offset, os.SEEK_SET)

    n_read = fp.readinto(memoryview(buffer).cast("B"))
    if n_read != n_bytes:
        raise FdfIOError(f"Error reading image data: wanted {n_bytes} bytes, got {n_read}")

    return swap_bytes_if_necessary(
        buffer, header.component_type, header.byte_order, header.number_of_pixels
    )


def read_fdf_payload(path: str, header: FdfHeader, buffer=None):
    try:
        f = open(path, "rb")
    except OSError as e:
        raise FdfFileNotFoundError(f'File "{path}" cannot be read.') from e
    with f:
        return read_payload(f, header, buffer)


# -------------------------------------------------------------------------
# SimpleITK conversion
# -------------------------------------------------------------------------


def fdf_to_array(buffer, header: FdfHeader) -> np.ndarray:
    """View a host-ordered payload as an array with X as the last axis."""
    arr = np.frombuffer(buffer, dtype=header.numpy_dtype, count=header.number_of_pixels)
    return arr.reshape(list(reversed(header.dimensions)))


def fdf_to_sitk(arr: np.ndarray, header: FdfHeader) -> sitk.Image:
    img = sitk.GetImageFromArray(arr)
    img.SetSpacing([float(s) for s in header.spacing])
    img.SetOrigin([float(o) for o in header.origin])
    img.SetDirection([float(v) for row in header.direction for v in row])

    img.SetMetaData("fdf_spatial_rank", header.spatial_rank)
    img.SetMetaData("fdf_bits", str(header.bits))
    img.SetMetaData("fdf_checksum", str(header.checksum))
    for name in ("span", "roi", "location"):
        values = getattr(header, name)
        if values:
            img.SetMetaData(f"fdf_{name}", " ".join(str(v) for v in values))
    return img


def read_fdf(path: str, header_only: bool = False) -> Tuple[Optional[sitk.Image], FdfHeader]:
    """
    Read an FDF image into a SimpleITK image.

    Returns
    -------
    image : sitk.Image or None
        None when `header_only` is set.
    header : FdfHeader
    """
    header = read_fdf_header(path)
    if header_only:
        return None, header

    buffer = read_fdf_payload(path, header)
    image = fdf_to_sitk(fdf_to_array(buffer, header), header)
    logger.info(f"FDF image read from {path}")
    return image, header


# -------------------------------------------------------------------------
# Write path: FDF is read-only
# -------------------------------------------------------------------------


def can_write_fdf(path: str) -> bool:
    return False


def write_fdf_header(path: str, header: FdfHeader) -> None:
    logger.debug(f"Writing FDF files is not supported, ignoring header write to {path}")


def write_fdf(path: str, buffer, header: FdfHeader) -> None:
    logger.debug(f"Writing FDF files is not supported, ignoring write to {path}")


class FdfImageIO:
    """File-name based decoder, one instance per file."""

    def __init__(self, file_name: str = ""):
        self.file_name = file_name
        self.header: Optional[FdfHeader] = None

    def can_read_file(self, file_name: str) -> bool:
        self.file_name = file_name
        return can_read_fdf(file_name)

    def read_image_information(self) -> FdfHeader:
        self.header = read_fdf_header(self.file_name)
        return self.header

    def get_image_size_in_pixels(self) -> int:
        return self._require_header().number_of_pixels

    def get_image_size_in_bytes(self) -> int:
        return self._require_header().image_size_in_bytes

    def read(self, buffer=None):
        return read_fdf_payload(self.file_name, self._require_header(), buffer)

    def can_write_file(self, file_name: str) -> bool:
        return can_write_fdf(file_name)

    def write_image_information(self) -> None:
        write_fdf_header(self.file_name, self.header)

    def write(self, buffer) -> None:
        write_fdf(self.file_name, buffer, self.header)

    def _require_header(self) -> FdfHeader:
        if self.header is None:
            self.read_image_information()
        return self.header
