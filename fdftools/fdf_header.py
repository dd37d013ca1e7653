"""
Header parsing for Varian FDF (Flexible Data Format) images.

An FDF file starts with C-like text statements, one per line,

    #!/usr/local/fdf/startup
    float  rank = 2;
    char  *storage = "float";
    float  matrix[] = {256, 256};
    float  roi[] = {25.6, 25.6};
    int    bigendian = 0;

followed by an empty (or NUL) line and the raw pixel payload, which always
sits at the very end of the file.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# roi is stored in cm; origin is stored scaled by ORIGIN_SCALE
ROI_TO_MM = 10.0
ORIGIN_SCALE = 0.1

DELIMITERS = " ;"


# ---------------------------
# Errors
# ---------------------------

class FdfError(Exception):
    """Base class of every error raised while decoding an FDF file."""
    kind = "FdfError"


class NotRecognizedError(FdfError, ValueError):
    kind = "NotRecognized"


class FdfFileNotFoundError(FdfError, FileNotFoundError):
    kind = "FileNotFound"


class FdfIOError(FdfError, IOError):
    kind = "IOError"


class MissingRequiredFieldError(FdfError, ValueError):
    kind = "MissingRequiredField"

    def __init__(self, field_name: str):
        super().__init__(f"FDF header does not declare required field '{field_name}'")
        self.field_name = field_name


class UnknownComponentTypeError(FdfError, ValueError):
    kind = "UnknownComponentType"

    def __init__(self, value: str):
        super().__init__(f"Unknown component type: {value}")
        self.value = value


class InvalidGeometryError(FdfError, ValueError):
    kind = "InvalidGeometry"


class MalformedFieldError(FdfError, ValueError):
    kind = "MalformedField"


class UnsupportedComponentTypeError(FdfError, TypeError):
    kind = "UnsupportedComponentType"


# ---------------------------
# Types
# ---------------------------

class ByteOrder(enum.Enum):
    LITTLE_ENDIAN = "little"
    BIG_ENDIAN = "big"


class ComponentType(enum.Enum):
    CHAR = "char"
    UCHAR = "unsigned char"
    SHORT = "short"
    USHORT = "unsigned short"
    INT = "int"
    UINT = "unsigned int"
    LONG = "long"
    ULONG = "unsigned long"
    FLOAT = "float"
    DOUBLE = "double"


# Single table for element width and byte swapping; 'l'/'L' follow the C long of the host.
COMPONENT_DTYPES: Dict[ComponentType, np.dtype] = {
    ComponentType.CHAR: np.dtype(np.int8),
    ComponentType.UCHAR: np.dtype(np.uint8),
    ComponentType.SHORT: np.dtype(np.int16),
    ComponentType.USHORT: np.dtype(np.uint16),
    ComponentType.INT: np.dtype(np.int32),
    ComponentType.UINT: np.dtype(np.uint32),
    ComponentType.LONG: np.dtype("l"),
    ComponentType.ULONG: np.dtype("L"),
    ComponentType.FLOAT: np.dtype(np.float32),
    ComponentType.DOUBLE: np.dtype(np.float64),
}

STORAGE_TYPES: Dict[str, ComponentType] = {ctype.value: ctype for ctype in ComponentType}


def component_type_from_storage(value: str) -> ComponentType:
    """Map a `storage` keyword ("float", "unsigned short", ...) to a ComponentType."""
    try:
        return STORAGE_TYPES[value]
    except KeyError:
        raise UnknownComponentTypeError(value) from None


def component_dtype(component_type: Optional[ComponentType]) -> np.dtype:
    if component_type not in COMPONENT_DTYPES:
        raise UnsupportedComponentTypeError(f"Pixel type unknown: {component_type!r}")
    return COMPONENT_DTYPES[component_type]


@dataclass
class FdfHeader:
    # raw header fields
    spatial_rank: str = ""
    dimensions: List[int] = field(default_factory=list)
    orientation: List[float] = field(default_factory=list)
    origin: List[float] = field(default_factory=list)   # already scaled by 1/10
    span: List[float] = field(default_factory=list)
    roi: List[float] = field(default_factory=list)
    location: List[float] = field(default_factory=list)
    byte_order: Optional[ByteOrder] = None   # None: payload already in host order
    component_type: Optional[ComponentType] = None
    bits: int = 0
    checksum: int = 0

    # derived by resolve_header()
    direction: List[List[float]] = field(default_factory=list)  # column i = axis i
    spacing: List[float] = field(default_factory=list)
    file_size: int = 0
    data_offset: int = 0

    @property
    def number_of_dimensions(self) -> int:
        return len(self.dimensions)

    @property
    def number_of_pixels(self) -> int:
        return math.prod(self.dimensions)

    @property
    def numpy_dtype(self) -> np.dtype:
        if self.component_type is None:
            raise MissingRequiredFieldError("storage")
        return component_dtype(self.component_type)

    @property
    def component_size(self) -> int:
        return self.numpy_dtype.itemsize

    @property
    def image_size_in_bytes(self) -> int:
        return self.number_of_pixels * self.component_size

    @property
    def region_size(self) -> List[int]:
        return list(self.dimensions)

    @property
    def region_index(self) -> List[int]:
        return [0] * self.number_of_dimensions

    def set_number_of_dimensions(self, n: int) -> None:
        """Widen to n axes; the direction falls back to identity for the new size."""
        if n <= self.number_of_dimensions:
            return
        self.dimensions.extend([0] * (n - len(self.dimensions)))
        self.origin.extend([0.0] * (n - len(self.origin)))
        self.direction = identity_matrix(n)


# ---------------------------
# Line normalizer / tokenizer
# ---------------------------

_BRACES = re.compile(r"\{([^{}]*)\}")
_LIST_SEPARATORS = re.compile(r"[,\s]+")
_STRIPPED_CHARS = str.maketrans("", "", '*"[]')


def _collapse_list(match: re.Match) -> str:
    items = [item for item in _LIST_SEPARATORS.split(match.group(1)) if item]
    return "{" + ",".join(items) + "}"


def normalize_line(line: str) -> str:
    """
    Clean one raw header line so it tokenizes as `type name = value`.

    Drops the C decorations (`*`, quotes, `[]`) and removes whitespace inside
    `{...}` lists, turning their items into a comma separated run.
    """
    line = line.rstrip("\r\n").translate(_STRIPPED_CHARS)
    return _BRACES.sub(_collapse_list, line)


def tokenize(line: str, delimiters: str = DELIMITERS) -> List[str]:
    if not line:
        return []
    pattern = "[" + re.escape(delimiters) + "]+"
    return [token for token in re.split(pattern, line) if token]


def parse_numeric_list(value: str) -> List[float]:
    """`{64,64}` -> [64.0, 64.0]; a bare scalar is read as a one element list."""
    match = _BRACES.search(value)
    body = match.group(1) if match else value
    try:
        return [float(item) for item in _LIST_SEPARATORS.split(body) if item]
    except ValueError:
        raise MalformedFieldError(f"Not a numeric list: {value!r}") from None


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        try:
            return int(float(value))
        except ValueError:
            raise MalformedFieldError(f"Not an integer: {value!r}") from None


# ---------------------------
# Field interpreter
# ---------------------------

def _set_spatial_rank(header: FdfHeader, value: str) -> None:
    header.spatial_rank = value


def _set_matrix(header: FdfHeader, value: str) -> None:
    values = parse_numeric_list(value)
    if not all(math.isfinite(v) and v == int(v) for v in values):
        raise MalformedFieldError(f"Matrix sizes must be whole numbers: {value!r}")
    dimensions = [int(v) for v in values]
    header.set_number_of_dimensions(len(dimensions))
    header.dimensions[:len(dimensions)] = dimensions


def _set_orientation(header: FdfHeader, value: str) -> None:
    header.orientation = parse_numeric_list(value)


def _set_span(header: FdfHeader, value: str) -> None:
    header.span = parse_numeric_list(value)


def _set_origin(header: FdfHeader, value: str) -> None:
    origin = [v * ORIGIN_SCALE for v in parse_numeric_list(value)]
    header.set_number_of_dimensions(len(origin))
    header.origin[:len(origin)] = origin


def _set_roi(header: FdfHeader, value: str) -> None:
    header.roi = parse_numeric_list(value)


def _set_location(header: FdfHeader, value: str) -> None:
    header.location = parse_numeric_list(value)


def _set_bigendian(header: FdfHeader, value: str) -> None:
    header.byte_order = ByteOrder.LITTLE_ENDIAN if value == "0" else ByteOrder.BIG_ENDIAN


def _set_storage(header: FdfHeader, value: str) -> None:
    header.component_type = component_type_from_storage(value)


def _set_bits(header: FdfHeader, value: str) -> None:
    header.bits = _parse_int(value)


def _set_checksum(header: FdfHeader, value: str) -> None:
    header.checksum = _parse_int(value)


_FIELD_HANDLERS: Dict[str, Callable[[FdfHeader, str], None]] = {
    "spatial_rank": _set_spatial_rank,
    "matrix": _set_matrix,
    "orientation": _set_orientation,
    "span": _set_span,
    "origin": _set_origin,
    "roi": _set_roi,
    "location": _set_location,
    "bigendian": _set_bigendian,
    "storage": _set_storage,
    "bits": _set_bits,
    "checksum": _set_checksum,
}


def apply_tokens(header: FdfHeader, tokens: List[str]) -> FdfHeader:
    """Apply one `type name = value` statement; anything else is ignored."""
    if len(tokens) != 4:
        if tokens:
            logger.debug(f"Skipping header line with {len(tokens)} tokens: {tokens}")
        return header

    name, value = tokens[1], tokens[3]
    handler = _FIELD_HANDLERS.get(name)
    if handler is not None:
        handler(header, value)
    return header


def apply_line(header: FdfHeader, line: str) -> FdfHeader:
    return apply_tokens(header, tokenize(normalize_line(line)))


# ---------------------------
# Geometry & type resolver
# ---------------------------

def identity_matrix(n: int) -> List[List[float]]:
    return [[1.0 if i == j else 0.0 for j in range(n)] for i in range(n)]


def determinant(matrix: List[List[float]]) -> float:
    """Cofactor expansion along the first row; exact for the small matrices used here."""
    n = len(matrix)
    if n == 0:
        return 1.0
    if n == 1:
        return matrix[0][0]
    if n == 2:
        return matrix[0][0] * matrix[1][1] - matrix[0][1] * matrix[1][0]

    det = 0.0
    for col in range(n):
        pivot = matrix[0][col]
        if pivot == 0:
            continue
        minor = [row[:col] + row[col + 1:] for row in matrix[1:]]
        sign = -1.0 if col % 2 else 1.0
        det += sign * pivot * determinant(minor)
    return det


def direction_from_orientation(orientation: List[float], n: int) -> List[List[float]]:
    """
    Build the n x n direction matrix from an FDF orientation block.

    Value i*n + j is component j of axis i, so axis i ends up as column i.
    A short or singular block (a 2-D image shipping a 3x3 orientation gives
    a singular leading 2x2) is replaced by the identity.
    """
    if len(orientation) < n * n:
        logger.warning(
            f"Orientation has {len(orientation)} values, {n * n} needed; using identity"
        )
        return identity_matrix(n)

    direction = [[0.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(n):
            direction[j][i] = orientation[i * n + j]

    if determinant(direction) == 0:
        logger.warning("Degenerate orientation matrix in FDF header; using identity")
        return identity_matrix(n)
    return direction


def resolve_header(header: FdfHeader, file_size: int) -> FdfHeader:
    """Finalize direction, spacing and payload offset once the header is read."""
    if header.number_of_dimensions == 0:
        raise MissingRequiredFieldError("matrix")
    if header.component_type is None:
        raise MissingRequiredFieldError("storage")

    n = header.number_of_dimensions
    if header.orientation:
        header.direction = direction_from_orientation(header.orientation, n)
    else:
        header.direction = identity_matrix(n)

    if not header.roi:
        raise MissingRequiredFieldError("roi")
    if len(header.roi) < n:
        raise InvalidGeometryError(
            f"roi declares {len(header.roi)} axes but the image has {n}"
        )
    spacing = []
    for i, size in enumerate(header.dimensions):
        if size <= 0:
            raise InvalidGeometryError(f"Dimension {i} has invalid size {size}")
        spacing.append(header.roi[i] * ROI_TO_MM / size)
    header.spacing = spacing

    header.file_size = file_size
    header.data_offset = file_size - header.image_size_in_bytes
    return header
