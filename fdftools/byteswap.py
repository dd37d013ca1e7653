import struct
import logging
from typing import Optional

import numpy as np

from fdftools.fdf_header import ByteOrder, ComponentType, component_dtype

logger = logging.getLogger(__name__)


def _is_little_endian_host() -> bool:
    return struct.pack("=I", 1)[0] == 1


def host_byte_order() -> ByteOrder:
    return ByteOrder.LITTLE_ENDIAN if _is_little_endian_host() else ByteOrder.BIG_ENDIAN


def needs_swap(byte_order: Optional[ByteOrder]) -> bool:
    """No declared byte order means the payload is taken as host order."""
    return byte_order is not None and byte_order != host_byte_order()


def swap_bytes_if_necessary(buffer, component_type: ComponentType, byte_order: Optional[ByteOrder], number_of_pixels: int):
    """
    Bring a raw pixel buffer from the file byte order into host order, in place.

    The buffer (bytearray, writable memoryview or numpy array) is viewed as
    `number_of_pixels` elements of the component type and every element has
    its bytes reversed when `byte_order` is not the host order. A `byte_order`
    of None leaves the buffer alone. Swapping twice with the same byte order
    restores the input.
    """
    dtype = component_dtype(component_type)
    if dtype.itemsize == 1 or not needs_swap(byte_order):
        return buffer

    if memoryview(buffer).readonly:
        raise ValueError("Cannot swap bytes of a read-only buffer")

    view = np.frombuffer(buffer, dtype=dtype, count=number_of_pixels)
    view.byteswap(inplace=True)
    logger.debug(f"Swapped {number_of_pixels} {component_type.value} values from {byte_order.value} endian")
    return buffer
