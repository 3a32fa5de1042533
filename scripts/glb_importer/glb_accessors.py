"""
glb_accessors.py
================

Decodes typed arrays out of the BIN chunk using accessor + bufferView metadata.

The read offset is ``bufferView.byteOffset + accessor.byteOffset``; elements are
``byteStride`` apart when the view declares one, otherwise tightly packed. Every
read is bounds-checked against the view and the BIN chunk before any bytes are
touched.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

from glb_document import GltfAccessor, GltfBufferView, GltfDocument
from glb_errors import FormatError, UnsupportedComponentType

UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

COMPONENT_DTYPES: Dict[int, np.dtype] = {
    UNSIGNED_BYTE: np.dtype("<u1"),
    UNSIGNED_SHORT: np.dtype("<u2"),
    UNSIGNED_INT: np.dtype("<u4"),
    FLOAT: np.dtype("<f4"),
}
INDEX_COMPONENT_TYPES = (UNSIGNED_BYTE, UNSIGNED_SHORT, UNSIGNED_INT)

# Components per element for the shapes the importer reads.
ELEMENT_COMPONENTS: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
}


def packed_stride(element_type: str, component_type: int) -> int:
    """Element stride used when a bufferView declares no byteStride."""
    return ELEMENT_COMPONENTS[element_type] * COMPONENT_DTYPES[component_type].itemsize


def _resolve(document: GltfDocument, accessor_index: int) -> Tuple[GltfAccessor, GltfBufferView]:
    if accessor_index < 0 or accessor_index >= len(document.accessors):
        raise FormatError(f"accessor index {accessor_index} out of range ({len(document.accessors)} accessors)")
    accessor = document.accessors[accessor_index]
    if accessor.buffer_view is None:
        raise FormatError(f"accessor {accessor_index} has no bufferView (sparse accessors are not supported)")
    if accessor.buffer_view >= len(document.buffer_views):
        raise FormatError(f"accessor {accessor_index} references missing bufferView {accessor.buffer_view}")
    return accessor, document.buffer_views[accessor.buffer_view]


def read_accessor(
    document: GltfDocument,
    binary_chunk: Optional[bytes],
    accessor_index: int,
    element_type: str,
    component_type: Optional[int] = None,
) -> np.ndarray:
    """Read ``count`` elements of *element_type* from an accessor.

    *component_type* overrides the accessor's declared type (vertex attributes
    are always read as float32). Returns ``(count,)`` for SCALAR and
    ``(count, n)`` otherwise, as a fresh contiguous array.
    """
    accessor, view = _resolve(document, accessor_index)
    if accessor.type is not None and accessor.type != element_type:
        raise FormatError(f"accessor {accessor_index} is {accessor.type}, expected {element_type}")
    if component_type is None:
        component_type = accessor.component_type
    if component_type not in COMPONENT_DTYPES:
        raise UnsupportedComponentType(accessor_index, component_type)

    dtype = COMPONENT_DTYPES[component_type]
    components = ELEMENT_COMPONENTS[element_type]
    element_size = packed_stride(element_type, component_type)
    stride = view.byte_stride or element_size
    if stride < element_size:
        raise FormatError(
            f"accessor {accessor_index}: byteStride {stride} smaller than element size {element_size}"
        )

    count = accessor.count
    if count == 0:
        shape = (0,) if components == 1 else (0, components)
        return np.zeros(shape, dtype=dtype)

    if binary_chunk is None:
        raise FormatError(f"accessor {accessor_index} needs a BIN chunk but the file has none")

    view_end = view.byte_offset + view.byte_length
    if view_end > len(binary_chunk):
        raise FormatError(
            f"bufferView {accessor.buffer_view} ends at byte {view_end}, BIN chunk has {len(binary_chunk)}"
        )

    start = view.byte_offset + accessor.byte_offset
    span = (count - 1) * stride + element_size
    if start + span > view_end:
        raise FormatError(
            f"accessor {accessor_index} reads bytes {start}..{start + span}, "
            f"outside bufferView {accessor.buffer_view} ({view.byte_offset}..{view_end})"
        )

    raw = np.frombuffer(binary_chunk, dtype=np.uint8, count=span, offset=start)
    rows = np.lib.stride_tricks.as_strided(raw, shape=(count, element_size), strides=(stride, 1))
    values = np.ascontiguousarray(rows).view(dtype)
    if components == 1:
        return values.reshape(count).copy()
    return values.reshape(count, components).copy()


def read_vec3(document: GltfDocument, binary_chunk: Optional[bytes], accessor_index: int) -> np.ndarray:
    _check_float(document, accessor_index)
    return read_accessor(document, binary_chunk, accessor_index, "VEC3", FLOAT)


def read_vec2(document: GltfDocument, binary_chunk: Optional[bytes], accessor_index: int) -> np.ndarray:
    _check_float(document, accessor_index)
    return read_accessor(document, binary_chunk, accessor_index, "VEC2", FLOAT)


def read_indices(document: GltfDocument, binary_chunk: Optional[bytes], accessor_index: int) -> np.ndarray:
    """Read an index accessor (u8/u16/u32) widened to a uint32 array."""
    accessor, _view = _resolve(document, accessor_index)
    if accessor.component_type not in INDEX_COMPONENT_TYPES:
        raise UnsupportedComponentType(accessor_index, accessor.component_type)
    values = read_accessor(document, binary_chunk, accessor_index, "SCALAR")
    return values.astype(np.uint32)


def _check_float(document: GltfDocument, accessor_index: int) -> None:
    accessor, _view = _resolve(document, accessor_index)
    # A missing componentType is read as float, as the vertex attributes always are.
    if accessor.component_type not in (None, FLOAT):
        raise UnsupportedComponentType(accessor_index, accessor.component_type)
