"""
glb_geometry.py
===============

Pure geometry helpers for moving glTF data into the left-handed target space.
Every function returns a new array and leaves its inputs untouched, so the axis,
UV and winding conversions are involutions that can be applied and undone.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

# Largest vertex count addressable with 16-bit indices.
MAX_16BIT_VERTEX_COUNT = 65535

INDEX_FORMAT_16 = "uint16"
INDEX_FORMAT_32 = "uint32"

_EPSILON = 1e-12


def flip_handedness(vectors: np.ndarray) -> np.ndarray:
    """Convert right-handed vectors to left-handed: ``(x, y, z) -> (x, y, -z)``."""
    out = np.array(vectors, dtype=np.float32, copy=True)
    if out.size:
        out[:, 2] = -out[:, 2]
    return out


def flip_uv_origin(uvs: np.ndarray) -> np.ndarray:
    """Move the UV origin from top-left to bottom-left: ``(u, v) -> (u, 1 - v)``."""
    out = np.array(uvs, dtype=np.float32, copy=True)
    if out.size:
        out[:, 1] = 1.0 - out[:, 1]
    return out


def reverse_winding(indices: np.ndarray) -> np.ndarray:
    """Swap the first and third index of every complete triangle.

    An incomplete trailing group (``len % 3`` indices) is copied unchanged.
    """
    source = np.asarray(indices)
    out = source.copy()
    full = len(source) - len(source) % 3
    out[0:full:3] = source[2:full:3]
    out[2:full:3] = source[0:full:3]
    return out


def sequential_indices(vertex_count: int) -> np.ndarray:
    return np.arange(vertex_count, dtype=np.uint32)


def index_format_for(vertex_count: int) -> str:
    return INDEX_FORMAT_32 if vertex_count > MAX_16BIT_VERTEX_COUNT else INDEX_FORMAT_16


def _triangles(indices: np.ndarray) -> np.ndarray:
    full = len(indices) - len(indices) % 3
    return np.asarray(indices[:full], dtype=np.int64).reshape(-1, 3)


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, lengths, out=np.zeros_like(vectors), where=lengths > _EPSILON)


def compute_vertex_normals(positions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Area-weighted vertex normals for a triangle list in left-handed space.

    Front faces wind clockwise after `reverse_winding`, so the face normal is
    ``cross(b - a, c - a)``. Vertices not used by any triangle get a zero normal.
    """
    points = np.asarray(positions, dtype=np.float64)
    triangles = _triangles(indices)
    normals = np.zeros_like(points)
    if len(triangles):
        a = points[triangles[:, 0]]
        b = points[triangles[:, 1]]
        c = points[triangles[:, 2]]
        face_normals = np.cross(b - a, c - a)
        for corner in range(3):
            np.add.at(normals, triangles[:, corner], face_normals)
    return _normalize_rows(normals).astype(np.float32)


def _any_perpendicular(normals: np.ndarray) -> np.ndarray:
    axis = np.zeros_like(normals)
    use_x = np.abs(normals[:, 0]) < 0.9
    axis[use_x, 0] = 1.0
    axis[~use_x, 1] = 1.0
    return _normalize_rows(np.cross(normals, axis))


def compute_tangents(
    positions: np.ndarray,
    normals: np.ndarray,
    uvs: np.ndarray,
    indices: np.ndarray,
) -> np.ndarray:
    """Per-vertex tangents (xyz + handedness w) from positions, normals and UVs.

    Lengyel's method: accumulate the UV-space derivative of every triangle onto
    its vertices, Gram-Schmidt against the normal, and store the bitangent sign
    in ``w``. Vertices with degenerate UVs get any unit vector perpendicular to
    their normal.
    """
    points = np.asarray(positions, dtype=np.float64)
    normal_rows = np.asarray(normals, dtype=np.float64)
    texcoords = np.asarray(uvs, dtype=np.float64)
    triangles = _triangles(indices)

    tan1 = np.zeros_like(points)
    tan2 = np.zeros_like(points)
    if len(triangles):
        p0, p1, p2 = (points[triangles[:, k]] for k in range(3))
        w0, w1, w2 = (texcoords[triangles[:, k]] for k in range(3))
        edge1 = p1 - p0
        edge2 = p2 - p0
        du1 = w1[:, 0] - w0[:, 0]
        du2 = w2[:, 0] - w0[:, 0]
        dv1 = w1[:, 1] - w0[:, 1]
        dv2 = w2[:, 1] - w0[:, 1]
        det = du1 * dv2 - du2 * dv1
        inv = np.divide(1.0, det, out=np.zeros_like(det), where=np.abs(det) > _EPSILON)[:, None]
        sdir = (edge1 * dv2[:, None] - edge2 * dv1[:, None]) * inv
        tdir = (edge2 * du1[:, None] - edge1 * du2[:, None]) * inv
        for corner in range(3):
            np.add.at(tan1, triangles[:, corner], sdir)
            np.add.at(tan2, triangles[:, corner], tdir)

    projected = tan1 - normal_rows * np.sum(normal_rows * tan1, axis=1, keepdims=True)
    tangents = _normalize_rows(projected)

    degenerate = np.linalg.norm(tangents, axis=1) < 0.5
    if np.any(degenerate):
        tangents[degenerate] = _any_perpendicular(normal_rows[degenerate])
        # Zero normals (unreferenced vertices) have no perpendicular either.
        tangents[np.linalg.norm(tangents, axis=1) < 0.5] = (1.0, 0.0, 0.0)

    handedness = np.where(np.sum(np.cross(normal_rows, tangents) * tan2, axis=1) < 0.0, -1.0, 1.0)
    return np.hstack([tangents, handedness[:, None]]).astype(np.float32)


def compute_bounds(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Axis-aligned bounds as ``(center, extents)``; extents are half sizes."""
    points = np.asarray(positions, dtype=np.float32)
    if not len(points):
        zero = np.zeros(3, dtype=np.float32)
        return zero, zero.copy()
    low = points.min(axis=0)
    high = points.max(axis=0)
    return ((low + high) * 0.5).astype(np.float32), ((high - low) * 0.5).astype(np.float32)
