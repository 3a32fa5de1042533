"""
glb_mesh.py
===========

Builds the renderer mesh from ``meshes[0].primitives[0]``.

Steps, each conversion applied exactly once:

1. decode POSITION (required), NORMAL and TEXCOORD_0 (optional) and the index
   accessor, or synthesize ``0..n-1`` when the primitive has no indices;
2. negate Z on positions and normals, flip V on UVs, reverse triangle winding;
3. recompute normals when the file had none, then tangents and bounds;
4. persist as a numpy archive with 16-bit indices, or 32-bit past 65535 vertices.

Nothing is written until the whole mesh has been built.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from asset_store import AssetStore
from glb_accessors import read_indices, read_vec2, read_vec3
from glb_document import GltfDocument, GltfPrimitive
from glb_errors import AssetIOError, DecodeWarning, GeometryError, UnsupportedComponentType
from glb_geometry import (
    compute_bounds,
    compute_tangents,
    compute_vertex_normals,
    flip_handedness,
    flip_uv_origin,
    index_format_for,
    reverse_winding,
    sequential_indices,
)

MESH_EXTENSION = ".npz"


@dataclass(frozen=True)
class GeometryBuffers:
    positions: np.ndarray
    indices: np.ndarray
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


@dataclass
class RenderMesh:
    name: str
    positions: np.ndarray
    normals: np.ndarray
    tangents: np.ndarray
    indices: np.ndarray
    uvs: Optional[np.ndarray]
    bounds_center: np.ndarray
    bounds_extents: np.ndarray
    index_format: str

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


@dataclass
class MeshAsset:
    name: str
    path: Path
    vertex_count: int
    triangle_count: int
    index_format: str


def _first_primitive(document: GltfDocument) -> GltfPrimitive:
    mesh = document.first_mesh
    if mesh is None or not mesh.primitives:
        raise GeometryError("no meshes/primitives/positions: file has no mesh primitive")
    primitive = mesh.primitives[0]
    if "POSITION" not in primitive.attributes:
        raise GeometryError("no meshes/primitives/positions: primitive has no POSITION attribute")
    return primitive


def _read_attribute(reader, document: GltfDocument, binary_chunk: Optional[bytes], semantic: str, accessor_index: int) -> np.ndarray:
    try:
        return reader(document, binary_chunk, accessor_index)
    except UnsupportedComponentType as exc:
        raise DecodeWarning(f"{semantic}: {exc}") from exc


def _optional_attribute(
    reader,
    document: GltfDocument,
    binary_chunk: Optional[bytes],
    primitive: GltfPrimitive,
    semantic: str,
) -> Optional[np.ndarray]:
    accessor_index = primitive.attributes.get(semantic)
    if accessor_index is None:
        return None
    try:
        return _read_attribute(reader, document, binary_chunk, semantic, accessor_index)
    except DecodeWarning as exc:
        logging.warning("Dropping %s attribute: %s", semantic, exc)
        return None


def decode_geometry(document: GltfDocument, binary_chunk: Optional[bytes]) -> GeometryBuffers:
    """Decode the first primitive in glTF space, without any conversion."""
    primitive = _first_primitive(document)
    positions = read_vec3(document, binary_chunk, primitive.attributes["POSITION"])
    if not len(positions):
        raise GeometryError("no meshes/primitives/positions: POSITION accessor is empty")

    normals = _optional_attribute(read_vec3, document, binary_chunk, primitive, "NORMAL")
    uvs = _optional_attribute(read_vec2, document, binary_chunk, primitive, "TEXCOORD_0")

    for semantic, values in (("NORMAL", normals), ("TEXCOORD_0", uvs)):
        if values is not None and len(values) != len(positions):
            raise GeometryError(f"{semantic} has {len(values)} elements, POSITION has {len(positions)}")

    if primitive.indices is not None:
        indices = read_indices(document, binary_chunk, primitive.indices)
    else:
        indices = sequential_indices(len(positions))

    return GeometryBuffers(positions=positions, indices=indices, normals=normals, uvs=uvs)


def convert_geometry(buffers: GeometryBuffers) -> GeometryBuffers:
    """Right-handed glTF space to the left-handed target space."""
    return GeometryBuffers(
        positions=flip_handedness(buffers.positions),
        normals=flip_handedness(buffers.normals) if buffers.normals is not None else None,
        uvs=flip_uv_origin(buffers.uvs) if buffers.uvs is not None else None,
        indices=reverse_winding(buffers.indices),
    )


def build_render_mesh(name: str, buffers: GeometryBuffers) -> RenderMesh:
    """Finish converted buffers into a renderer mesh (normals, tangents, bounds)."""
    indices = buffers.indices
    remainder = len(indices) % 3
    if remainder:
        logging.warning("Index count %d is not a multiple of 3; dropping %d trailing index(es)", len(indices), remainder)
        indices = indices[: len(indices) - remainder]

    vertex_count = buffers.vertex_count
    if len(indices) and int(indices.max()) >= vertex_count:
        raise GeometryError(f"index {int(indices.max())} out of range for {vertex_count} vertices")

    normals = buffers.normals
    if normals is None:
        normals = compute_vertex_normals(buffers.positions, indices)

    uvs = buffers.uvs
    tangent_uvs = uvs if uvs is not None else np.zeros((vertex_count, 2), dtype=np.float32)
    tangents = compute_tangents(buffers.positions, normals, tangent_uvs, indices)
    center, extents = compute_bounds(buffers.positions)

    index_format = index_format_for(vertex_count)
    return RenderMesh(
        name=name,
        positions=buffers.positions,
        normals=normals,
        tangents=tangents,
        indices=indices.astype(np.dtype(index_format)),
        uvs=uvs,
        bounds_center=center,
        bounds_extents=extents,
        index_format=index_format,
    )


def save_mesh(store: AssetStore, mesh: RenderMesh, stem: str) -> MeshAsset:
    path = store.unique_path(stem, MESH_EXTENSION)
    metadata = {
        "name": mesh.name,
        "vertex_count": mesh.vertex_count,
        "triangle_count": mesh.triangle_count,
        "index_format": mesh.index_format,
    }
    arrays = {
        "positions": mesh.positions,
        "normals": mesh.normals,
        "tangents": mesh.tangents,
        "indices": mesh.indices,
        "bounds_center": mesh.bounds_center,
        "bounds_extents": mesh.bounds_extents,
        "metadata": np.array(json.dumps(metadata)),
    }
    if mesh.uvs is not None:
        arrays["uvs"] = mesh.uvs

    try:
        with path.open("wb") as handle:
            np.savez_compressed(handle, **arrays)
    except OSError as exc:
        raise AssetIOError(f"cannot write mesh {path}: {exc}") from exc

    return MeshAsset(
        name=mesh.name,
        path=path,
        vertex_count=mesh.vertex_count,
        triangle_count=mesh.triangle_count,
        index_format=mesh.index_format,
    )


def extract_mesh(
    document: GltfDocument,
    binary_chunk: Optional[bytes],
    store: AssetStore,
    asset_name: str,
) -> MeshAsset:
    buffers = convert_geometry(decode_geometry(document, binary_chunk))
    mesh_name = document.first_mesh.name or f"{asset_name}_Mesh"
    mesh = build_render_mesh(mesh_name, buffers)
    asset = save_mesh(store, mesh, f"{asset_name}_Mesh")
    logging.debug(
        "Mesh: %d vertices, %d triangles, %s indices -> %s",
        asset.vertex_count,
        asset.triangle_count,
        asset.index_format,
        asset.path,
    )
    return asset
