"""
glb_document.py
===============

Typed view of the glTF JSON subset the importer consumes. The untyped payload
is validated once in `parse_document`; later stages only see dataclasses with
explicit optional fields.

Consumed subset:

* ``bufferViews[].{byteOffset, byteLength, byteStride}``
* ``accessors[].{count, bufferView, byteOffset, componentType, type}``
* ``images[].{bufferView, uri, name}`` and ``textures[].source``
* ``meshes[].{name, primitives[].{attributes, indices}}``
* ``materials[].{pbrMetallicRoughness, normalTexture, occlusionTexture,
  emissiveTexture, emissiveFactor}``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from glb_errors import FormatError

DEFAULT_BYTE_OFFSET = 0


@dataclass(frozen=True)
class GltfBufferView:
    byte_length: int
    byte_offset: int = DEFAULT_BYTE_OFFSET
    byte_stride: Optional[int] = None


@dataclass(frozen=True)
class GltfAccessor:
    count: int
    component_type: Optional[int] = None
    buffer_view: Optional[int] = None
    byte_offset: int = DEFAULT_BYTE_OFFSET
    type: Optional[str] = None


@dataclass(frozen=True)
class GltfImage:
    name: Optional[str] = None
    buffer_view: Optional[int] = None
    uri: Optional[str] = None


@dataclass(frozen=True)
class GltfTexture:
    source: Optional[int] = None


@dataclass(frozen=True)
class GltfTextureInfo:
    index: int


@dataclass(frozen=True)
class GltfPbrMetallicRoughness:
    base_color_factor: Optional[Tuple[float, float, float, float]] = None
    metallic_factor: Optional[float] = None
    roughness_factor: Optional[float] = None
    base_color_texture: Optional[GltfTextureInfo] = None
    metallic_roughness_texture: Optional[GltfTextureInfo] = None


@dataclass(frozen=True)
class GltfMaterial:
    name: Optional[str] = None
    pbr_metallic_roughness: Optional[GltfPbrMetallicRoughness] = None
    normal_texture: Optional[GltfTextureInfo] = None
    occlusion_texture: Optional[GltfTextureInfo] = None
    emissive_texture: Optional[GltfTextureInfo] = None
    emissive_factor: Optional[Tuple[float, float, float]] = None


@dataclass(frozen=True)
class GltfPrimitive:
    attributes: Dict[str, int]
    indices: Optional[int] = None


@dataclass(frozen=True)
class GltfMesh:
    primitives: List[GltfPrimitive]
    name: Optional[str] = None


@dataclass
class GltfDocument:
    buffer_views: List[GltfBufferView] = field(default_factory=list)
    accessors: List[GltfAccessor] = field(default_factory=list)
    images: List[GltfImage] = field(default_factory=list)
    textures: List[GltfTexture] = field(default_factory=list)
    materials: List[GltfMaterial] = field(default_factory=list)
    meshes: List[GltfMesh] = field(default_factory=list)

    @property
    def first_material(self) -> Optional[GltfMaterial]:
        return self.materials[0] if self.materials else None

    @property
    def first_mesh(self) -> Optional[GltfMesh]:
        return self.meshes[0] if self.meshes else None

    def texture_image_index(self, info: Optional[GltfTextureInfo]) -> Optional[int]:
        """Resolve a material texture reference to its source image index."""
        if info is None:
            return None
        if info.index < 0 or info.index >= len(self.textures):
            return None
        return self.textures[info.index].source


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _opt_int(obj: Dict[str, Any], key: str, where: str, minimum: int = 0) -> Optional[int]:
    value = obj.get(key)
    if value is None:
        return None
    if not _is_int(value) or value < minimum:
        raise FormatError(f"{where}.{key} must be an integer >= {minimum}, got {value!r}")
    return value


def _req_int(obj: Dict[str, Any], key: str, where: str, minimum: int = 0) -> int:
    value = _opt_int(obj, key, where, minimum)
    if value is None:
        raise FormatError(f"{where}.{key} is required")
    return value


def _opt_float(obj: Dict[str, Any], key: str, where: str) -> Optional[float]:
    value = obj.get(key)
    if value is None:
        return None
    if not _is_number(value):
        raise FormatError(f"{where}.{key} must be a number, got {value!r}")
    return float(value)


def _opt_str(obj: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise FormatError(f"{where}.{key} must be a string, got {value!r}")
    return value


def _opt_factor(obj: Dict[str, Any], key: str, where: str, size: int) -> Optional[Tuple[float, ...]]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != size or not all(_is_number(v) for v in value):
        raise FormatError(f"{where}.{key} must be a list of {size} numbers, got {value!r}")
    return tuple(float(v) for v in value)


def _objects(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise FormatError(f"{key} must be a list")
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise FormatError(f"{key}[{index}] is not an object")
    return value


def _texture_info(obj: Dict[str, Any], key: str, where: str) -> Optional[GltfTextureInfo]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise FormatError(f"{where}.{key} is not an object")
    inner = f"{where}.{key}"
    return GltfTextureInfo(index=_req_int(value, "index", inner))


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------

def _parse_buffer_view(index: int, obj: Dict[str, Any]) -> GltfBufferView:
    where = f"bufferViews[{index}]"
    return GltfBufferView(
        byte_length=_req_int(obj, "byteLength", where),
        byte_offset=_opt_int(obj, "byteOffset", where) or DEFAULT_BYTE_OFFSET,
        byte_stride=_opt_int(obj, "byteStride", where, minimum=1),
    )


def _parse_accessor(index: int, obj: Dict[str, Any]) -> GltfAccessor:
    where = f"accessors[{index}]"
    return GltfAccessor(
        count=_req_int(obj, "count", where),
        component_type=_opt_int(obj, "componentType", where),
        buffer_view=_opt_int(obj, "bufferView", where),
        byte_offset=_opt_int(obj, "byteOffset", where) or DEFAULT_BYTE_OFFSET,
        type=_opt_str(obj, "type", where),
    )


def _parse_image(index: int, obj: Dict[str, Any]) -> GltfImage:
    where = f"images[{index}]"
    return GltfImage(
        name=_opt_str(obj, "name", where),
        buffer_view=_opt_int(obj, "bufferView", where),
        uri=_opt_str(obj, "uri", where),
    )


def _parse_material(index: int, obj: Dict[str, Any]) -> GltfMaterial:
    where = f"materials[{index}]"
    pbr: Optional[GltfPbrMetallicRoughness] = None
    pbr_obj = obj.get("pbrMetallicRoughness")
    if pbr_obj is not None:
        if not isinstance(pbr_obj, dict):
            raise FormatError(f"{where}.pbrMetallicRoughness is not an object")
        pbr_where = f"{where}.pbrMetallicRoughness"
        pbr = GltfPbrMetallicRoughness(
            base_color_factor=_opt_factor(pbr_obj, "baseColorFactor", pbr_where, 4),
            metallic_factor=_opt_float(pbr_obj, "metallicFactor", pbr_where),
            roughness_factor=_opt_float(pbr_obj, "roughnessFactor", pbr_where),
            base_color_texture=_texture_info(pbr_obj, "baseColorTexture", pbr_where),
            metallic_roughness_texture=_texture_info(pbr_obj, "metallicRoughnessTexture", pbr_where),
        )
    return GltfMaterial(
        name=_opt_str(obj, "name", where),
        pbr_metallic_roughness=pbr,
        normal_texture=_texture_info(obj, "normalTexture", where),
        occlusion_texture=_texture_info(obj, "occlusionTexture", where),
        emissive_texture=_texture_info(obj, "emissiveTexture", where),
        emissive_factor=_opt_factor(obj, "emissiveFactor", where, 3),
    )


def _parse_mesh(index: int, obj: Dict[str, Any]) -> GltfMesh:
    where = f"meshes[{index}]"
    primitives: List[GltfPrimitive] = []
    for prim_index, prim in enumerate(_objects(obj, "primitives")):
        prim_where = f"{where}.primitives[{prim_index}]"
        attributes = prim.get("attributes", {})
        if not isinstance(attributes, dict):
            raise FormatError(f"{prim_where}.attributes is not an object")
        for semantic, accessor_index in attributes.items():
            if not _is_int(accessor_index) or accessor_index < 0:
                raise FormatError(f"{prim_where}.attributes.{semantic} must be an accessor index")
        primitives.append(
            GltfPrimitive(
                attributes=dict(attributes),
                indices=_opt_int(prim, "indices", prim_where),
            )
        )
    return GltfMesh(primitives=primitives, name=_opt_str(obj, "name", where))


def _warn_ignored(kind: str, entries: List[Any]) -> None:
    if len(entries) > 1:
        logging.warning("Only the first of %d %s is imported; %d ignored", len(entries), kind, len(entries) - 1)


def parse_document(payload: Dict[str, Any]) -> GltfDocument:
    document = GltfDocument(
        buffer_views=[_parse_buffer_view(i, o) for i, o in enumerate(_objects(payload, "bufferViews"))],
        accessors=[_parse_accessor(i, o) for i, o in enumerate(_objects(payload, "accessors"))],
        images=[_parse_image(i, o) for i, o in enumerate(_objects(payload, "images"))],
        textures=[
            GltfTexture(source=_opt_int(o, "source", f"textures[{i}]"))
            for i, o in enumerate(_objects(payload, "textures"))
        ],
        materials=[_parse_material(i, o) for i, o in enumerate(_objects(payload, "materials"))],
        meshes=[_parse_mesh(i, o) for i, o in enumerate(_objects(payload, "meshes"))],
    )

    _warn_ignored("meshes", document.meshes)
    _warn_ignored("materials", document.materials)
    if document.meshes:
        _warn_ignored("primitives", document.meshes[0].primitives)

    return document
