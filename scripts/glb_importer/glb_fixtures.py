"""
In-memory GLB builders shared by the importer tests.
"""

from __future__ import annotations

import struct
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from PIL import Image

from glb_container import align4, build_glb

UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

_INDEX_FORMATS = {UNSIGNED_BYTE: "B", UNSIGNED_SHORT: "H", UNSIGNED_INT: "I"}


def png_bytes(size: Tuple[int, int] = (4, 2), color: Tuple[int, ...] = (255, 0, 0, 255), fmt: str = "PNG") -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    out = BytesIO()
    Image.new(mode, size, color[: len(mode)]).save(out, format=fmt)
    return out.getvalue()


def pack_floats(rows: Sequence[Sequence[float]]) -> bytes:
    flat = [float(v) for row in rows for v in row]
    return struct.pack(f"<{len(flat)}f", *flat)


class GlbBuilder:
    def __init__(self) -> None:
        self.blob = bytearray()
        self.payload: Dict[str, Any] = {
            "asset": {"version": "2.0"},
            "bufferViews": [],
            "accessors": [],
        }

    def _list(self, key: str) -> List[Dict[str, Any]]:
        return self.payload.setdefault(key, [])

    def add_view(self, data: bytes, byte_stride: Optional[int] = None) -> int:
        self.blob += b"\x00" * (align4(len(self.blob)) - len(self.blob))
        view: Dict[str, Any] = {"buffer": 0, "byteOffset": len(self.blob), "byteLength": len(data)}
        if byte_stride is not None:
            view["byteStride"] = byte_stride
        self.blob += data
        views = self._list("bufferViews")
        views.append(view)
        return len(views) - 1

    def add_accessor(self, view: int, component_type: int, count: int, type_: str, byte_offset: int = 0) -> int:
        accessor: Dict[str, Any] = {
            "bufferView": view,
            "componentType": component_type,
            "count": count,
            "type": type_,
        }
        if byte_offset:
            accessor["byteOffset"] = byte_offset
        accessors = self._list("accessors")
        accessors.append(accessor)
        return len(accessors) - 1

    def add_vec3(self, rows: Sequence[Sequence[float]]) -> int:
        return self.add_accessor(self.add_view(pack_floats(rows)), FLOAT, len(rows), "VEC3")

    def add_vec2(self, rows: Sequence[Sequence[float]]) -> int:
        return self.add_accessor(self.add_view(pack_floats(rows)), FLOAT, len(rows), "VEC2")

    def add_indices(self, values: Sequence[int], component_type: int = UNSIGNED_SHORT) -> int:
        fmt = _INDEX_FORMATS[component_type]
        data = struct.pack(f"<{len(values)}{fmt}", *values)
        return self.add_accessor(self.add_view(data), component_type, len(values), "SCALAR")

    def add_image(self, data: bytes, name: Optional[str] = None, mime_type: str = "image/png") -> int:
        image: Dict[str, Any] = {"bufferView": self.add_view(data), "mimeType": mime_type}
        if name is not None:
            image["name"] = name
        images = self._list("images")
        images.append(image)
        return len(images) - 1

    def add_external_image(self, uri: str) -> int:
        images = self._list("images")
        images.append({"uri": uri})
        return len(images) - 1

    def add_texture(self, image_index: int) -> int:
        textures = self._list("textures")
        textures.append({"source": image_index})
        return len(textures) - 1

    def set_primitive(self, attributes: Dict[str, int], indices: Optional[int] = None, name: Optional[str] = None) -> None:
        primitive: Dict[str, Any] = {"attributes": attributes}
        if indices is not None:
            primitive["indices"] = indices
        mesh: Dict[str, Any] = {"primitives": [primitive]}
        if name is not None:
            mesh["name"] = name
        self.payload["meshes"] = [mesh]

    def add_material(self, material: Dict[str, Any]) -> int:
        materials = self._list("materials")
        materials.append(material)
        return len(materials) - 1

    def build(self) -> bytes:
        if self.blob:
            self.payload["buffers"] = [{"byteLength": len(self.blob)}]
        return build_glb(self.payload, bytes(self.blob) if self.blob else None)

    def write(self, path: Path) -> Path:
        path.write_bytes(self.build())
        return path


TRIANGLE_POSITIONS = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
TRIANGLE_UVS = [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]


def triangle_builder(
    base_color: Optional[Sequence[float]] = (0.25, 0.5, 0.75, 1.0),
    with_normals: bool = False,
) -> GlbBuilder:
    """Three positions, three UVs, indices [0, 1, 2] and one material."""
    builder = GlbBuilder()
    attributes = {
        "POSITION": builder.add_vec3(TRIANGLE_POSITIONS),
        "TEXCOORD_0": builder.add_vec2(TRIANGLE_UVS),
    }
    if with_normals:
        attributes["NORMAL"] = builder.add_vec3([(0.0, 0.0, 1.0)] * 3)
    builder.set_primitive(attributes, indices=builder.add_indices([0, 1, 2]))
    pbr: Dict[str, Any] = {"metallicFactor": 0.0, "roughnessFactor": 0.25}
    if base_color is not None:
        pbr["baseColorFactor"] = list(base_color)
    builder.add_material({"pbrMetallicRoughness": pbr})
    return builder
