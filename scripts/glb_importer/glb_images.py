"""
glb_images.py
=============

Extracts images embedded in the BIN chunk, re-encodes them as PNG and writes
them next to an import-settings sidecar (``<file>.png.import.json``).

Images that point at an external URI, or whose bytes cannot be sliced or
decoded, are skipped with a warning. The returned map is keyed by image index
and simply has no entry for a skipped image; consumers treat that as an absent
channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from asset_store import AssetStore, sanitize_asset_name
from glb_document import GltfDocument, GltfImage
from glb_errors import DecodeWarning
from import_settings import ImportSettings

TEXTURE_TYPE_DEFAULT = "default"
TEXTURE_TYPE_NORMAL_MAP = "normal_map"

IMPORT_SETTINGS_SUFFIX = ".import.json"


@dataclass
class TextureAsset:
    image_index: int
    name: str
    path: Path
    width: int
    height: int
    texture_type: str = TEXTURE_TYPE_DEFAULT
    max_size: int = 2048
    srgb: bool = True

    @property
    def settings_path(self) -> Path:
        return self.path.with_name(self.path.name + IMPORT_SETTINGS_SUFFIX)

    def import_settings(self) -> Dict[str, object]:
        return {
            "texture_type": self.texture_type,
            "max_size": self.max_size,
            "srgb": self.srgb,
            "source_image_index": self.image_index,
            "width": self.width,
            "height": self.height,
        }


def decode_embedded_image(raw_bytes: bytes) -> Tuple[bytes, int, int]:
    """Decode raster bytes and re-encode them as RGBA PNG.

    Decoded buffers are closed on every path out of this function.
    """
    try:
        with Image.open(BytesIO(raw_bytes)) as img:
            img.load()
            width, height = img.size
            with img.convert("RGBA") as rgba:
                out = BytesIO()
                rgba.save(out, format="PNG")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeWarning(f"cannot decode image: {exc}") from exc
    return out.getvalue(), width, height


def slice_image_bytes(
    image_index: int,
    image: GltfImage,
    document: GltfDocument,
    binary_chunk: Optional[bytes],
) -> bytes:
    if image.buffer_view is None:
        raise DecodeWarning(f"image {image_index} uses an external URI ({image.uri!r}), not supported")
    if binary_chunk is None:
        raise DecodeWarning(f"image {image_index}: no BIN chunk to extract from")
    if image.buffer_view >= len(document.buffer_views):
        raise DecodeWarning(f"image {image_index} references missing bufferView {image.buffer_view}")

    view = document.buffer_views[image.buffer_view]
    end = view.byte_offset + view.byte_length
    if view.byte_length == 0 or end > len(binary_chunk):
        raise DecodeWarning(
            f"image {image_index}: bufferView {image.buffer_view} range "
            f"{view.byte_offset}..{end} outside BIN chunk ({len(binary_chunk)} bytes)"
        )
    return binary_chunk[view.byte_offset:end]


def write_texture_settings(store: AssetStore, texture: TextureAsset) -> Path:
    return store.write_json(texture.settings_path, texture.import_settings())


def texture_name_for(image_index: int, image: GltfImage, asset_name: str) -> str:
    if image.name:
        return sanitize_asset_name(image.name)
    return f"{asset_name}_Tex{image_index}"


def extract_textures(
    document: GltfDocument,
    binary_chunk: Optional[bytes],
    store: AssetStore,
    asset_name: str,
    settings: ImportSettings,
) -> Dict[int, TextureAsset]:
    textures: Dict[int, TextureAsset] = {}

    for image_index, image in enumerate(document.images):
        try:
            raw = slice_image_bytes(image_index, image, document, binary_chunk)
            png_bytes, width, height = decode_embedded_image(raw)
        except DecodeWarning as exc:
            logging.warning("Skipping image %d: %s", image_index, exc)
            continue

        name = texture_name_for(image_index, image, asset_name)
        path = store.write_bytes(store.unique_path(name, ".png"), png_bytes)
        texture = TextureAsset(
            image_index=image_index,
            name=path.stem,
            path=path,
            width=width,
            height=height,
            max_size=settings.texture_max_size,
        )
        write_texture_settings(store, texture)
        textures[image_index] = texture
        logging.debug("Extracted texture: %s (%dx%d)", path, width, height)

    return textures


def configure_normal_map(
    document: GltfDocument,
    textures: Dict[int, TextureAsset],
    store: AssetStore,
    settings: ImportSettings,
) -> Optional[TextureAsset]:
    """Re-classify the first material's normal texture as a normal map.

    Only the first material is inspected, and only the one image it references
    is changed, even if other channels share that image.
    """
    material = document.first_material
    if material is None:
        return None

    image_index = document.texture_image_index(material.normal_texture)
    if image_index is None or image_index not in textures:
        return None

    texture = textures[image_index]
    if texture.texture_type == TEXTURE_TYPE_NORMAL_MAP:
        return texture

    texture.texture_type = TEXTURE_TYPE_NORMAL_MAP
    texture.max_size = settings.normal_map_max_size
    texture.srgb = False
    write_texture_settings(store, texture)
    logging.debug("Configured as normal map: %s", texture.path)
    return texture
