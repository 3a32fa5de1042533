"""
glb_materials.py
================

Maps the first glTF material's metallic-roughness channels onto the target
renderer's material model:

    baseColorTexture          -> _BaseMap (+ _MainTex alias)
    metallicRoughnessTexture  -> _MetallicGlossMap, keyword _METALLICGLOSSMAP
    baseColorFactor           -> _BaseColor (+ _Color alias)
    metallicFactor            -> _Metallic
    roughnessFactor           -> _Smoothness = 1 - roughness
    normalTexture             -> _BumpMap, keyword _NORMALMAP
    occlusionTexture          -> _OcclusionMap
    emissiveTexture           -> _EmissionMap, keyword _EMISSION
    emissiveFactor            -> _EmissionColor

A texture whose image was not extracted is skipped without error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from asset_store import AssetStore
from glb_document import GltfDocument
from glb_errors import MaterialError
from glb_images import TextureAsset
from import_settings import ImportSettings

DEFAULT_METALLIC = 1.0
DEFAULT_ROUGHNESS = 1.0

# (descriptor field, texture property, alias property, keyword)
TEXTURE_CHANNELS: Tuple[Tuple[str, str, Optional[str], Optional[str]], ...] = (
    ("base_color_image", "_BaseMap", "_MainTex", None),
    ("metallic_roughness_image", "_MetallicGlossMap", None, "_METALLICGLOSSMAP"),
    ("normal_image", "_BumpMap", None, "_NORMALMAP"),
    ("occlusion_image", "_OcclusionMap", None, None),
    ("emissive_image", "_EmissionMap", None, "_EMISSION"),
)

MATERIAL_EXTENSION = ".mat.json"


@dataclass
class MaterialDescriptor:
    base_color_factor: Optional[Tuple[float, float, float, float]] = None
    metallic_factor: float = DEFAULT_METALLIC
    roughness_factor: float = DEFAULT_ROUGHNESS
    emissive_factor: Optional[Tuple[float, float, float]] = None
    base_color_image: Optional[int] = None
    metallic_roughness_image: Optional[int] = None
    normal_image: Optional[int] = None
    occlusion_image: Optional[int] = None
    emissive_image: Optional[int] = None


@dataclass
class RenderMaterial:
    name: str
    technique: str
    colors: Dict[str, Tuple[float, float, float, float]] = field(default_factory=dict)
    floats: Dict[str, float] = field(default_factory=dict)
    textures: Dict[str, TextureAsset] = field(default_factory=dict)
    keywords: List[str] = field(default_factory=list)

    def set_color(self, prop: str, color: Tuple[float, ...]) -> None:
        rgba = tuple(float(c) for c in color) + (1.0,) * (4 - len(color))
        self.colors[prop] = rgba[:4]

    def set_float(self, prop: str, value: float) -> None:
        self.floats[prop] = float(value)

    def set_texture(self, prop: str, texture: TextureAsset) -> None:
        self.textures[prop] = texture

    def enable_keyword(self, keyword: str) -> None:
        if keyword not in self.keywords:
            self.keywords.append(keyword)


@dataclass
class MaterialAsset:
    name: str
    path: Path
    technique: str


def resolve_technique(settings: ImportSettings) -> str:
    available = set(settings.available_techniques)
    for candidate in (settings.primary_technique, settings.fallback_technique):
        if candidate in available:
            return candidate
    raise MaterialError(
        f"no suitable technique found ({settings.primary_technique} or {settings.fallback_technique})"
    )


def describe_material(document: GltfDocument) -> Optional[MaterialDescriptor]:
    """Flatten the first material into image indices and factors."""
    material = document.first_material
    if material is None:
        return None

    descriptor = MaterialDescriptor(
        emissive_factor=material.emissive_factor,
        normal_image=document.texture_image_index(material.normal_texture),
        occlusion_image=document.texture_image_index(material.occlusion_texture),
        emissive_image=document.texture_image_index(material.emissive_texture),
    )
    pbr = material.pbr_metallic_roughness
    if pbr is not None:
        descriptor.base_color_factor = pbr.base_color_factor
        if pbr.metallic_factor is not None:
            descriptor.metallic_factor = pbr.metallic_factor
        if pbr.roughness_factor is not None:
            descriptor.roughness_factor = pbr.roughness_factor
        descriptor.base_color_image = document.texture_image_index(pbr.base_color_texture)
        descriptor.metallic_roughness_image = document.texture_image_index(pbr.metallic_roughness_texture)
    return descriptor


def build_material(
    document: GltfDocument,
    textures: Dict[int, TextureAsset],
    asset_name: str,
    settings: ImportSettings,
) -> RenderMaterial:
    material = RenderMaterial(name=f"{asset_name}_Material", technique=resolve_technique(settings))

    descriptor = describe_material(document)
    if descriptor is None:
        logging.debug("No glTF material, using bare %s material", material.technique)
        return material

    for source_field, prop, alias, keyword in TEXTURE_CHANNELS:
        image_index = getattr(descriptor, source_field)
        texture = textures.get(image_index) if image_index is not None else None
        if texture is None:
            continue
        material.set_texture(prop, texture)
        if alias:
            material.set_texture(alias, texture)
        if keyword:
            material.enable_keyword(keyword)

    if descriptor.base_color_factor is not None:
        material.set_color("_BaseColor", descriptor.base_color_factor)
        material.set_color("_Color", descriptor.base_color_factor)

    material.set_float("_Metallic", descriptor.metallic_factor)
    # The target model uses smoothness, the inverse of roughness.
    material.set_float("_Smoothness", 1.0 - descriptor.roughness_factor)

    if descriptor.emissive_factor is not None:
        material.set_color("_EmissionColor", descriptor.emissive_factor)

    return material


def material_payload(store: AssetStore, material: RenderMaterial) -> Dict[str, object]:
    return {
        "name": material.name,
        "technique": material.technique,
        "colors": {prop: list(color) for prop, color in material.colors.items()},
        "floats": dict(material.floats),
        "textures": {prop: store.relative(tex.path) for prop, tex in material.textures.items()},
        "keywords": list(material.keywords),
    }


def save_material(store: AssetStore, material: RenderMaterial) -> MaterialAsset:
    path = store.unique_path(material.name, MATERIAL_EXTENSION)
    store.write_json(path, material_payload(store, material))
    logging.debug(
        "Material %s: technique=%s, %d texture(s), keywords=%s",
        path.name,
        material.technique,
        len(material.textures),
        ",".join(material.keywords) or "-",
    )
    return MaterialAsset(name=material.name, path=path, technique=material.technique)
