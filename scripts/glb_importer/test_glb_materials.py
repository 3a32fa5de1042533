#!/usr/bin/env python3
import json
import tempfile
import unittest
from pathlib import Path
import sys


SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import glb_materials as materials
from asset_store import AssetStore
from glb_document import parse_document
from glb_errors import MaterialError
from glb_images import TextureAsset
from import_settings import LIT_TECHNIQUE, STANDARD_TECHNIQUE, ImportSettings


def _texture(root: Path, index: int) -> TextureAsset:
    return TextureAsset(image_index=index, name=f"tex{index}", path=root / f"tex{index}.png", width=2, height=2)


def _document(material=None, texture_count: int = 0):
    payload = {"textures": [{"source": i} for i in range(texture_count)]}
    if material is not None:
        payload["materials"] = [material]
    return parse_document(payload)


class TechniqueTests(unittest.TestCase):
    def test_primary_technique_preferred(self) -> None:
        self.assertEqual(materials.resolve_technique(ImportSettings()), LIT_TECHNIQUE)

    def test_fallback_when_primary_missing(self) -> None:
        settings = ImportSettings(available_techniques=(STANDARD_TECHNIQUE,))
        self.assertEqual(materials.resolve_technique(settings), STANDARD_TECHNIQUE)

    def test_no_technique_raises(self) -> None:
        settings = ImportSettings(available_techniques=("Unlit",))
        with self.assertRaisesRegex(MaterialError, "no suitable technique found"):
            materials.resolve_technique(settings)


class MaterialBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.root = Path(self._temp.name)
        self.store = AssetStore(self.root)
        self.settings = ImportSettings()

    def tearDown(self) -> None:
        self._temp.cleanup()

    def test_factors_map_to_properties(self) -> None:
        document = _document(
            {
                "pbrMetallicRoughness": {
                    "baseColorFactor": [0.25, 0.5, 0.75, 1.0],
                    "metallicFactor": 0.0,
                    "roughnessFactor": 0.25,
                },
                "emissiveFactor": [1.0, 0.5, 0.0],
            }
        )
        material = materials.build_material(document, {}, "Crate", self.settings)

        self.assertEqual(material.name, "Crate_Material")
        self.assertEqual(material.technique, LIT_TECHNIQUE)
        self.assertEqual(material.colors["_BaseColor"], (0.25, 0.5, 0.75, 1.0))
        self.assertEqual(material.colors["_Color"], (0.25, 0.5, 0.75, 1.0))
        self.assertEqual(material.floats["_Metallic"], 0.0)
        self.assertAlmostEqual(material.floats["_Smoothness"], 0.75)
        self.assertEqual(material.colors["_EmissionColor"], (1.0, 0.5, 0.0, 1.0))
        self.assertEqual(material.textures, {})
        self.assertEqual(material.keywords, [])

    def test_missing_factors_use_defaults(self) -> None:
        material = materials.build_material(_document({}), {}, "Crate", self.settings)

        self.assertNotIn("_BaseColor", material.colors)
        self.assertEqual(material.floats["_Metallic"], materials.DEFAULT_METALLIC)
        self.assertAlmostEqual(material.floats["_Smoothness"], 1.0 - materials.DEFAULT_ROUGHNESS)

    def test_texture_channels_and_keywords(self) -> None:
        document = _document(
            {
                "pbrMetallicRoughness": {
                    "baseColorTexture": {"index": 0},
                    "metallicRoughnessTexture": {"index": 1},
                },
                "normalTexture": {"index": 2},
                "occlusionTexture": {"index": 3},
                "emissiveTexture": {"index": 4},
            },
            texture_count=5,
        )
        textures = {i: _texture(self.root, i) for i in range(5)}
        material = materials.build_material(document, textures, "Crate", self.settings)

        self.assertIs(material.textures["_BaseMap"], textures[0])
        self.assertIs(material.textures["_MainTex"], textures[0])
        self.assertIs(material.textures["_MetallicGlossMap"], textures[1])
        self.assertIs(material.textures["_BumpMap"], textures[2])
        self.assertIs(material.textures["_OcclusionMap"], textures[3])
        self.assertIs(material.textures["_EmissionMap"], textures[4])
        self.assertEqual(material.keywords, ["_METALLICGLOSSMAP", "_NORMALMAP", "_EMISSION"])

    def test_unextracted_texture_leaves_channel_unset(self) -> None:
        document = _document(
            {"pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}, "normalTexture": {"index": 1}},
            texture_count=2,
        )
        textures = {1: _texture(self.root, 1)}
        material = materials.build_material(document, textures, "Crate", self.settings)

        self.assertNotIn("_BaseMap", material.textures)
        self.assertNotIn("_MainTex", material.textures)
        self.assertIn("_BumpMap", material.textures)
        self.assertEqual(material.keywords, ["_NORMALMAP"])

    def test_no_gltf_material_gives_bare_material(self) -> None:
        material = materials.build_material(_document(), {}, "Crate", self.settings)

        self.assertEqual(material.name, "Crate_Material")
        self.assertEqual(material.colors, {})
        self.assertEqual(material.floats, {})
        self.assertEqual(material.textures, {})

    def test_saved_material_uses_relative_texture_paths(self) -> None:
        document = _document({"pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}}, texture_count=1)
        material = materials.build_material(document, {0: _texture(self.root, 0)}, "Crate", self.settings)

        asset = materials.save_material(self.store, material)

        self.assertEqual(asset.path.name, "Crate_Material.mat.json")
        payload = json.loads(asset.path.read_text(encoding="utf-8"))
        self.assertEqual(payload["technique"], LIT_TECHNIQUE)
        self.assertEqual(payload["textures"]["_BaseMap"], "tex0.png")
        self.assertEqual(payload["floats"]["_Metallic"], 1.0)

        second = materials.save_material(self.store, material)
        self.assertEqual(second.path.name, "Crate_Material_2.mat.json")


if __name__ == "__main__":
    unittest.main()
