#!/usr/bin/env python3
import json
import tempfile
import unittest
from pathlib import Path
import sys

from PIL import Image


SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import glb_images as images
from asset_store import AssetStore
from glb_document import parse_document
from glb_errors import DecodeWarning
from glb_fixtures import GlbBuilder, png_bytes
from import_settings import ImportSettings


class ImageExtractorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.store = AssetStore(Path(self._temp.name))
        self.settings = ImportSettings()

    def tearDown(self) -> None:
        self._temp.cleanup()

    def _extract(self, builder: GlbBuilder):
        document = parse_document(builder.payload)
        textures = images.extract_textures(document, bytes(builder.blob), self.store, "Crate", self.settings)
        return document, textures

    def test_embedded_png_is_written_with_settings(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes(size=(4, 2)), name="albedo")
        _document, textures = self._extract(builder)

        self.assertEqual(list(textures), [0])
        texture = textures[0]
        self.assertEqual(texture.name, "albedo")
        self.assertEqual(texture.path.name, "albedo.png")
        self.assertEqual((texture.width, texture.height), (4, 2))
        with Image.open(texture.path) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.size, (4, 2))

        sidecar = json.loads(texture.settings_path.read_text(encoding="utf-8"))
        self.assertEqual(texture.settings_path.name, "albedo.png.import.json")
        self.assertEqual(sidecar["texture_type"], images.TEXTURE_TYPE_DEFAULT)
        self.assertTrue(sidecar["srgb"])
        self.assertEqual(sidecar["max_size"], self.settings.texture_max_size)
        self.assertEqual(sidecar["source_image_index"], 0)

    def test_jpeg_is_reencoded_as_png(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes(size=(8, 8), color=(0, 128, 255), fmt="JPEG"), mime_type="image/jpeg")
        _document, textures = self._extract(builder)

        self.assertEqual(textures[0].path.name, "Crate_Tex0.png")
        with Image.open(textures[0].path) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.mode, "RGBA")

    def test_external_uri_is_skipped_with_warning(self) -> None:
        builder = GlbBuilder()
        builder.add_external_image("textures/wood.png")
        builder.add_image(png_bytes())
        with self.assertLogs(level="WARNING") as logs:
            _document, textures = self._extract(builder)

        self.assertEqual(list(textures), [1])
        self.assertTrue(any("Skipping image 0" in line for line in logs.output))

    def test_corrupt_bytes_are_skipped(self) -> None:
        builder = GlbBuilder()
        builder.add_image(b"not an image at all")
        with self.assertLogs(level="WARNING"):
            _document, textures = self._extract(builder)

        self.assertEqual(textures, {})
        self.assertEqual(list(self.store.root.iterdir()), [])

    def test_name_collisions_get_suffix(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes(), name="diffuse")
        builder.add_image(png_bytes(color=(0, 255, 0, 255)), name="diffuse")
        _document, textures = self._extract(builder)

        self.assertEqual(textures[0].path.name, "diffuse.png")
        self.assertEqual(textures[1].path.name, "diffuse_2.png")
        self.assertEqual(textures[1].name, "diffuse_2")

    def test_decode_rejects_garbage(self) -> None:
        with self.assertRaises(DecodeWarning):
            images.decode_embedded_image(b"\x89PNG\r\n\x1a\nbroken")

    def test_slice_outside_binary_chunk(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes())
        document = parse_document(builder.payload)
        with self.assertRaises(DecodeWarning):
            images.slice_image_bytes(0, document.images[0], document, bytes(builder.blob)[:10])
        with self.assertRaises(DecodeWarning):
            images.slice_image_bytes(0, document.images[0], document, None)

    def test_normal_texture_is_reclassified(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes(), name="base")
        builder.add_image(png_bytes(color=(128, 128, 255, 255)), name="normal")
        builder.add_texture(0)
        builder.add_texture(1)
        builder.add_material(
            {
                "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}},
                "normalTexture": {"index": 1},
            }
        )
        document, textures = self._extract(builder)

        configured = images.configure_normal_map(document, textures, self.store, self.settings)

        self.assertIs(configured, textures[1])
        self.assertEqual(textures[1].texture_type, images.TEXTURE_TYPE_NORMAL_MAP)
        self.assertEqual(textures[0].texture_type, images.TEXTURE_TYPE_DEFAULT)
        sidecar = json.loads(textures[1].settings_path.read_text(encoding="utf-8"))
        self.assertEqual(sidecar["texture_type"], "normal_map")
        self.assertFalse(sidecar["srgb"])
        self.assertEqual(sidecar["max_size"], self.settings.normal_map_max_size)

    def test_no_material_means_no_normal_map(self) -> None:
        builder = GlbBuilder()
        builder.add_image(png_bytes())
        document, textures = self._extract(builder)

        self.assertIsNone(images.configure_normal_map(document, textures, self.store, self.settings))
        self.assertEqual(textures[0].texture_type, images.TEXTURE_TYPE_DEFAULT)

    def test_normal_map_on_skipped_image_is_ignored(self) -> None:
        builder = GlbBuilder()
        builder.add_external_image("normal.png")
        builder.add_texture(0)
        builder.add_material({"normalTexture": {"index": 0}})
        with self.assertLogs(level="WARNING"):
            document, textures = self._extract(builder)

        self.assertIsNone(images.configure_normal_map(document, textures, self.store, self.settings))


if __name__ == "__main__":
    unittest.main()
