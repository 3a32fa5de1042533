#!/usr/bin/env python3
"""
glb_import.py
=============

Imports a GLB (glTF-Binary) file into renderer-ready assets without an external
glTF runtime: embedded textures (PNG + import settings), one material, one mesh
and a placeable template that binds the two.

Pipeline (fail-fast, in this order):

1. check the source file and create the output folder;
2. parse the container and the glTF document;
3. extract textures and classify the first material's normal map;
4. build and save the material;
5. build and save the mesh (Z negated, V flipped, winding reversed);
6. save the template.

`import_glb` never raises: every failure comes back as
``ImportResult(success=False, error_message=...)``. Assets written before a
failing step are left in place.

Usage:

    python3 glb_import.py model.glb assets/imports --asset-name Chair --verbose
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from asset_store import AssetStore, sanitize_asset_name
from glb_assembly import TemplateAsset, create_template
from glb_container import load_glb
from glb_document import parse_document
from glb_errors import AssetIOError, GlbImportError
from glb_images import TextureAsset, configure_normal_map, extract_textures
from glb_materials import MaterialAsset, build_material, save_material
from glb_mesh import MeshAsset, extract_mesh
from import_settings import ImportSettings, load_settings


@dataclass
class ImportResult:
    success: bool = False
    error_message: Optional[str] = None
    mesh: Optional[MeshAsset] = None
    material: Optional[MaterialAsset] = None
    textures: Dict[str, TextureAsset] = field(default_factory=dict)
    template: Optional[TemplateAsset] = None

    @property
    def mesh_path(self) -> Optional[Path]:
        return self.mesh.path if self.mesh else None

    @property
    def material_path(self) -> Optional[Path]:
        return self.material.path if self.material else None

    @property
    def template_path(self) -> Optional[Path]:
        return self.template.path if self.template else None

    @property
    def image_handles(self) -> List[TextureAsset]:
        return list(self.textures.values())

    @property
    def persisted_paths(self) -> List[Path]:
        paths: List[Path] = []
        for texture in self.textures.values():
            paths.extend([texture.path, texture.settings_path])
        for asset in (self.material, self.mesh, self.template):
            if asset is not None:
                paths.append(asset.path)
        return paths


def import_glb(
    source_path: Path,
    output_dir: Path,
    asset_name: Optional[str] = None,
    settings: Optional[ImportSettings] = None,
) -> ImportResult:
    result = ImportResult()
    settings = settings or ImportSettings()
    source_path = Path(source_path)

    try:
        if not source_path.is_file():
            raise AssetIOError(f"GLB file not found: {source_path}")

        store = AssetStore(Path(output_dir))
        store.ensure_folder()

        name = sanitize_asset_name(asset_name or source_path.stem)
        logging.info("Importing %s as %s", source_path, name)

        container = load_glb(source_path)
        document = parse_document(container.json)

        textures = extract_textures(document, container.binary_chunk, store, name, settings)
        result.textures = {f"image_{index}": texture for index, texture in textures.items()}
        configure_normal_map(document, textures, store, settings)

        material = build_material(document, textures, name, settings)
        result.material = save_material(store, material)

        result.mesh = extract_mesh(document, container.binary_chunk, store, name)

        result.template = create_template(store, name, result.mesh, result.material)
        result.success = True
        logging.info("Import complete: %s", result.template.path)
    except GlbImportError as exc:
        result.success = False
        result.error_message = str(exc)
        logging.exception("Import failed for %s: %s", source_path, exc)
    except Exception as exc:  # noqa: BLE001
        result.success = False
        result.error_message = str(exc) or type(exc).__name__
        logging.exception("Unexpected error importing %s: %s", source_path, exc)

    return result


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import a GLB file into textures, a material, a mesh and a template.",
    )
    parser.add_argument("source", type=Path, help="GLB file to import.")
    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Output folder (default: settings default_output_dir, assets/imports).",
    )
    parser.add_argument(
        "--asset-name",
        default=None,
        help="Base name for the imported assets (default: source file stem).",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON settings file (see import_settings.py).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(list(argv))


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    logging.getLogger("PIL").setLevel(logging.INFO)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        settings = load_settings(args.settings)
    except GlbImportError as exc:
        configure_logging(args.verbose)
        logging.error("%s", exc)
        return 1

    configure_logging(args.verbose or settings.verbose_logging)
    output = args.output if args.output is not None else settings.default_output_dir

    result = import_glb(args.source, output, asset_name=args.asset_name, settings=settings)
    if not result.success:
        return 1

    logging.info("---- Import Summary ----")
    logging.info("Textures: %d", len(result.textures))
    logging.info("Material: %s", result.material_path)
    logging.info(
        "Mesh: %s (%d vertices, %d triangles, %s indices)",
        result.mesh_path,
        result.mesh.vertex_count,
        result.mesh.triangle_count,
        result.mesh.index_format,
    )
    logging.info("Template: %s", result.template_path)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
