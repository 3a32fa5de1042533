"""
glb_errors.py
=============

Error taxonomy shared by every stage of the GLB importer.

Fatal errors derive from `GlbImportError` and unwind to `glb_import.import_glb`,
which turns them into a failed `ImportResult`. `DecodeWarning` is non-fatal: it
is raised and caught inside a single stage so that the affected element can be
skipped while the rest of the file keeps importing.
"""

from __future__ import annotations


class GlbImportError(Exception):
    pass


class FormatError(GlbImportError):
    """Malformed or unsupported container, chunk, document or accessor layout."""


class UnsupportedComponentType(FormatError):
    def __init__(self, accessor_index: int, component_type: object) -> None:
        super().__init__(
            f"unsupported component type {component_type} in accessor {accessor_index}"
        )
        self.accessor_index = accessor_index
        self.component_type = component_type


class GeometryError(GlbImportError):
    """Mandatory mesh data is missing or inconsistent."""


class MaterialError(GlbImportError):
    """No usable rendering technique is available for the material."""


class AssetIOError(GlbImportError):
    """Missing source file or an output location that cannot be written."""


class DecodeWarning(GlbImportError):
    """A single optional element could not be decoded and is skipped."""
