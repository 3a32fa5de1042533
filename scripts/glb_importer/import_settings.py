"""
import_settings.py
==================

Importer configuration: defaults, an optional JSON settings file and
environment overrides (applied last).

Settings file example::

    {
        "verbose_logging": true,
        "default_output_dir": "assets/imports",
        "available_techniques": ["Standard"],
        "normal_map_max_size": 4096
    }

Environment overrides: ``GLB_IMPORT_VERBOSE`` (1/true/yes/on) and
``GLB_IMPORT_OUTPUT_DIR``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields as dataclass_fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from glb_errors import AssetIOError

LIT_TECHNIQUE = "Universal Render Pipeline/Lit"
STANDARD_TECHNIQUE = "Standard"

DEFAULT_OUTPUT_DIR = Path("assets/imports")

ENV_VERBOSE = "GLB_IMPORT_VERBOSE"
ENV_OUTPUT_DIR = "GLB_IMPORT_OUTPUT_DIR"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ImportSettings:
    verbose_logging: bool = False
    default_output_dir: Path = DEFAULT_OUTPUT_DIR
    available_techniques: Tuple[str, ...] = (LIT_TECHNIQUE, STANDARD_TECHNIQUE)
    primary_technique: str = LIT_TECHNIQUE
    fallback_technique: str = STANDARD_TECHNIQUE
    texture_max_size: int = 2048
    normal_map_max_size: int = 4096


def _coerce(name: str, value: Any) -> Any:
    if name == "default_output_dir":
        return Path(value)
    if name == "available_techniques":
        if isinstance(value, str):
            return (value,)
        return tuple(str(item) for item in value)
    if name == "verbose_logging":
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return bool(value)
    if name in ("texture_max_size", "normal_map_max_size"):
        return int(value)
    return value


def settings_from_mapping(values: Mapping[str, Any], base: Optional[ImportSettings] = None) -> ImportSettings:
    base = base or ImportSettings()
    known = {f.name for f in dataclass_fields(ImportSettings)}
    updates: Dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logging.warning("Ignoring unknown import setting: %s", key)
            continue
        try:
            updates[key] = _coerce(key, value)
        except (TypeError, ValueError) as exc:
            raise AssetIOError(f"invalid settings value {key}: {exc}") from exc
    return replace(base, **updates)


def apply_environment(settings: ImportSettings, environ: Optional[Mapping[str, str]] = None) -> ImportSettings:
    environ = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    if environ.get(ENV_VERBOSE):
        updates["verbose_logging"] = environ[ENV_VERBOSE].strip().lower() in _TRUTHY
    if environ.get(ENV_OUTPUT_DIR):
        updates["default_output_dir"] = Path(environ[ENV_OUTPUT_DIR])
    return replace(settings, **updates) if updates else settings


def load_settings(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ImportSettings:
    settings = ImportSettings()
    if path is not None:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise AssetIOError(f"cannot read settings file {path}: {exc}") from exc
        except ValueError as exc:
            raise AssetIOError(f"invalid settings file {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise AssetIOError(f"invalid settings file {path}: root is not an object")
        settings = settings_from_mapping(payload, settings)
    return apply_environment(settings, environ)
