"""
asset_store.py
==============

Output-location bookkeeping for imported assets: folder creation, name
sanitizing, collision-free file names and the JSON / binary writers every stage
uses. Paths handed back to callers are absolute; `relative` gives the form
stored inside other assets.

Unique names are not reserved atomically: two imports writing into the same
folder at the same time can pick the same name.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict

from glb_errors import AssetIOError

SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]+")
DEFAULT_ASSET_NAME = "Unnamed"


def sanitize_asset_name(name: str) -> str:
    cleaned = SAFE_NAME_RE.sub("_", name or "").strip("._-")
    return cleaned or DEFAULT_ASSET_NAME


def add_suffix(stem: str, suffix: int) -> str:
    return f"{stem}_{suffix}"


class AssetStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def ensure_folder(self) -> Path:
        if self.root.exists() and not self.root.is_dir():
            raise AssetIOError(f"output location is not a directory: {self.root}")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AssetIOError(f"cannot create output location {self.root}: {exc}") from exc
        return self.root

    def unique_path(self, stem: str, extension: str) -> Path:
        """First free ``stem{extension}``, then ``stem_2{extension}``, ``stem_3``..."""
        candidate = self.root / f"{stem}{extension}"
        n = 2
        while candidate.exists():
            candidate = self.root / f"{add_suffix(stem, n)}{extension}"
            n += 1
        return candidate

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    def write_bytes(self, path: Path, data: bytes) -> Path:
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise AssetIOError(f"cannot write {path}: {exc}") from exc
        logging.debug("Wrote %s (%d bytes)", path, len(data))
        return path

    def write_json(self, path: Path, payload: Dict[str, Any]) -> Path:
        text = json.dumps(payload, indent=2, sort_keys=False)
        try:
            path.write_text(text + "\n", encoding="utf-8")
        except OSError as exc:
            raise AssetIOError(f"cannot write {path}: {exc}") from exc
        logging.debug("Wrote %s", path)
        return path
