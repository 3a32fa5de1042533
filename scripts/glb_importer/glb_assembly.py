"""
glb_assembly.py
===============

Composes the persisted mesh and material into a placeable template
(``<asset>.prefab.json``). The scene node is only an in-memory staging object:
it is serialized once and then dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from asset_store import AssetStore
from glb_materials import MaterialAsset
from glb_mesh import MeshAsset

TEMPLATE_EXTENSION = ".prefab.json"

IDENTITY_TRANSFORM: Dict[str, List[float]] = {
    "position": [0.0, 0.0, 0.0],
    "rotation": [0.0, 0.0, 0.0, 1.0],
    "scale": [1.0, 1.0, 1.0],
}


@dataclass
class SceneNode:
    name: str
    mesh: MeshAsset
    material: MaterialAsset
    transform: Dict[str, List[float]] = field(default_factory=lambda: {k: list(v) for k, v in IDENTITY_TRANSFORM.items()})

    def to_template(self, store: AssetStore) -> Dict[str, object]:
        return {
            "name": self.name,
            "transform": self.transform,
            "mesh_filter": {"mesh": store.relative(self.mesh.path)},
            "mesh_renderer": {"material": store.relative(self.material.path)},
        }


@dataclass
class TemplateAsset:
    name: str
    path: Path


def create_template(
    store: AssetStore,
    asset_name: str,
    mesh: MeshAsset,
    material: MaterialAsset,
) -> TemplateAsset:
    node = SceneNode(name=asset_name, mesh=mesh, material=material)
    path = store.unique_path(asset_name, TEMPLATE_EXTENSION)
    store.write_json(path, node.to_template(store))
    logging.debug("Template written: %s", path)
    return TemplateAsset(name=asset_name, path=path)
