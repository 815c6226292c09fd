from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import trimesh

from ftsim.electrodes.layout import MOVING_ELECTRODES, STATIONARY_ELECTRODES
from ftsim.meshes.provider_base import InMemoryMeshProvider

logger = logging.getLogger(__name__)

STATIONARY_MESH_FILE = "stationary_negative.obj"


def mesh_paths_for_dir(mesh_dir: str | Path) -> dict[str, Path]:
    directory = Path(mesh_dir)
    paths = {name: directory / f"{name}.obj" for name in MOVING_ELECTRODES}
    paths["stationary_negative"] = directory / STATIONARY_MESH_FILE
    return paths


def load_obj_mesh(path: str | Path) -> tuple[np.ndarray, np.ndarray]:
    mesh_path = Path(path)
    if not mesh_path.exists():
        raise FileNotFoundError(f"Mesh file not found: {mesh_path}")
    mesh = trimesh.load(str(mesh_path), force="mesh", process=False)
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    triangles = np.asarray(mesh.faces, dtype=np.int64)
    if triangles.size == 0:
        raise ValueError(f"Mesh file contains no triangles: {mesh_path}")
    return vertices, triangles


class ObjDirectoryMeshProvider(InMemoryMeshProvider):
    """Loads the electrode OBJ files from one directory.

    The single stationary counter-electrode file is registered once per
    group (``stationary_negative_A/B/C``); the pose store places each copy.
    """

    def __init__(self, mesh_dir: str | Path) -> None:
        super().__init__()
        self.mesh_dir = Path(mesh_dir)
        paths = mesh_paths_for_dir(self.mesh_dir)
        for name in MOVING_ELECTRODES:
            vertices, triangles = load_obj_mesh(paths[name])
            self.add(name, vertices, triangles)
            logger.debug("Loaded %s: %d vertices, %d triangles", name, len(vertices), len(triangles))

        vertices, triangles = load_obj_mesh(paths["stationary_negative"])
        for name in STATIONARY_ELECTRODES:
            self.add(name, vertices, triangles)
        logger.info("Loaded %d electrode meshes from %s", len(self.names()), self.mesh_dir)
