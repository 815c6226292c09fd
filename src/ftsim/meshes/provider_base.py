from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class ElectrodeMesh:
    name: str
    vertices: np.ndarray
    triangles: np.ndarray

    def __post_init__(self) -> None:
        vertices = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        triangles = np.array(self.triangles, dtype=np.int64).reshape(-1, 3)
        vertices.setflags(write=False)
        triangles.setflags(write=False)
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "triangles", triangles)

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])


class MeshProvider(ABC):
    """Interface for electrode surface geometry in local (body) coordinates."""

    @abstractmethod
    def get_mesh(self, name: str) -> ElectrodeMesh:
        """Return the mesh registered under ``name`` or raise ``KeyError``."""

    @abstractmethod
    def names(self) -> tuple[str, ...]:
        """Return the registered mesh names."""


class InMemoryMeshProvider(MeshProvider):
    def __init__(self, meshes: dict[str, tuple[np.ndarray, np.ndarray]] | None = None) -> None:
        self._meshes: dict[str, ElectrodeMesh] = {}
        for name, (vertices, triangles) in (meshes or {}).items():
            self.add(name, vertices, triangles)

    def add(self, name: str, vertices: np.ndarray, triangles: np.ndarray) -> None:
        self._meshes[name] = ElectrodeMesh(name=name, vertices=vertices, triangles=triangles)

    def get_mesh(self, name: str) -> ElectrodeMesh:
        if name not in self._meshes:
            raise KeyError(f"No mesh registered for '{name}'")
        return self._meshes[name]

    def names(self) -> tuple[str, ...]:
        return tuple(self._meshes)
