from __future__ import annotations

import numpy as np
import trimesh
from trimesh.ray.ray_triangle import RayMeshIntersector

from ftsim.raycast.query_base import RayQuery


class TrimeshRayQuery(RayQuery):
    def __init__(self, vertices: np.ndarray, triangles: np.ndarray) -> None:
        vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        if triangles.shape[0] == 0:
            raise ValueError("Cannot build a ray query over a surface with no triangles")
        if triangles.min() < 0 or triangles.max() >= vertices.shape[0]:
            raise ValueError("Triangle indices reference vertices outside the vertex array")
        self.mesh = trimesh.Trimesh(vertices=vertices, faces=triangles, process=False, validate=False)
        self._intersector = RayMeshIntersector(self.mesh)

    def nearest_hit_distances(
        self,
        origins: np.ndarray,
        directions: np.ndarray,
        max_distance: float,
    ) -> np.ndarray:
        origins = np.asarray(origins, dtype=np.float64).reshape(-1, 3)
        directions = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
        distances = np.full(origins.shape[0], np.inf, dtype=np.float64)
        if origins.shape[0] == 0:
            return distances

        locations, index_ray, _ = self._intersector.intersects_location(
            origins,
            directions,
            multiple_hits=False,
        )
        if len(index_ray) == 0:
            return distances

        unit = directions[index_ray] / np.linalg.norm(directions[index_ray], axis=1, keepdims=True)
        hit_distance = np.einsum("ij,ij->i", locations - origins[index_ray], unit)
        within = hit_distance <= float(max_distance)
        np.minimum.at(distances, index_ray[within], hit_distance[within])
        return distances
