from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from rich.table import Table

from ftsim.analysis.frames import transform_points
from ftsim.electrodes.layout import MOVING_ELECTRODES, electrode_spec
from ftsim.errors import SetupError
from ftsim.meshes.provider_base import MeshProvider
from ftsim.pose.store import PoseStore
from ftsim.raycast.query_base import RayQuery, RayQueryFactory
from ftsim.raycast.trimesh_backend import TrimeshRayQuery

logger = logging.getLogger(__name__)

MM2_TO_M2 = 1e-6
MM_TO_M = 1e-3
FARAD_TO_PICOFARAD = 1e12


@dataclass(frozen=True)
class CapacitanceParams:
    epsilon_0: float = 8.854e-12
    relative_permittivity: float = 42.28
    max_ray_distance: float = 2.0

    def __post_init__(self) -> None:
        if self.epsilon_0 <= 0:
            raise ValueError("epsilon_0 must be > 0")
        if self.relative_permittivity <= 0:
            raise ValueError("relative_permittivity must be > 0")
        if self.max_ray_distance <= 0:
            raise ValueError("max_ray_distance must be > 0")

    @property
    def permittivity(self) -> float:
        return self.epsilon_0 * self.relative_permittivity


@dataclass(frozen=True, eq=False)
class FacetSet:
    v0: np.ndarray
    v1: np.ndarray
    v2: np.ndarray
    centers: np.ndarray
    normals: np.ndarray
    areas: np.ndarray
    valid: np.ndarray

    def __len__(self) -> int:
        return int(self.centers.shape[0])


@dataclass(frozen=True)
class CapacitanceSample:
    electrode: str
    capacitance: float
    triangle_count: int
    hit_count: int
    average_distance: float

    @property
    def label(self) -> str:
        return electrode_spec(self.electrode).label

    @property
    def capacitance_pf(self) -> float:
        return self.capacitance * FARAD_TO_PICOFARAD


def compute_facets(vertices: np.ndarray, triangles: np.ndarray, transform: np.ndarray) -> FacetSet:
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    in_range = ((triangles >= 0) & (triangles < vertices.shape[0])).all(axis=1)
    if not in_range.all():
        logger.debug("Skipping %d triangles with out-of-range vertex indices", int((~in_range).sum()))
        triangles = triangles[in_range]

    world = transform_points(vertices, transform)
    v0 = world[triangles[:, 0]]
    v1 = world[triangles[:, 1]]
    v2 = world[triangles[:, 2]]
    cross = np.cross(v1 - v0, v2 - v0)
    length = np.linalg.norm(cross, axis=1)
    valid = length > 0.0
    normals = np.zeros_like(cross)
    normals[valid] = cross[valid] / length[valid, None]
    return FacetSet(
        v0=v0,
        v1=v1,
        v2=v2,
        centers=(v0 + v1 + v2) / 3.0,
        normals=normals,
        areas=0.5 * length,
        valid=valid,
    )


def estimate_capacitance(
    facets: FacetSet,
    query: RayQuery,
    params: CapacitanceParams,
    *,
    electrode: str = "",
) -> CapacitanceSample:
    """Sum parallel-plate contributions of every facet facing the counter surface.

    Each facet with a usable normal casts one ray along ``+normal`` and one
    along ``-normal``. A first hit at ``0 < d <= max_ray_distance`` contributes
    ``eps0 * epsr * area / d`` (SI units).
    """
    count = len(facets)
    distances = np.full((count, 2), np.inf, dtype=np.float64)
    valid = np.flatnonzero(facets.valid)
    if valid.size:
        centers = facets.centers[valid]
        normals = facets.normals[valid]
        origins = np.concatenate([centers, centers], axis=0)
        directions = np.concatenate([normals, -normals], axis=0)
        hits = np.asarray(query.nearest_hit_distances(origins, directions, params.max_ray_distance))
        distances[valid, 0] = hits[: valid.size]
        distances[valid, 1] = hits[valid.size :]

    hit = np.isfinite(distances) & (distances > 0.0) & (distances <= params.max_ray_distance)
    contributions = np.zeros_like(distances)
    area_m2 = np.repeat(facets.areas[:, None], 2, axis=1) * MM2_TO_M2
    contributions[hit] = params.permittivity * area_m2[hit] / (distances[hit] * MM_TO_M)

    hit_count = int(hit.sum())
    average_distance = float(distances[hit].mean()) if hit_count else 0.0
    return CapacitanceSample(
        electrode=electrode,
        capacitance=float(contributions.sum()),
        triangle_count=count,
        hit_count=hit_count,
        average_distance=average_distance,
    )


class CapacitanceEstimator:
    def __init__(
        self,
        pose_store: PoseStore,
        mesh_provider: MeshProvider,
        *,
        params: CapacitanceParams | None = None,
        ray_query_factory: RayQueryFactory = TrimeshRayQuery,
        electrodes: tuple[str, ...] = MOVING_ELECTRODES,
    ) -> None:
        self.pose_store = pose_store
        self.mesh_provider = mesh_provider
        self.params = params or CapacitanceParams()
        self.ray_query_factory = ray_query_factory
        self.electrodes = tuple(electrodes)
        self._queries: dict[str, RayQuery] = {}
        self._facets: dict[str, FacetSet] = {}

    @property
    def ready(self) -> bool:
        return bool(self._queries)

    def setup(self) -> None:
        queries: dict[str, RayQuery] = {}
        for name in self.electrodes:
            spec = electrode_spec(name)
            if not spec.moving or spec.pair is None:
                raise SetupError(f"Electrode '{name}' is not a moving electrode")
            try:
                self.mesh_provider.get_mesh(name)
            except KeyError as exc:
                raise SetupError(f"Mesh for moving electrode '{name}' is not available") from exc
            try:
                stationary = self.mesh_provider.get_mesh(spec.pair)
            except KeyError as exc:
                raise SetupError(f"Mesh for stationary electrode '{spec.pair}' paired with '{name}' is not available") from exc

            world = transform_points(stationary.vertices, self.pose_store.combined_transform(spec.pair))
            try:
                queries[name] = self.ray_query_factory(world, stationary.triangles)
            except Exception as exc:
                raise SetupError(f"Failed to build ray query for '{spec.pair}' paired with '{name}': {exc}") from exc
            logger.debug("Paired %s with %s (%d triangles)", name, spec.pair, stationary.triangle_count)

        self._queries = queries
        self._facets = {}
        self.refresh()
        logger.info("Capacitance estimator ready for %d electrode pairs", len(queries))

    def refresh(self) -> None:
        facets: dict[str, FacetSet] = {}
        for name in self.electrodes:
            mesh = self.mesh_provider.get_mesh(name)
            facets[name] = compute_facets(mesh.vertices, mesh.triangles, self.pose_store.combined_transform(name))
        self._facets = facets

    def facets(self, name: str) -> FacetSet:
        if name not in self._facets:
            raise SetupError(f"No facets computed for '{name}'. Call setup() first.")
        return self._facets[name]

    def evaluate_electrode(self, name: str) -> CapacitanceSample:
        if name not in self._queries:
            raise SetupError(f"Electrode '{name}' is not set up. Call setup() first.")
        return estimate_capacitance(self.facets(name), self._queries[name], self.params, electrode=name)

    def evaluate(self) -> list[CapacitanceSample]:
        if not self.ready:
            raise SetupError("Capacitance estimator is not set up. Call setup() first.")
        return [self.evaluate_electrode(name) for name in self.electrodes]


def total_capacitance(samples: list[CapacitanceSample]) -> float:
    return float(sum(sample.capacitance for sample in samples))


def format_results_table(samples: list[CapacitanceSample], *, title: str = "Capacitance") -> Table:
    table = Table(title=title)
    table.add_column("Electrode")
    table.add_column("Capacitance (pF)", justify="right")
    table.add_column("Triangles", justify="right")
    table.add_column("Hits", justify="right")
    table.add_column("Avg distance (mm)", justify="right")
    for sample in samples:
        table.add_row(
            sample.label,
            f"{sample.capacitance_pf:.5f}",
            str(sample.triangle_count),
            str(sample.hit_count),
            f"{sample.average_distance:.4f}",
        )
    table.add_row("Total", f"{total_capacitance(samples) * FARAD_TO_PICOFARAD:.5f}", "", "", "")
    return table
