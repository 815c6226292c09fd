from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from ftsim.errors import DegenerateGeometryError

COLLINEAR_EPSILON = 1e-10
ZERO_LENGTH_EPSILON = 1e-12


class ReferencePoint(str, Enum):
    A = "A"
    B = "B"
    C = "C"

    @property
    def index(self) -> int:
        return "ABC".index(self.value)


@dataclass(frozen=True, eq=False)
class TrackedTriple:
    """Positions of the three tracked spheres of one group, rows A, B, C (mm)."""

    points: np.ndarray

    def __post_init__(self) -> None:
        points = np.array(self.points, dtype=np.float64)
        if points.shape != (3, 3):
            raise ValueError(f"TrackedTriple expects a (3, 3) array, got {points.shape}")
        if not np.isfinite(points).all():
            raise ValueError("TrackedTriple contains non-finite coordinates")
        points.setflags(write=False)
        object.__setattr__(self, "points", points)

    @property
    def a(self) -> np.ndarray:
        return self.points[0]

    @property
    def b(self) -> np.ndarray:
        return self.points[1]

    @property
    def c(self) -> np.ndarray:
        return self.points[2]

    def reference(self, point: ReferencePoint) -> np.ndarray:
        return self.points[ReferencePoint(point).index]

    def centroid(self) -> np.ndarray:
        return self.points.mean(axis=0)

    def offset_by(self, offsets: np.ndarray) -> TrackedTriple:
        offsets = np.asarray(offsets, dtype=np.float64).reshape(3, 3)
        return TrackedTriple(self.points + offsets)


@dataclass(frozen=True, eq=False)
class LocalFrame:
    origin: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: np.ndarray
    centroid: np.ndarray


@dataclass(frozen=True, eq=False)
class DegenerateFrame:
    centroid: np.ndarray


def normalize(vector: np.ndarray) -> np.ndarray:
    vector = np.asarray(vector, dtype=np.float64)
    length = float(np.linalg.norm(vector))
    if not np.isfinite(length) or length <= ZERO_LENGTH_EPSILON:
        raise DegenerateGeometryError(f"Cannot normalize vector of length {length}")
    return vector / length


def circumcenter(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    c = np.asarray(c, dtype=np.float64)
    ab = b - a
    ac = c - a
    normal = np.cross(ab, ac)
    normal_sq = float(normal @ normal)
    if normal_sq < COLLINEAR_EPSILON:
        return (a + b + c) / 3.0
    chord = float(ac @ ac) * ab - float(ab @ ab) * ac
    return a + np.cross(normal, chord) / (2.0 * normal_sq)


def fit_frame(triple: TrackedTriple, reference: ReferencePoint) -> LocalFrame | DegenerateFrame:
    centroid = triple.centroid()
    normal = np.cross(triple.b - triple.a, triple.c - triple.a)
    if float(normal @ normal) < COLLINEAR_EPSILON:
        return DegenerateFrame(centroid=centroid)

    origin = circumcenter(triple.a, triple.b, triple.c)
    try:
        w = normalize(normal)
        v = -normalize(triple.reference(reference) - origin)
        u = normalize(np.cross(v, w))
    except DegenerateGeometryError:
        return DegenerateFrame(centroid=centroid)
    return LocalFrame(origin=origin, u=u, v=v, w=w, centroid=centroid)


def translation_matrix(offset: np.ndarray) -> np.ndarray:
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, 3] = np.asarray(offset, dtype=np.float64).reshape(3)
    return matrix


def frame_matrix(frame: LocalFrame) -> np.ndarray:
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, 0] = frame.u
    matrix[:3, 1] = frame.v
    matrix[:3, 2] = frame.w
    matrix[:3, 3] = frame.origin
    return matrix


def solve_rigid_transform(
    rest: LocalFrame | DegenerateFrame,
    deformed: LocalFrame | DegenerateFrame,
) -> np.ndarray:
    """Return the 4x4 transform carrying ``rest`` onto ``deformed``.

    When either frame is degenerate only the centroid motion is recoverable,
    so the result is a pure translation between the two centroids.
    """
    if isinstance(rest, DegenerateFrame) or isinstance(deformed, DegenerateFrame):
        return translation_matrix(deformed.centroid - rest.centroid)
    return frame_matrix(deformed) @ np.linalg.inv(frame_matrix(rest))


def rigidity_error(matrix: np.ndarray) -> float:
    linear = np.asarray(matrix, dtype=np.float64)[:3, :3]
    return float(np.linalg.norm(linear.T @ linear - np.eye(3)))


def transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    matrix = np.asarray(matrix, dtype=np.float64)
    return points @ matrix[:3, :3].T + matrix[:3, 3]
