from __future__ import annotations

from pathlib import Path

import numpy as np

from ftsim.electrodes.layout import MOVING_ELECTRODES, MOVING_GROUPS, STATIONARY_ELECTRODES, GroupId
from ftsim.io.series_reader import GroupSeries
from ftsim.meshes.provider_base import InMemoryMeshProvider

EPSILON_0 = 8.854e-12
GLYCERIN = 42.28
COMBINED_HEADER = "Ax,Ay,Az,Bx,By,Bz,Cx,Cy,Cz"


def square_plate(half: float, z: float) -> tuple[np.ndarray, np.ndarray]:
    vertices = np.asarray(
        [[-half, -half, z], [half, -half, z], [half, half, z], [-half, half, z]],
        dtype=np.float64,
    )
    triangles = np.asarray([[0, 1, 2], [0, 2, 3]], dtype=np.int64)
    return vertices, triangles


def plate_provider(gap: float = 1.0, moving_half: float = 1.0, stationary_half: float = 3.0) -> InMemoryMeshProvider:
    provider = InMemoryMeshProvider()
    for name in MOVING_ELECTRODES:
        provider.add(name, *square_plate(moving_half, 0.0))
    for name in STATIONARY_ELECTRODES:
        provider.add(name, *square_plate(stationary_half, gap))
    return provider


def plate_capacitance(area_mm2: float, gap_mm: float, relative_permittivity: float = GLYCERIN) -> float:
    return EPSILON_0 * relative_permittivity * (area_mm2 * 1e-6) / (gap_mm * 1e-3)


def translation_series(group: GroupId, steps: list[tuple[float, float, float]]) -> GroupSeries:
    offsets = np.asarray([[step, step, step] for step in steps], dtype=np.float64)
    return GroupSeries(group=group, offsets=offsets)


def still_series(rows: int) -> dict[GroupId, GroupSeries]:
    return {group: GroupSeries(group=group, offsets=np.zeros((rows, 3, 3))) for group in MOVING_GROUPS}


def write_obj(path: Path, vertices: np.ndarray, triangles: np.ndarray) -> None:
    lines = [f"v {x:.6f} {y:.6f} {z:.6f}" for x, y, z in vertices]
    lines += [f"f {a + 1} {b + 1} {c + 1}" for a, b, c in triangles]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_plate_mesh_dir(directory: Path, gap: float = 1.0) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name in MOVING_ELECTRODES:
        write_obj(directory / f"{name}.obj", *square_plate(1.0, 0.0))
    write_obj(directory / "stationary_negative.obj", *square_plate(3.0, gap))
    return directory


def write_combined_csv(path: Path, rows_m: list[list[float]]) -> None:
    lines = [COMBINED_HEADER] + [",".join(f"{value:.6f}" for value in row) for row in rows_m]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_still_data_dir(directory: Path, rows: int = 3) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for group in MOVING_GROUPS:
        write_combined_csv(directory / f"{group.value}.csv", [[0.0] * 9 for _ in range(rows)])
    return directory
