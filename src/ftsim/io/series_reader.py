from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from ftsim.electrodes.layout import MOVING_GROUPS, GroupId
from ftsim.errors import LoadError

logger = logging.getLogger(__name__)

METERS_TO_MM = 1000.0
COMBINED_COLUMNS = 9
SPHERE_COLUMNS = 3
SPHERES = ("A", "B", "C")


class InputLayout(str, Enum):
    auto = "auto"
    combined = "combined"
    per_sphere = "per-sphere"


@dataclass(frozen=True, eq=False)
class GroupSeries:
    group: GroupId
    offsets: np.ndarray
    sources: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        offsets = np.array(self.offsets, dtype=np.float64)
        if offsets.ndim != 3 or offsets.shape[1:] != (3, 3):
            raise ValueError(f"GroupSeries offsets must have shape (N, 3, 3), got {offsets.shape}")
        offsets.setflags(write=False)
        object.__setattr__(self, "offsets", offsets)
        object.__setattr__(self, "group", GroupId(self.group))

    def __len__(self) -> int:
        return int(self.offsets.shape[0])

    def row(self, index: int) -> np.ndarray:
        return self.offsets[index]


def combined_path(data_dir: str | Path, group: GroupId | str) -> Path:
    return Path(data_dir) / f"{GroupId(group).value}.csv"


def sphere_paths(data_dir: str | Path, group: GroupId | str) -> dict[str, Path]:
    name = GroupId(group).value
    return {sphere: Path(data_dir) / f"{name}_{sphere}.csv" for sphere in SPHERES}


def read_numeric_rows(path: str | Path, expected_columns: int) -> np.ndarray:
    """Read a header + numeric-rows CSV file into an ``(N, expected_columns)`` array.

    Blank lines are ignored and the first non-blank line is treated as the
    header. Rows with the wrong column count or a token that is not a finite
    number are skipped with a warning.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise LoadError(f"Input file not found: {csv_path}")

    rows: list[list[float]] = []
    skipped = 0
    try:
        with csv_path.open("r", encoding="utf-8", newline="") as file:
            reader = csv.reader(file)
            header_seen = False
            for tokens in reader:
                line_no = reader.line_num
                if not tokens or all(not token.strip() for token in tokens):
                    continue
                if not header_seen:
                    header_seen = True
                    continue
                if len(tokens) != expected_columns:
                    logger.warning(
                        "%s:%d: expected %d columns, got %d; row skipped",
                        csv_path,
                        line_no,
                        expected_columns,
                        len(tokens),
                    )
                    skipped += 1
                    continue
                try:
                    values = [float(token.strip()) for token in tokens]
                except ValueError:
                    logger.warning("%s:%d: non-numeric value; row skipped", csv_path, line_no)
                    skipped += 1
                    continue
                if not all(math.isfinite(value) for value in values):
                    logger.warning("%s:%d: non-finite value; row skipped", csv_path, line_no)
                    skipped += 1
                    continue
                rows.append(values)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise LoadError(f"Could not read input file {csv_path}: {exc}") from exc

    if not rows:
        raise LoadError(f"Input file contains no valid data rows: {csv_path}")
    if skipped:
        logger.info("%s: %d rows loaded, %d rows skipped", csv_path, len(rows), skipped)
    return np.asarray(rows, dtype=np.float64)


def _load_combined(data_dir: Path, group: GroupId) -> GroupSeries:
    path = combined_path(data_dir, group)
    values = read_numeric_rows(path, COMBINED_COLUMNS) * METERS_TO_MM
    return GroupSeries(group=group, offsets=values.reshape(-1, 3, 3), sources=(path,))


def _load_per_sphere(data_dir: Path, group: GroupId) -> GroupSeries:
    paths = sphere_paths(data_dir, group)
    columns = [read_numeric_rows(paths[sphere], SPHERE_COLUMNS) * METERS_TO_MM for sphere in SPHERES]
    count = min(column.shape[0] for column in columns)
    if any(column.shape[0] != count for column in columns):
        lengths = ", ".join(f"{sphere}={column.shape[0]}" for sphere, column in zip(SPHERES, columns))
        logger.warning("%s sphere files differ in length (%s); truncating to %d rows", group.value, lengths, count)
    offsets = np.stack([column[:count] for column in columns], axis=1)
    return GroupSeries(group=group, offsets=offsets, sources=tuple(paths[sphere] for sphere in SPHERES))


def detect_layout(data_dir: str | Path, group: GroupId | str) -> InputLayout | None:
    if combined_path(data_dir, group).exists():
        return InputLayout.combined
    if all(path.exists() for path in sphere_paths(data_dir, group).values()):
        return InputLayout.per_sphere
    return None


def load_group_series(
    data_dir: str | Path,
    group: GroupId | str,
    layout: InputLayout | str = InputLayout.auto,
) -> GroupSeries:
    directory = Path(data_dir)
    group_id = GroupId(group)
    selected = InputLayout(layout)
    if selected is InputLayout.auto:
        selected = detect_layout(directory, group_id) or InputLayout.combined
    if selected is InputLayout.combined:
        series = _load_combined(directory, group_id)
    else:
        series = _load_per_sphere(directory, group_id)
    logger.info("Loaded %s: %d rows (%s layout)", group_id.value, len(series), selected.value)
    return series


def load_all_series(
    data_dir: str | Path,
    layout: InputLayout | str = InputLayout.auto,
) -> dict[GroupId, GroupSeries]:
    directory = Path(data_dir)
    if not directory.is_dir():
        raise LoadError(f"Data directory not found: {directory}")
    return {group: load_group_series(directory, group, layout) for group in MOVING_GROUPS}
