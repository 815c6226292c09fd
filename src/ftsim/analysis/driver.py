from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping

import numpy as np

from ftsim.analysis.capacitance import CapacitanceEstimator, CapacitanceSample
from ftsim.analysis.envelope import GroupMotionEnvelope, MotionEnvelopeTracker
from ftsim.analysis.frames import DegenerateFrame, fit_frame, rigidity_error, solve_rigid_transform
from ftsim.electrodes.layout import GROUPS, MOVING_GROUPS, GroupId
from ftsim.errors import DriverStateError, LoadError, ResultsWriteError, RowOutOfRangeError
from ftsim.io.results_writer import save_results_csv
from ftsim.io.series_reader import GroupSeries, InputLayout, load_all_series
from ftsim.pose.store import PoseStore

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 50

ProgressCallback = Callable[[int, int], None]


class DriverState(str, Enum):
    uninitialized = "uninitialized"
    loaded = "loaded"
    stepping = "stepping"
    sweeping = "sweeping"


@dataclass(frozen=True)
class RowApplication:
    row: int
    applied_groups: tuple[GroupId, ...]
    held_groups: tuple[GroupId, ...]
    degenerate_groups: tuple[GroupId, ...]


@dataclass
class SweepResult:
    rows: list[list[CapacitanceSample]] = field(default_factory=list)
    envelopes: dict[GroupId, GroupMotionEnvelope] = field(default_factory=dict)
    degenerate_rows: int = 0
    output_path: Path | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)


class TimeSeriesDriver:
    """Replays per-group displacement series onto the pose store.

    Step mode applies one row at a time on request; sweep mode walks every
    row, evaluates capacitance after each and writes the results CSV.
    """

    def __init__(self, pose_store: PoseStore, estimator: CapacitanceEstimator | None = None) -> None:
        self.pose_store = pose_store
        self.estimator = estimator
        self.tracker = MotionEnvelopeTracker()
        self.series: dict[GroupId, GroupSeries] = {}
        self.state = DriverState.uninitialized
        self._current_row: int | None = None

    @property
    def max_rows(self) -> int:
        return max((len(series) for series in self.series.values()), default=0)

    @property
    def current_row(self) -> int | None:
        return self._current_row

    def load(self, series_by_group: Mapping[GroupId, GroupSeries]) -> None:
        if self.state is DriverState.sweeping:
            raise DriverStateError("Cannot load new data while a sweep is running")
        series = {GroupId(group): value for group, value in series_by_group.items()}
        missing = [group.value for group in MOVING_GROUPS if group not in series]
        if missing:
            raise LoadError(f"Missing displacement series for groups: {', '.join(missing)}")
        empty = [group.value for group in MOVING_GROUPS if len(series[group]) == 0]
        if empty:
            raise LoadError(f"Displacement series contain no rows for groups: {', '.join(empty)}")

        self.series = {group: series[group] for group in MOVING_GROUPS}
        self.tracker.reset_all()
        self.pose_store.clear_applied()
        self._current_row = None
        self.state = DriverState.loaded
        lengths = ", ".join(f"{group.value}={len(value)}" for group, value in self.series.items())
        logger.info("Loaded displacement series (%s); %d rows to process", lengths, self.max_rows)

    def load_directory(self, data_dir: str | Path, layout: InputLayout | str = InputLayout.auto) -> None:
        self.load(load_all_series(data_dir, layout))

    def _require(self, *states: DriverState) -> None:
        if self.state not in states:
            expected = " or ".join(state.value for state in states)
            raise DriverStateError(f"Driver is {self.state.value}; expected {expected}")

    def _check_row(self, row: int) -> None:
        if not 0 <= row < self.max_rows:
            raise RowOutOfRangeError(row, self.max_rows)

    def _apply_row(self, row: int) -> RowApplication:
        self.pose_store.reset_neutral()
        applied: list[GroupId] = []
        held: list[GroupId] = []
        degenerate: list[GroupId] = []
        for group, series in self.series.items():
            if row >= len(series):
                held.append(group)
                continue
            spec = GROUPS[group]
            deformed = spec.resting.offset_by(series.row(row))
            rest_frame = fit_frame(spec.resting, spec.reference)
            deformed_frame = fit_frame(deformed, spec.reference)
            if isinstance(rest_frame, DegenerateFrame) or isinstance(deformed_frame, DegenerateFrame):
                logger.warning("%s row %d: tracked spheres are collinear; applying translation only", group.value, row)
                degenerate.append(group)
            transform = solve_rigid_transform(rest_frame, deformed_frame)
            logger.debug("%s row %d: rigidity error %.3e", group.value, row, rigidity_error(transform))
            self.pose_store.apply_transform(group, transform)
            self.tracker.update(group, deformed)
            applied.append(group)

        self._current_row = row
        return RowApplication(
            row=row,
            applied_groups=tuple(applied),
            held_groups=tuple(held),
            degenerate_groups=tuple(degenerate),
        )

    def apply_row(self, row: int) -> RowApplication:
        self._require(DriverState.loaded, DriverState.stepping)
        self._check_row(row)
        return self._apply_row(row)

    def start_stepping(self, start_row: int = 0) -> RowApplication:
        self._require(DriverState.loaded, DriverState.stepping)
        self._check_row(start_row)
        self.tracker.reset_all()
        self.pose_store.clear_applied()
        self.state = DriverState.stepping
        return self._apply_row(start_row)

    def goto_row(self, row: int) -> RowApplication:
        self._require(DriverState.stepping)
        self._check_row(row)
        return self._apply_row(row)

    def next_row(self) -> RowApplication:
        self._require(DriverState.stepping)
        return self.goto_row(0 if self._current_row is None else self._current_row + 1)

    def previous_row(self) -> RowApplication:
        self._require(DriverState.stepping)
        return self.goto_row(0 if self._current_row is None else self._current_row - 1)

    def stop_stepping(self) -> None:
        self._require(DriverState.stepping)
        self.state = DriverState.loaded

    def row_info(self, row: int) -> dict[GroupId, np.ndarray | None]:
        self._require(DriverState.loaded, DriverState.stepping, DriverState.sweeping)
        self._check_row(row)
        return {group: (series.row(row) if row < len(series) else None) for group, series in self.series.items()}

    def sweep(
        self,
        output_path: str | Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> SweepResult:
        self._require(DriverState.loaded)
        if self.estimator is None:
            raise DriverStateError("Sweep requires a capacitance estimator")
        if not self.estimator.ready:
            self.estimator.setup()

        total = self.max_rows
        result = SweepResult()
        self.tracker.reset_all()
        self.pose_store.clear_applied()
        self.state = DriverState.sweeping
        logger.info("Starting sweep over %d rows", total)
        try:
            for row in range(total):
                application = self._apply_row(row)
                if application.degenerate_groups:
                    result.degenerate_rows += 1
                self.estimator.refresh()
                result.rows.append(self.estimator.evaluate())
                if row == 0 or (row + 1) % PROGRESS_EVERY == 0 or row == total - 1:
                    logger.info("Processed row %d/%d", row + 1, total)
                    if progress is not None:
                        progress(row + 1, total)
        finally:
            self.state = DriverState.loaded

        result.envelopes = self.tracker.snapshot()
        for group, envelope in result.envelopes.items():
            logger.info(
                "%s envelope: radius %.4f mm over %d rows",
                group.value,
                envelope.radius,
                envelope.updates,
            )
        if result.degenerate_rows:
            logger.warning("%d rows had collinear tracked spheres", result.degenerate_rows)

        if output_path is not None:
            try:
                result.output_path = save_results_csv(result.rows, output_path, result=result)
            except ResultsWriteError:
                logger.error("Results were computed but could not be saved to %s", output_path)
                raise
        return result
