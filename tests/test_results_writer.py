from __future__ import annotations

import csv
from pathlib import Path

import pytest

from ftsim.analysis.capacitance import CapacitanceSample
from ftsim.electrodes.layout import MOVING_ELECTRODES
from ftsim.errors import ResultsWriteError
from ftsim.io.results_writer import format_picofarads, results_header, save_results_csv


def _samples(farads: float) -> list[CapacitanceSample]:
    return [
        CapacitanceSample(
            electrode=name,
            capacitance=farads,
            triangle_count=2,
            hit_count=2,
            average_distance=1.0,
        )
        for name in MOVING_ELECTRODES
    ]


def test_format_picofarads_uses_five_decimals() -> None:
    assert format_picofarads(1.0e-13) == "0.10000"
    assert format_picofarads(0.0) == "0.00000"


def test_results_header_lists_electrodes_and_total() -> None:
    assert results_header() == [
        "Row",
        "A1_Capacitance_pF",
        "A2_Capacitance_pF",
        "B1_Capacitance_pF",
        "B2_Capacitance_pF",
        "C1_Capacitance_pF",
        "C2_Capacitance_pF",
        "Total_Capacitance_pF",
    ]


def test_save_results_csv_writes_one_indexed_rows(tmp_path: Path) -> None:
    output = tmp_path / "nested" / "capacitance_results.csv"

    saved = save_results_csv([_samples(1.0e-13), _samples(2.0e-13)], output)

    assert saved == output
    with output.open("r", encoding="utf-8", newline="") as file:
        rows = list(csv.reader(file))
    assert rows[0][0] == "Row"
    assert rows[1] == ["1", *["0.10000"] * 6, "0.60000"]
    assert rows[2][0] == "2"
    assert rows[2][-1] == "1.20000"
    assert sorted(path.name for path in output.parent.iterdir()) == ["capacitance_results.csv"]


def test_failed_write_leaves_no_partial_output(tmp_path: Path) -> None:
    blocked = tmp_path / "results.csv"
    blocked.mkdir()
    marker = object()

    with pytest.raises(ResultsWriteError) as exc_info:
        save_results_csv([_samples(1.0e-13)], blocked, result=marker)

    assert exc_info.value.result is marker
    assert "results.csv" in str(exc_info.value)
    assert [path.name for path in tmp_path.iterdir()] == ["results.csv"]
    assert blocked.is_dir()
    assert list(blocked.iterdir()) == []
