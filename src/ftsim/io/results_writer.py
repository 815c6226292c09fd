from __future__ import annotations

import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

from ftsim.analysis.capacitance import FARAD_TO_PICOFARAD, CapacitanceSample
from ftsim.electrodes.layout import MOVING_ELECTRODES, electrode_spec
from ftsim.errors import ResultsWriteError

logger = logging.getLogger(__name__)

TOTAL_COLUMN = "Total_Capacitance_pF"


def format_picofarads(farads: float) -> str:
    return f"{farads * FARAD_TO_PICOFARAD:.5f}"


def results_header(electrodes: Sequence[str] = MOVING_ELECTRODES) -> list[str]:
    columns = [f"{electrode_spec(name).label}_Capacitance_pF" for name in electrodes]
    return ["Row", *columns, TOTAL_COLUMN]


def results_row(index: int, samples: Sequence[CapacitanceSample]) -> list[str]:
    total = sum(sample.capacitance for sample in samples)
    return [str(index + 1), *(format_picofarads(sample.capacitance) for sample in samples), format_picofarads(total)]


def save_results_csv(
    rows: Sequence[Sequence[CapacitanceSample]],
    output_path: str | Path,
    *,
    result: object = None,
) -> Path:
    """Write one line per row of samples, replacing ``output_path`` atomically.

    Nothing is left at ``output_path`` (or next to it) when writing fails;
    the failure is raised as ``ResultsWriteError`` carrying ``result``.
    """
    path = Path(output_path)
    electrodes = [sample.electrode for sample in rows[0]] if rows else list(MOVING_ELECTRODES)
    temp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=path.parent,
            prefix=f".{path.stem}.",
            suffix=".tmp",
            delete=False,
        ) as file:
            temp_name = file.name
            writer = csv.writer(file)
            writer.writerow(results_header(electrodes))
            for index, samples in enumerate(rows):
                writer.writerow(results_row(index, samples))
        os.replace(temp_name, path)
    except OSError as exc:
        if temp_name is not None and os.path.exists(temp_name):
            os.remove(temp_name)
        raise ResultsWriteError(f"Could not write results to {path}: {exc}", result=result) from exc

    logger.info("Saved %d result rows to %s", len(rows), path)
    return path
