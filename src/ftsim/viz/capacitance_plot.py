from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np

from ftsim.analysis.capacitance import FARAD_TO_PICOFARAD, CapacitanceSample

ELECTRODE_COLORS = ("#1f4e79", "#8ca0b3", "#2f9e44", "#94d82d", "#e03131", "#f08c00")


def save_capacitance_plot(rows: Sequence[Sequence[CapacitanceSample]], plot_path: str | Path) -> Path:
    if not rows:
        raise ValueError("No result rows to plot")

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(plot_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    x = np.arange(1, len(rows) + 1, dtype=np.int64)
    values = np.asarray([[sample.capacitance for sample in samples] for samples in rows], dtype=np.float64)
    values *= FARAD_TO_PICOFARAD
    labels = [sample.label for sample in rows[0]]

    fig, (ax_each, ax_total) = plt.subplots(2, 1, figsize=(11, 7), sharex=True)
    for column, label in enumerate(labels):
        color = ELECTRODE_COLORS[column % len(ELECTRODE_COLORS)]
        ax_each.plot(x, values[:, column], color=color, linewidth=1.4, label=label)
    ax_each.set_ylabel("Capacitance (pF)")
    ax_each.set_title("Capacitance per electrode")
    ax_each.grid(alpha=0.2)
    ax_each.legend(loc="best", ncol=3)

    ax_total.plot(x, values.sum(axis=1), color="#212529", linewidth=2.0, label="Total")
    ax_total.set_xlabel("Row")
    ax_total.set_ylabel("Capacitance (pF)")
    ax_total.set_title("Total capacitance")
    ax_total.grid(alpha=0.2)

    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path
