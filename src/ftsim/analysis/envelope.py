from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from rich.table import Table

from ftsim.analysis.frames import TrackedTriple, circumcenter
from ftsim.electrodes.layout import GROUPS, MOVING_GROUPS, GroupId


def _triple_circumcenter(triple: TrackedTriple) -> np.ndarray:
    return circumcenter(triple.a, triple.b, triple.c)


@dataclass
class GroupMotionEnvelope:
    original: np.ndarray
    current: np.ndarray = field(default_factory=lambda: np.full(3, np.nan))
    minimum: np.ndarray = field(default_factory=lambda: np.full(3, np.inf))
    maximum: np.ndarray = field(default_factory=lambda: np.full(3, -np.inf))
    radius: float = 0.0
    updates: int = 0

    def update(self, point: np.ndarray) -> None:
        point = np.asarray(point, dtype=np.float64).reshape(3)
        self.current = point.copy()
        self.minimum = np.minimum(self.minimum, point)
        self.maximum = np.maximum(self.maximum, point)
        self.radius = max(self.radius, float(np.linalg.norm(point - self.original)))
        self.updates += 1

    def copy(self) -> GroupMotionEnvelope:
        return GroupMotionEnvelope(
            original=self.original.copy(),
            current=self.current.copy(),
            minimum=self.minimum.copy(),
            maximum=self.maximum.copy(),
            radius=self.radius,
            updates=self.updates,
        )

    def as_dict(self) -> dict[str, Any]:
        has_updates = self.updates > 0
        return {
            "original": [float(v) for v in self.original],
            "current": [float(v) for v in self.current] if has_updates else None,
            "min": [float(v) for v in self.minimum] if has_updates else None,
            "max": [float(v) for v in self.maximum] if has_updates else None,
            "radius": float(self.radius),
            "updates": int(self.updates),
        }


class MotionEnvelopeTracker:
    """Per-group bounding box and radius of circumcenter motion over a run."""

    def __init__(self) -> None:
        self.envelopes: dict[GroupId, GroupMotionEnvelope] = {}
        self.reset_all()

    def reset(self, group: GroupId | str) -> None:
        group_id = GroupId(group)
        resting = GROUPS[group_id].resting
        self.envelopes[group_id] = GroupMotionEnvelope(original=_triple_circumcenter(resting))

    def reset_all(self) -> None:
        for group in MOVING_GROUPS:
            self.reset(group)

    def update(self, group: GroupId | str, triple: TrackedTriple) -> GroupMotionEnvelope:
        envelope = self.envelopes[GroupId(group)]
        envelope.update(_triple_circumcenter(triple))
        return envelope

    def envelope(self, group: GroupId | str) -> GroupMotionEnvelope:
        return self.envelopes[GroupId(group)]

    def snapshot(self) -> dict[GroupId, GroupMotionEnvelope]:
        return {group: envelope.copy() for group, envelope in self.envelopes.items()}

    def summary(self) -> dict[str, dict[str, Any]]:
        return {group.value: envelope.as_dict() for group, envelope in self.envelopes.items()}


def _fmt_vector(values: np.ndarray) -> str:
    return "(" + ", ".join(f"{float(v):.4f}" for v in values) + ")"


def format_envelope_table(envelopes: dict[GroupId, GroupMotionEnvelope], *, title: str = "Motion envelope") -> Table:
    table = Table(title=title)
    table.add_column("Group")
    table.add_column("Updates", justify="right")
    table.add_column("Min (mm)")
    table.add_column("Max (mm)")
    table.add_column("Radius (mm)", justify="right")
    for group, envelope in envelopes.items():
        if envelope.updates == 0:
            table.add_row(group.value, "0", "-", "-", f"{envelope.radius:.4f}")
            continue
        table.add_row(
            group.value,
            str(envelope.updates),
            _fmt_vector(envelope.minimum),
            _fmt_vector(envelope.maximum),
            f"{envelope.radius:.4f}",
        )
    return table
