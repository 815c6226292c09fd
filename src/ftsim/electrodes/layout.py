from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ftsim.analysis.frames import ReferencePoint, TrackedTriple

RING_RADIUS_MM = 24.85
SPHERE_OFFSET_MM = 4.0
SPHERE_DIAGONAL_MM = SPHERE_OFFSET_MM / math.sqrt(2.0)


class GroupId(str, Enum):
    TAG = "TAG"
    TBG = "TBG"
    TCG = "TCG"
    NEGATIVE = "Negative"


MOVING_GROUPS = (GroupId.TAG, GroupId.TBG, GroupId.TCG)


@dataclass(frozen=True)
class ElectrodeSpec:
    name: str
    group: GroupId
    moving: bool
    label: str
    pair: str | None = None


@dataclass(frozen=True, eq=False)
class GroupSpec:
    group: GroupId
    center: np.ndarray
    resting: TrackedTriple
    reference: ReferencePoint
    electrodes: tuple[str, ...]
    negative: str


def ring_position(angle_deg: float, radius: float = RING_RADIUS_MM) -> np.ndarray:
    theta = math.radians(angle_deg)
    return np.array([radius * math.cos(theta), radius * math.sin(theta), 0.0], dtype=np.float64)


def _resting_triple(center: np.ndarray, offsets: list[tuple[float, float]]) -> TrackedTriple:
    points = np.array([[center[0] + dx, center[1] + dy, 0.0] for dx, dy in offsets], dtype=np.float64)
    return TrackedTriple(points)


def _build_groups() -> dict[GroupId, GroupSpec]:
    o = SPHERE_DIAGONAL_MM
    down = SPHERE_OFFSET_MM
    tag_center = np.array([0.0, RING_RADIUS_MM, 0.0], dtype=np.float64)
    tbg_center = ring_position(-30.0)
    tcg_center = ring_position(-150.0)
    return {
        GroupId.TAG: GroupSpec(
            group=GroupId.TAG,
            center=tag_center,
            resting=_resting_triple(tag_center, [(0.0, -down), (o, o), (-o, o)]),
            reference=ReferencePoint.A,
            electrodes=("A1_model", "A2_model"),
            negative="stationary_negative_A",
        ),
        GroupId.TBG: GroupSpec(
            group=GroupId.TBG,
            center=tbg_center,
            resting=_resting_triple(tbg_center, [(-o, o), (0.0, -down), (o, o)]),
            reference=ReferencePoint.B,
            electrodes=("B1_model", "B2_model"),
            negative="stationary_negative_B",
        ),
        GroupId.TCG: GroupSpec(
            group=GroupId.TCG,
            center=tcg_center,
            resting=_resting_triple(tcg_center, [(o, o), (-o, o), (0.0, -down)]),
            reference=ReferencePoint.C,
            electrodes=("C1_model", "C2_model"),
            negative="stationary_negative_C",
        ),
    }


GROUPS = _build_groups()


def _build_electrodes() -> dict[str, ElectrodeSpec]:
    table: dict[str, ElectrodeSpec] = {}
    for spec in GROUPS.values():
        for name in spec.electrodes:
            table[name] = ElectrodeSpec(
                name=name,
                group=spec.group,
                moving=True,
                label=name.removesuffix("_model"),
                pair=spec.negative,
            )
        table[spec.negative] = ElectrodeSpec(
            name=spec.negative,
            group=GroupId.NEGATIVE,
            moving=False,
            label=spec.negative,
        )
    return table


ELECTRODES = _build_electrodes()
MOVING_ELECTRODES = tuple(name for name, spec in ELECTRODES.items() if spec.moving)
STATIONARY_ELECTRODES = tuple(name for name, spec in ELECTRODES.items() if not spec.moving)


def group_spec(group: GroupId | str) -> GroupSpec:
    group_id = GroupId(group)
    if group_id not in GROUPS:
        valid = ", ".join(g.value for g in MOVING_GROUPS)
        raise ValueError(f"Unsupported group '{group_id.value}'. Expected one of: {valid}")
    return GROUPS[group_id]


def electrode_spec(name: str) -> ElectrodeSpec:
    if name not in ELECTRODES:
        valid = ", ".join(ELECTRODES)
        raise ValueError(f"Unknown electrode '{name}'. Expected one of: {valid}")
    return ELECTRODES[name]


def electrode_placement(name: str) -> np.ndarray:
    """Resting position of an electrode body: the centre of the group it faces."""
    spec = electrode_spec(name)
    if spec.moving:
        return GROUPS[spec.group].center
    for group in GROUPS.values():
        if group.negative == name:
            return group.center
    raise ValueError(f"No group owns stationary electrode '{name}'")
