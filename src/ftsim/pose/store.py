from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ftsim.analysis.frames import translation_matrix
from ftsim.electrodes.layout import GROUPS, MOVING_GROUPS, GroupId, electrode_placement, electrode_spec


def _rotation_x(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1.0, 0.0, 0.0, 0.0], [0.0, c, -s, 0.0], [0.0, s, c, 0.0], [0.0, 0.0, 0.0, 1.0]])


def _rotation_y(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s, 0.0], [0.0, 1.0, 0.0, 0.0], [-s, 0.0, c, 0.0], [0.0, 0.0, 0.0, 1.0]])


def _rotation_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0, 0.0], [s, c, 0.0, 0.0], [0.0, 0.0, 1.0, 0.0], [0.0, 0.0, 0.0, 1.0]])


def euler_rotation_matrix(rotation_xyz: np.ndarray) -> np.ndarray:
    rx, ry, rz = np.asarray(rotation_xyz, dtype=np.float64).reshape(3)
    return _rotation_x(rx) @ _rotation_y(ry) @ _rotation_z(rz)


def _as_matrix(matrix: np.ndarray) -> np.ndarray:
    out = np.array(matrix, dtype=np.float64)
    if out.shape != (4, 4):
        raise ValueError(f"Transform must be a 4x4 matrix, got shape {out.shape}")
    if not np.isfinite(out).all():
        raise ValueError("Transform contains non-finite values")
    return out


@dataclass
class GroupPose:
    enabled: bool = False
    rotation_xyz: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    translation_xyz: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    applied: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))
    explicit: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))

    def reset_explicit(self) -> None:
        self.enabled = False
        self.rotation_xyz = np.zeros(3, dtype=np.float64)
        self.translation_xyz = np.zeros(3, dtype=np.float64)

    def rebuild(self, pivot: np.ndarray) -> None:
        rotation = euler_rotation_matrix(self.rotation_xyz)
        translation = translation_matrix(self.translation_xyz)
        self.explicit = translation_matrix(pivot) @ translation @ rotation @ translation_matrix(-pivot)


class PoseStore:
    """Holds the pose of the positive assembly and of each moving electrode group.

    Each group carries two kinds of state: an explicit pose (enable flag plus
    Euler rotation/translation scalars about the group centre) and the
    ``applied`` transform pushed by the time-series driver. The applied
    transform is sticky: it survives :meth:`reset_neutral` so a group whose
    series has run out keeps its last pose.
    """

    def __init__(self) -> None:
        self.parent = GroupPose()
        self.groups: dict[GroupId, GroupPose] = {group: GroupPose() for group in MOVING_GROUPS}
        self.rebuild()

    def _pose(self, group: GroupId | str) -> GroupPose:
        group_id = GroupId(group)
        if group_id not in self.groups:
            raise ValueError(f"Group '{group_id.value}' has no adjustable pose")
        return self.groups[group_id]

    def reset_neutral(self) -> None:
        self.parent.reset_explicit()
        for pose in self.groups.values():
            pose.reset_explicit()
        self.rebuild()

    def clear_applied(self) -> None:
        for pose in self.groups.values():
            pose.applied = np.eye(4, dtype=np.float64)

    def set_enabled(self, group: GroupId | str | None, enabled: bool) -> None:
        pose = self.parent if group is None else self._pose(group)
        pose.enabled = bool(enabled)

    def set_explicit(
        self,
        group: GroupId | str | None,
        *,
        rotation_xyz: np.ndarray | None = None,
        translation_xyz: np.ndarray | None = None,
    ) -> None:
        pose = self.parent if group is None else self._pose(group)
        if rotation_xyz is not None:
            pose.rotation_xyz = np.asarray(rotation_xyz, dtype=np.float64).reshape(3).copy()
        if translation_xyz is not None:
            pose.translation_xyz = np.asarray(translation_xyz, dtype=np.float64).reshape(3).copy()

    def rebuild(self) -> None:
        self.parent.rebuild(np.zeros(3, dtype=np.float64))
        for group, pose in self.groups.items():
            pose.rebuild(GROUPS[group].center)

    def apply_transform(self, group: GroupId | str, matrix: np.ndarray) -> None:
        self._pose(group).applied = _as_matrix(matrix)

    def applied_transform(self, group: GroupId | str) -> np.ndarray:
        return self._pose(group).applied.copy()

    def combined_transform(self, electrode: str) -> np.ndarray:
        spec = electrode_spec(electrode)
        placement = translation_matrix(electrode_placement(electrode))
        if not spec.moving:
            return placement

        pose = self.groups[spec.group]
        matrix = pose.applied @ placement
        if pose.enabled:
            matrix = pose.explicit @ matrix
        if self.parent.enabled:
            matrix = self.parent.explicit @ matrix
        return matrix
