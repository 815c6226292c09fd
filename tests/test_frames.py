from __future__ import annotations

import numpy as np
import pytest

from ftsim.analysis.frames import (
    DegenerateFrame,
    LocalFrame,
    ReferencePoint,
    TrackedTriple,
    circumcenter,
    fit_frame,
    normalize,
    rigidity_error,
    solve_rigid_transform,
    transform_points,
)
from ftsim.electrodes.layout import GROUPS, GroupId
from ftsim.errors import DegenerateGeometryError


def _rotation_about_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.asarray([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def test_circumcenter_is_equidistant_from_all_points() -> None:
    a = np.asarray([0.0, 0.0, 0.0])
    b = np.asarray([2.0, 0.0, 0.0])
    c = np.asarray([0.0, 2.0, 0.0])

    center = circumcenter(a, b, c)

    assert np.allclose(center, [1.0, 1.0, 0.0])
    distances = [np.linalg.norm(center - point) for point in (a, b, c)]
    assert np.allclose(distances, distances[0])


def test_circumcenter_of_resting_tag_triple_is_group_center() -> None:
    spec = GROUPS[GroupId.TAG]
    center = circumcenter(spec.resting.a, spec.resting.b, spec.resting.c)
    assert np.allclose(center, spec.center)


def test_circumcenter_falls_back_to_centroid_for_collinear_points() -> None:
    a = np.asarray([0.0, 0.0, 0.0])
    b = np.asarray([1.0, 1.0, 1.0])
    c = np.asarray([3.0, 3.0, 3.0])

    center = circumcenter(a, b, c)

    assert np.allclose(center, [4.0 / 3.0, 4.0 / 3.0, 4.0 / 3.0])
    assert np.isfinite(center).all()


def test_normalize_rejects_zero_vector() -> None:
    with pytest.raises(DegenerateGeometryError):
        normalize(np.zeros(3))
    assert np.allclose(normalize(np.asarray([0.0, 3.0, 4.0])), [0.0, 0.6, 0.8])


def test_fit_frame_is_right_handed_orthonormal() -> None:
    for group in (GroupId.TAG, GroupId.TBG, GroupId.TCG):
        spec = GROUPS[group]
        frame = fit_frame(spec.resting, spec.reference)

        assert isinstance(frame, LocalFrame)
        basis = np.column_stack([frame.u, frame.v, frame.w])
        assert np.allclose(basis.T @ basis, np.eye(3))
        assert np.isclose(np.linalg.det(basis), 1.0)


def test_fit_frame_v_axis_points_away_from_reference() -> None:
    spec = GROUPS[GroupId.TAG]
    frame = fit_frame(spec.resting, ReferencePoint.A)

    assert isinstance(frame, LocalFrame)
    # A sits 4 mm below the centre, so v points towards +y.
    assert np.allclose(frame.v, [0.0, 1.0, 0.0])
    assert np.allclose(frame.w, [0.0, 0.0, 1.0])


def test_fit_frame_returns_degenerate_for_collinear_triple() -> None:
    triple = TrackedTriple(np.asarray([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))
    frame = fit_frame(triple, ReferencePoint.A)

    assert isinstance(frame, DegenerateFrame)
    assert np.allclose(frame.centroid, [1.0, 0.0, 0.0])


def test_identical_frames_give_identity_transform() -> None:
    spec = GROUPS[GroupId.TBG]
    rest = fit_frame(spec.resting, spec.reference)
    deformed = fit_frame(spec.resting.offset_by(np.zeros((3, 3))), spec.reference)

    transform = solve_rigid_transform(rest, deformed)

    assert np.allclose(transform, np.eye(4), atol=1e-12)


def test_pure_translation_is_recovered() -> None:
    spec = GROUPS[GroupId.TCG]
    shift = np.asarray([0.25, -0.5, 1.5])
    rest = fit_frame(spec.resting, spec.reference)
    deformed = fit_frame(spec.resting.offset_by(np.tile(shift, (3, 1))), spec.reference)

    transform = solve_rigid_transform(rest, deformed)

    assert np.allclose(transform[:3, :3], np.eye(3))
    assert np.allclose(transform[:3, 3], shift)


def test_rotation_maps_rest_points_onto_deformed_points() -> None:
    spec = GROUPS[GroupId.TAG]
    rotation = _rotation_about_z(np.deg2rad(12.0))
    moved = spec.resting.points @ rotation.T + np.asarray([0.1, 0.2, -0.3])
    rest = fit_frame(spec.resting, spec.reference)
    deformed = fit_frame(TrackedTriple(moved), spec.reference)

    transform = solve_rigid_transform(rest, deformed)

    assert np.allclose(transform[:3, :3], rotation)
    assert np.allclose(transform_points(spec.resting.points, transform), moved)
    assert rigidity_error(transform) < 1e-9


def test_degenerate_frame_gives_translation_only_transform() -> None:
    spec = GROUPS[GroupId.TAG]
    rest = fit_frame(spec.resting, spec.reference)
    collapsed = TrackedTriple(np.asarray([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))
    deformed = fit_frame(collapsed, spec.reference)

    transform = solve_rigid_transform(rest, deformed)

    assert np.isfinite(transform).all()
    assert np.allclose(transform[:3, :3], np.eye(3))
    assert np.allclose(transform[:3, 3], collapsed.centroid() - spec.resting.centroid())


def test_tracked_triple_validates_shape_and_is_read_only() -> None:
    with pytest.raises(ValueError) as exc_info:
        TrackedTriple(np.zeros((2, 3)))
    assert "(3, 3)" in str(exc_info.value)

    triple = TrackedTriple(np.zeros((3, 3)))
    with pytest.raises(ValueError):
        triple.points[0, 0] = 1.0
