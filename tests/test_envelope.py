from __future__ import annotations

import numpy as np

from ftsim.analysis.envelope import MotionEnvelopeTracker, format_envelope_table
from ftsim.electrodes.layout import GROUPS, GroupId


def test_envelope_starts_at_resting_circumcenter() -> None:
    tracker = MotionEnvelopeTracker()
    envelope = tracker.envelope(GroupId.TAG)

    assert np.allclose(envelope.original, GROUPS[GroupId.TAG].center)
    assert envelope.radius == 0.0
    assert envelope.updates == 0
    assert np.isinf(envelope.minimum).all()


def test_radius_never_decreases() -> None:
    tracker = MotionEnvelopeTracker()
    resting = GROUPS[GroupId.TBG].resting
    shifts = [0.0, 0.4, 1.2, 0.3, 0.0, 0.8]

    radii = []
    for shift in shifts:
        offsets = np.tile([shift, 0.0, 0.0], (3, 1))
        radii.append(tracker.update(GroupId.TBG, resting.offset_by(offsets)).radius)

    assert radii == sorted(radii)
    assert abs(radii[-1] - 1.2) < 1e-9


def test_bounding_box_tracks_component_extremes() -> None:
    tracker = MotionEnvelopeTracker()
    resting = GROUPS[GroupId.TCG].resting
    center = GROUPS[GroupId.TCG].center
    for shift in ([0.5, -0.2, 0.0], [-0.3, 0.1, 0.7]):
        tracker.update(GroupId.TCG, resting.offset_by(np.tile(shift, (3, 1))))

    envelope = tracker.envelope(GroupId.TCG)
    assert np.allclose(envelope.minimum, center + [-0.3, -0.2, 0.0])
    assert np.allclose(envelope.maximum, center + [0.5, 0.1, 0.7])
    assert np.allclose(envelope.current, center + [-0.3, 0.1, 0.7])
    assert envelope.updates == 2


def test_reset_restores_initial_state_and_summary_is_serializable() -> None:
    tracker = MotionEnvelopeTracker()
    tracker.update(GroupId.TAG, GROUPS[GroupId.TAG].resting.offset_by(np.tile([0.0, 0.0, 1.0], (3, 1))))
    tracker.reset(GroupId.TAG)

    summary = tracker.summary()
    assert summary["TAG"]["radius"] == 0.0
    assert summary["TAG"]["min"] is None
    assert set(summary) == {"TAG", "TBG", "TCG"}

    table = format_envelope_table(tracker.snapshot())
    assert table.row_count == 3
