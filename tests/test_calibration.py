from __future__ import annotations

import pytest

from frames import make_frame, set_visibility, shift
from posturewatch.calibration import CalibrationManager
from posturewatch.errors import PersonNotVisibleError
from posturewatch.geometry import PostureMetrics, compute_metrics
from posturewatch.landmarks import LEFT_EAR, RIGHT_EAR, as_frame
from posturewatch.smoothing import MetricSmoother


@pytest.fixture
def smoother():
    return MetricSmoother()


@pytest.fixture
def manager(smoother, clock):
    return CalibrationManager(smoother, clock=clock)


def test_starts_without_baseline(manager):
    assert manager.get() is None
    assert not manager.is_calibrated


def test_calibrate_stores_eye_based_metrics(manager, clock):
    frame = as_frame(make_frame())
    baseline = manager.calibrate(frame)
    assert manager.get() is baseline
    assert baseline.metrics == compute_metrics(frame, use_eye_tilt=True)
    assert baseline.captured_at == clock.now
    assert baseline.as_dict()["captured_at"] == clock.now


def test_calibrate_resets_buffers(manager, smoother):
    smoother.smooth(PostureMetrics(slouch_angle=30, head_yaw=5))
    manager.calibrate(as_frame(make_frame()))
    assert smoother.is_empty()


@pytest.mark.parametrize(
    "role",
    ["nose", "left_shoulder", "right_shoulder", "left_ear", "right_ear", "left_eye", "right_eye"],
)
def test_calibrate_requires_visible_person(manager, role):
    with pytest.raises(PersonNotVisibleError):
        manager.calibrate(as_frame(set_visibility(make_frame(), **{role: 0.5})))
    assert manager.get() is None


def test_failed_recalibration_keeps_previous_baseline(manager, smoother):
    first = manager.calibrate(as_frame(make_frame()))
    smoother.smooth(PostureMetrics(slouch_angle=44))
    with pytest.raises(PersonNotVisibleError):
        manager.calibrate(as_frame(set_visibility(make_frame(), left_eye=0.2)))
    assert manager.get() is first
    assert not smoother.is_empty()


def test_recalibration_replaces_baseline(manager, clock):
    first = manager.calibrate(as_frame(make_frame()))
    clock.advance(60)
    second = manager.calibrate(as_frame(shift(make_frame(), [LEFT_EAR, RIGHT_EAR], dx=0.05)))
    assert manager.get() is second
    assert second.captured_at == first.captured_at + 60
    assert second.metrics.slouch_angle < first.metrics.slouch_angle


def test_implausible_values_are_stored_verbatim(manager):
    # Ears below the shoulders gives a negative CVA; still accepted.
    frame = as_frame(shift(make_frame(), [LEFT_EAR, RIGHT_EAR], dy=0.4))
    baseline = manager.calibrate(frame)
    assert baseline.metrics.slouch_angle < 0


def test_clear_is_idempotent(manager, smoother):
    manager.calibrate(as_frame(make_frame()))
    smoother.smooth(PostureMetrics(slouch_angle=50))
    manager.clear()
    assert manager.get() is None
    assert smoother.is_empty()
    manager.clear()
    assert manager.get() is None
    assert smoother.is_empty()
