from __future__ import annotations

import dataclasses

import pytest

from posturewatch.change_filter import ChangeFilter, has_significant_change
from posturewatch.classification import PostureAnalysis, PostureType

BASE = PostureAnalysis(
    type=PostureType.GOOD_POSTURE,
    confidence=0.5,
    slouch_angle=50.0,
    head_tilt_angle=5.0,
    shoulder_alignment=0.0,
    shoulder_height=0.5,
    head_yaw=0.0,
    head_pitch=3.0,
)


def _with(**changes) -> PostureAnalysis:
    return dataclasses.replace(BASE, **changes)


def test_first_result_always_changes():
    assert has_significant_change(BASE, None)


@pytest.mark.parametrize(
    "field", ["slouch_angle", "head_tilt_angle", "shoulder_alignment", "head_yaw", "head_pitch"]
)
def test_each_angle_counts(field):
    assert has_significant_change(_with(**{field: getattr(BASE, field) + 2.0}), BASE)
    assert not has_significant_change(_with(**{field: getattr(BASE, field) - 1.5}), BASE)


def test_shoulder_height_is_not_an_angle():
    assert not has_significant_change(_with(shoulder_height=0.9), BASE)


def test_confidence_and_type_changes():
    assert has_significant_change(_with(confidence=0.65), BASE)
    assert not has_significant_change(_with(confidence=0.55), BASE)
    assert has_significant_change(_with(type=PostureType.SLOUCHING), BASE)


def test_filter_suppresses_small_updates_until_stale():
    f = ChangeFilter()
    assert f.should_forward(BASE, now_ms=0)
    assert not f.should_forward(_with(slouch_angle=51.0), now_ms=100)
    assert not f.should_forward(_with(slouch_angle=51.0), now_ms=999)
    assert f.should_forward(_with(slouch_angle=51.0), now_ms=1000)
    assert f.last_forwarded.slouch_angle == 51.0


def test_filter_compares_against_last_forwarded():
    f = ChangeFilter()
    f.should_forward(BASE, now_ms=0)
    assert not f.should_forward(_with(head_yaw=1.0), now_ms=10)
    # Drift accumulates relative to what consumers last saw.
    assert f.should_forward(_with(head_yaw=2.0), now_ms=20)


def test_filter_forwards_type_change_immediately():
    f = ChangeFilter()
    f.should_forward(BASE, now_ms=0)
    assert f.should_forward(_with(type=PostureType.LOOKING_AWAY), now_ms=1)


def test_reset_forwards_next_result():
    f = ChangeFilter()
    f.should_forward(BASE, now_ms=0)
    f.reset()
    assert f.last_forwarded is None
    assert f.should_forward(BASE, now_ms=1)


def test_custom_thresholds():
    f = ChangeFilter(angle_threshold=5.0, confidence_threshold=0.3, max_interval_ms=200)
    f.should_forward(BASE, now_ms=0)
    assert not f.should_forward(_with(slouch_angle=54.0, confidence=0.7), now_ms=50)
    assert f.should_forward(BASE, now_ms=250)
