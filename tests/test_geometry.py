from __future__ import annotations

import math

import pytest

from frames import make_frame, pitched, set_visibility, shift, turned, with_cva
from posturewatch import geometry
from posturewatch.landmarks import (
    LEFT_EAR,
    LEFT_EYE,
    LEFT_SHOULDER,
    NOSE,
    RIGHT_EAR,
    RIGHT_EYE,
    RIGHT_SHOULDER,
    Landmark,
    as_frame,
)


def _cva(frame):
    return geometry.slouch_angle(frame[LEFT_SHOULDER], frame[RIGHT_SHOULDER], frame[LEFT_EAR], frame[RIGHT_EAR])


def test_slouch_angle_upright():
    expected = math.degrees(math.atan2(0.22, 0.01))
    assert _cva(make_frame()) == pytest.approx(expected)


@pytest.mark.parametrize("angle", [35.0, 40.0, 52.0])
def test_slouch_angle_tracks_head_position(angle):
    assert _cva(with_cva(angle)) == pytest.approx(angle, abs=1e-6)


def test_slouch_angle_ignores_ear_label_order():
    frame = with_cva(45.0)
    swapped = geometry.slouch_angle(
        frame[LEFT_SHOULDER], frame[RIGHT_SHOULDER], frame[RIGHT_EAR], frame[LEFT_EAR]
    )
    assert swapped == pytest.approx(_cva(frame))


def test_slouch_angle_is_finite_when_ears_directly_above_shoulders():
    ear = Landmark(0.5, 0.3)
    shoulder = Landmark(0.5, 0.5)
    angle = geometry.slouch_angle(shoulder, shoulder, ear, ear)
    assert angle == pytest.approx(math.degrees(math.atan2(0.2, 0.01)))
    assert angle < 90.0


def test_sagittal_tilt_positive_when_eyes_drop():
    frame = pitched(25.0)
    tilt = geometry.sagittal_head_tilt(frame[LEFT_EYE], frame[RIGHT_EYE], frame[LEFT_EAR], frame[RIGHT_EAR])
    assert tilt == pytest.approx(25.0, abs=1e-6)


def test_sagittal_tilt_negative_when_looking_up():
    frame = make_frame()
    tilt = geometry.sagittal_head_tilt(frame[LEFT_EYE], frame[RIGHT_EYE], frame[LEFT_EAR], frame[RIGHT_EAR])
    assert tilt == pytest.approx(math.degrees(math.atan2(-0.01, 0.2)))
    assert tilt < 0


def test_nose_tilt_keeps_negative_values():
    frame = make_frame()
    tilt = geometry.nose_head_tilt(frame[NOSE], frame[LEFT_SHOULDER], frame[RIGHT_SHOULDER])
    assert tilt == pytest.approx((0.30 - 0.50) / 0.15 * 20)


def test_nose_tilt_positive_when_nose_below_shoulders():
    frame = shift(make_frame(), [NOSE], dy=0.35)
    tilt = geometry.nose_head_tilt(frame[NOSE], frame[LEFT_SHOULDER], frame[RIGHT_SHOULDER])
    assert tilt == pytest.approx((0.65 - 0.50) / 0.15 * 20)


def test_shoulder_alignment_sign_follows_lower_shoulder():
    left_low = geometry.shoulder_alignment(Landmark(0.65, 0.55), Landmark(0.35, 0.50))
    right_low = geometry.shoulder_alignment(Landmark(0.65, 0.50), Landmark(0.35, 0.55))
    assert left_low > 0
    assert right_low == pytest.approx(-left_low)
    assert left_low == pytest.approx(math.degrees(math.atan2(0.05, 0.30)))


def test_shoulder_height_is_mean_y():
    assert geometry.shoulder_height(Landmark(0.6, 0.4), Landmark(0.4, 0.6)) == pytest.approx(0.5)


def test_head_orientation_facing_camera():
    yaw, pitch = geometry.head_orientation(as_frame(make_frame()))
    assert yaw == pytest.approx(0.0, abs=1e-9)
    assert pitch == pytest.approx(math.degrees(math.atan2(-0.01, 0.2)))


@pytest.mark.parametrize("yaw", [-50.0, 20.0, 50.0])
def test_head_orientation_yaw(yaw):
    got, _ = geometry.head_orientation(as_frame(turned(yaw)))
    assert got == pytest.approx(yaw, abs=1e-6)


def test_head_orientation_pitch():
    _, pitch = geometry.head_orientation(as_frame(pitched(40.0)))
    assert pitch == pytest.approx(40.0, abs=1e-6)


def test_eye_visibility_requires_both_eyes():
    frame = as_frame(set_visibility(make_frame(), left_eye=0.9, right_eye=0.5))
    eyes = geometry.eye_visibility(frame)
    assert not eyes.visible
    assert eyes.average_confidence == pytest.approx(0.7)
    assert eyes.left_confidence == pytest.approx(0.9)


def test_eye_visibility_threshold_is_strict():
    frame = as_frame(set_visibility(make_frame(), left_eye=0.6, right_eye=0.9))
    assert not geometry.eye_visibility(frame).visible
    frame = as_frame(set_visibility(make_frame(), left_eye=0.61, right_eye=0.61))
    assert geometry.eye_visibility(frame).visible


def test_missing_visibility_counts_as_zero():
    class Raw:
        x, y, z, visibility = 0.1, 0.2, 0.3, None

    assert Landmark.from_obj(Raw()).visibility == 0.0


@pytest.mark.parametrize("role", ["nose", "left_shoulder", "right_shoulder", "left_ear", "right_ear"])
def test_upper_body_visibility_gate(role):
    frame = as_frame(set_visibility(make_frame(), **{role: 0.4}))
    assert not geometry.upper_body_visible(frame)
    assert not geometry.calibration_visible(frame)


def test_calibration_visibility_also_needs_eyes():
    frame = as_frame(set_visibility(make_frame(), right_eye=0.3))
    assert geometry.upper_body_visible(frame)
    assert not geometry.calibration_visible(frame)


def test_compute_metrics_picks_tilt_source():
    frame = as_frame(make_frame())
    eye_based = geometry.compute_metrics(frame, use_eye_tilt=True)
    nose_based = geometry.compute_metrics(frame, use_eye_tilt=False)
    assert eye_based.head_tilt_angle == pytest.approx(math.degrees(math.atan2(-0.01, 0.2)))
    assert nose_based.head_tilt_angle == pytest.approx(-26.6666667)
    assert eye_based.slouch_angle == nose_based.slouch_angle
    assert eye_based.shoulder_height == pytest.approx(0.5)


def test_deviation_is_absolute():
    a = geometry.PostureMetrics(slouch_angle=50, head_yaw=-10)
    b = geometry.PostureMetrics(slouch_angle=60, head_yaw=10)
    dev = a.deviation_from(b)
    assert dev.slouch_angle == pytest.approx(10)
    assert dev.head_yaw == pytest.approx(20)
    assert dev.shoulder_height == 0


def test_as_frame_rejects_wrong_arity():
    with pytest.raises(ValueError):
        as_frame(make_frame()[:20])
