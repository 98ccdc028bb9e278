"""
Posture geometry.

Pure functions mapping a subset of a landmark frame to scalar angles and
positions. Every calculator assumes the frame has all 33 landmarks; callers
check visibility (see ``upper_body_visible``) before trusting the numbers.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from posturewatch.landmarks import (
    LEFT_EAR,
    LEFT_EYE,
    LEFT_SHOULDER,
    NOSE,
    RIGHT_EAR,
    RIGHT_EYE,
    RIGHT_SHOULDER,
    Landmark,
    LandmarkFrame,
)

EPS = 0.01
MIN_VISIBILITY = 0.6
EYE_VISIBILITY_THRESHOLD = 0.6
# Typical nose-to-shoulder vertical span in normalized coordinates.
NOSE_DROP_SCALE = 0.15
NOSE_DROP_DEGREES = 20.0

UPPER_BODY_POINTS = (NOSE, LEFT_SHOULDER, RIGHT_SHOULDER, LEFT_EAR, RIGHT_EAR)
CALIBRATION_POINTS = UPPER_BODY_POINTS + (LEFT_EYE, RIGHT_EYE)


@dataclass(frozen=True)
class PostureMetrics:
    slouch_angle: float = 0.0
    head_tilt_angle: float = 0.0
    shoulder_alignment: float = 0.0
    shoulder_height: float = 0.0
    head_yaw: float = 0.0
    head_pitch: float = 0.0

    # shoulder_height is a normalized position, not an angle.
    ANGLE_FIELDS = ("slouch_angle", "head_tilt_angle", "shoulder_alignment", "head_yaw", "head_pitch")
    FIELDS = ANGLE_FIELDS[:3] + ("shoulder_height",) + ANGLE_FIELDS[3:]

    def as_dict(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in self.FIELDS}

    def deviation_from(self, baseline: "PostureMetrics") -> "PostureMetrics":
        """Absolute per-metric difference against a baseline."""
        return PostureMetrics(
            **{name: abs(getattr(self, name) - getattr(baseline, name)) for name in self.FIELDS}
        )


@dataclass(frozen=True)
class EyeVisibility:
    visible: bool
    left_confidence: float
    right_confidence: float
    average_confidence: float


def _mid(a: Landmark, b: Landmark) -> tuple[float, float, float]:
    return ((a.x + b.x) / 2.0, (a.y + b.y) / 2.0, (a.z + b.z) / 2.0)


def _deg_atan2(y: float, x: float) -> float:
    return float(np.degrees(np.arctan2(y, x)))


def slouch_angle(
    left_shoulder: Landmark,
    right_shoulder: Landmark,
    left_ear: Landmark,
    right_ear: Landmark,
) -> float:
    """Craniovertebral angle in degrees.

    Angle of the ear-midpoint to shoulder-midpoint line above horizontal, in the
    image (x/y) plane. Neutral sitting is roughly 48-54 degrees; the value drops
    as the head drifts forward.
    """
    ear_x, ear_y, _ = _mid(left_ear, right_ear)
    sh_x, sh_y, _ = _mid(left_shoulder, right_shoulder)
    horizontal = abs(ear_x - sh_x)
    vertical = sh_y - ear_y  # positive = ear above shoulder
    return _deg_atan2(vertical, horizontal + EPS)


def sagittal_head_tilt(
    left_eye: Landmark,
    right_eye: Landmark,
    left_ear: Landmark,
    right_ear: Landmark,
) -> float:
    """Eye-to-ear angle in the depth/vertical plane. Positive = looking down."""
    _, eye_y, eye_z = _mid(left_eye, right_eye)
    _, ear_y, ear_z = _mid(left_ear, right_ear)
    dz = abs(eye_z - ear_z) + EPS
    dy = eye_y - ear_y
    return _deg_atan2(dy, dz)


def nose_head_tilt(nose: Landmark, left_shoulder: Landmark, right_shoulder: Landmark) -> float:
    """Nose-drop fallback for head tilt, used when the eyes are not visible.

    Not clamped: negative values mean looking up.
    """
    shoulder_y = (left_shoulder.y + right_shoulder.y) / 2.0
    normalized_drop = (nose.y - shoulder_y) / NOSE_DROP_SCALE
    return normalized_drop * NOSE_DROP_DEGREES


def shoulder_alignment(left_shoulder: Landmark, right_shoulder: Landmark) -> float:
    height_difference = left_shoulder.y - right_shoulder.y
    horizontal = abs(left_shoulder.x - right_shoulder.x)
    angle = _deg_atan2(abs(height_difference), horizontal)
    return angle if height_difference > 0 else -angle


def shoulder_height(left_shoulder: Landmark, right_shoulder: Landmark) -> float:
    return (left_shoulder.y + right_shoulder.y) / 2.0


def head_orientation(frame: LandmarkFrame) -> tuple[float, float]:
    """Return (yaw, pitch) in degrees.

    Yaw compares the face center (eyes + nose) to the ear center horizontally;
    pitch compares eye center to ear center vertically. Both are scaled by the
    depth separation of the two centers.
    """
    nose = frame[NOSE]
    left_eye, right_eye = frame[LEFT_EYE], frame[RIGHT_EYE]
    left_ear, right_ear = frame[LEFT_EAR], frame[RIGHT_EAR]

    face_x = (left_eye.x + right_eye.x + nose.x) / 3.0
    face_z = (left_eye.z + right_eye.z + nose.z) / 3.0
    ear_x, ear_y, ear_z = _mid(left_ear, right_ear)
    _, eye_y, eye_z = _mid(left_eye, right_eye)

    yaw = _deg_atan2(face_x - ear_x, abs(face_z - ear_z) + EPS)
    pitch = _deg_atan2(eye_y - ear_y, abs(ear_z - eye_z) + EPS)
    return yaw, pitch


def eye_visibility(frame: LandmarkFrame, threshold: float = EYE_VISIBILITY_THRESHOLD) -> EyeVisibility:
    left = frame[LEFT_EYE].visibility
    right = frame[RIGHT_EYE].visibility
    return EyeVisibility(
        visible=left > threshold and right > threshold,
        left_confidence=left,
        right_confidence=right,
        average_confidence=(left + right) / 2.0,
    )


def _all_visible(frame: LandmarkFrame, indices: tuple[int, ...], threshold: float) -> bool:
    return all(frame[idx].visibility > threshold for idx in indices)


def upper_body_visible(frame: LandmarkFrame, threshold: float = MIN_VISIBILITY) -> bool:
    return _all_visible(frame, UPPER_BODY_POINTS, threshold)


def calibration_visible(frame: LandmarkFrame, threshold: float = MIN_VISIBILITY) -> bool:
    return _all_visible(frame, CALIBRATION_POINTS, threshold)


def compute_metrics(frame: LandmarkFrame, use_eye_tilt: bool) -> PostureMetrics:
    """Raw (unsmoothed) metric set for one frame."""
    left_shoulder, right_shoulder = frame[LEFT_SHOULDER], frame[RIGHT_SHOULDER]
    left_ear, right_ear = frame[LEFT_EAR], frame[RIGHT_EAR]

    if use_eye_tilt:
        tilt = sagittal_head_tilt(frame[LEFT_EYE], frame[RIGHT_EYE], left_ear, right_ear)
    else:
        tilt = nose_head_tilt(frame[NOSE], left_shoulder, right_shoulder)

    yaw, pitch = head_orientation(frame)
    return PostureMetrics(
        slouch_angle=slouch_angle(left_shoulder, right_shoulder, left_ear, right_ear),
        head_tilt_angle=tilt,
        shoulder_alignment=shoulder_alignment(left_shoulder, right_shoulder),
        shoulder_height=shoulder_height(left_shoulder, right_shoulder),
        head_yaw=yaw,
        head_pitch=pitch,
    )
