from __future__ import annotations

import cv2

from posturewatch.classification import PostureType
from posturewatch.landmarks import ROLE_NAMES
from posturewatch.monitor import DetectionResult

LABEL_COLORS = {
    PostureType.GOOD_POSTURE: (0, 255, 0),
    PostureType.SLOUCHING: (0, 0, 255),
    PostureType.LOOKING_AWAY: (0, 165, 255),
    PostureType.LOOKING_DOWN: (0, 200, 255),
    PostureType.NO_PERSON: (160, 160, 160),
}


def _text(frame, text: str, y: int, color, scale: float = 0.6) -> None:
    cv2.putText(frame, text, (16, y), cv2.FONT_HERSHEY_SIMPLEX, scale, color, 2)


def draw_overlay(frame, result: DetectionResult | None, calibrated: bool) -> None:
    _text(
        frame,
        "Calibrated" if calibrated else "Not calibrated (press c)",
        28,
        (255, 255, 255),
        0.65,
    )
    _text(frame, "c: calibrate  x: clear  q: quit", 58, (200, 200, 200))
    if result is None:
        return

    posture = result.posture
    _text(
        frame,
        f"Posture: {posture.type.value} ({posture.confidence:.2f})",
        88,
        LABEL_COLORS.get(posture.type, (255, 255, 255)),
        0.65,
    )
    if posture.type is PostureType.NO_PERSON:
        return

    _text(
        frame,
        f"CVA:{posture.slouch_angle:.1f} Tilt:{posture.head_tilt_angle:.1f} "
        f"Yaw:{posture.head_yaw:.1f} Pitch:{posture.head_pitch:.1f}",
        118,
        (120, 220, 255),
        0.55,
    )
    _text(
        frame,
        f"Shoulders: align {posture.shoulder_alignment:.1f}deg height {posture.shoulder_height:.3f}",
        148,
        (255, 200, 120),
        0.55,
    )
    _text(frame, f"Rule: {posture.reason}", 178, (200, 255, 200), 0.55)

    # Mark the landmarks the posture logic actually reads.
    if result.landmarks:
        h, w = frame.shape[:2]
        for idx, name in ROLE_NAMES.items():
            lm = result.landmarks[idx]
            x, y = int(lm.x * w), int(lm.y * h)
            cv2.circle(frame, (x, y), 4, (0, 255, 255), -1)
            cv2.putText(frame, name, (x + 6, y - 6), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (0, 255, 255), 1)
