from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

NUM_LANDMARKS = 33

# MediaPipe Pose indices. Fixed by the model, never reordered.
NOSE = 0
LEFT_EYE = 2
RIGHT_EYE = 5
LEFT_EAR = 7
RIGHT_EAR = 8
MOUTH_LEFT = 9
MOUTH_RIGHT = 10
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_HIP = 23
RIGHT_HIP = 24

ROLE_NAMES = {
    NOSE: "nose",
    LEFT_EYE: "left_eye",
    RIGHT_EYE: "right_eye",
    LEFT_EAR: "left_ear",
    RIGHT_EAR: "right_ear",
    MOUTH_LEFT: "mouth_left",
    MOUTH_RIGHT: "mouth_right",
    LEFT_SHOULDER: "left_shoulder",
    RIGHT_SHOULDER: "right_shoulder",
    LEFT_HIP: "left_hip",
    RIGHT_HIP: "right_hip",
}


@dataclass(frozen=True)
class Landmark:
    """One tracked body point.

    x/y are normalized image coordinates (0=left/top, 1=right/bottom), z is
    depth relative to the hips (negative = closer to the camera).
    """

    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    @classmethod
    def from_obj(cls, landmark: Any) -> "Landmark":
        visibility = getattr(landmark, "visibility", None)
        return cls(
            x=float(landmark.x),
            y=float(landmark.y),
            z=float(getattr(landmark, "z", 0.0) or 0.0),
            visibility=float(visibility) if visibility is not None else 0.0,
        )


LandmarkFrame = tuple[Landmark, ...]


def as_frame(landmarks: Iterable[Any]) -> LandmarkFrame:
    frame = tuple(lm if isinstance(lm, Landmark) else Landmark.from_obj(lm) for lm in landmarks)
    if len(frame) != NUM_LANDMARKS:
        raise ValueError(f"Expected {NUM_LANDMARKS} landmarks, got {len(frame)}")
    return frame


def named_points(frame: LandmarkFrame) -> dict[str, Landmark]:
    """Return the semantically labeled subset of a frame, keyed by role name."""
    return {name: frame[idx] for idx, name in ROLE_NAMES.items()}
