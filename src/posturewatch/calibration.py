from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from posturewatch.errors import PersonNotVisibleError
from posturewatch.geometry import PostureMetrics, calibration_visible, compute_metrics, eye_visibility
from posturewatch.landmarks import LandmarkFrame
from posturewatch.smoothing import MetricSmoother

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationBaseline:
    metrics: PostureMetrics
    captured_at: float  # epoch seconds

    def as_dict(self) -> dict[str, float]:
        data = self.metrics.as_dict()
        data["captured_at"] = self.captured_at
        return data


class CalibrationManager:
    """Holds at most one baseline and resets the smoothing buffers around it.

    Baseline values are stored verbatim. Classification only looks at how far
    the user drifts from their own baseline, so there is nothing to validate.
    """

    def __init__(self, smoother: MetricSmoother, clock: Callable[[], float] = time.time) -> None:
        self._smoother = smoother
        self._clock = clock
        self._baseline: CalibrationBaseline | None = None

    def calibrate(self, frame: LandmarkFrame) -> CalibrationBaseline:
        if not calibration_visible(frame):
            raise PersonNotVisibleError(
                "Cannot calibrate: person not clearly visible in frame. "
                "Make sure your face and shoulders are fully visible."
            )

        # Eyes were just confirmed visible, so the eye-based tilt applies.
        metrics = compute_metrics(frame, use_eye_tilt=True)
        baseline = CalibrationBaseline(metrics=metrics, captured_at=float(self._clock()))
        self._baseline = baseline
        self._smoother.reset()

        eyes = eye_visibility(frame)
        logger.info(
            "Calibration captured: cva=%.1f tilt=%.1f shoulder_align=%.1f shoulder_height=%.3f "
            "yaw=%.1f pitch=%.1f (eye confidence L=%.0f%% R=%.0f%%)",
            metrics.slouch_angle,
            metrics.head_tilt_angle,
            metrics.shoulder_alignment,
            metrics.shoulder_height,
            metrics.head_yaw,
            metrics.head_pitch,
            eyes.left_confidence * 100.0,
            eyes.right_confidence * 100.0,
        )
        return baseline

    def clear(self) -> None:
        if self._baseline is not None:
            logger.info("Calibration cleared")
        self._baseline = None
        self._smoother.reset()

    def get(self) -> CalibrationBaseline | None:
        return self._baseline

    @property
    def is_calibrated(self) -> bool:
        return self._baseline is not None
