from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from posturewatch.calibration import CalibrationBaseline, CalibrationManager
from posturewatch.classification import (
    DEFAULT_THRESHOLDS,
    PostureAnalysis,
    PostureThresholds,
    classify,
    no_person_analysis,
)
from posturewatch.geometry import compute_metrics, eye_visibility, upper_body_visible
from posturewatch.landmarks import as_frame
from posturewatch.smoothing import SMOOTHING_WINDOW_SIZE, MetricSmoother


@dataclass
class EngineState:
    """Everything one detector carries between frames."""

    smoother: MetricSmoother
    calibration: CalibrationManager
    thresholds: PostureThresholds = field(default=DEFAULT_THRESHOLDS)

    @classmethod
    def create(
        cls,
        thresholds: PostureThresholds = DEFAULT_THRESHOLDS,
        window_size: int = SMOOTHING_WINDOW_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> "EngineState":
        smoother = MetricSmoother(window_size)
        return cls(smoother=smoother, calibration=CalibrationManager(smoother, clock=clock), thresholds=thresholds)


def analyze_landmarks(state: EngineState, landmarks: Iterable[Any] | None) -> PostureAnalysis:
    """Analyze one frame against ``state``, updating its smoothing buffers."""
    if landmarks is None:
        return no_person_analysis(state.thresholds)

    frame = as_frame(landmarks)
    if not upper_body_visible(frame):
        return no_person_analysis(state.thresholds)

    eyes = eye_visibility(frame)
    raw = compute_metrics(frame, use_eye_tilt=eyes.visible)
    smoothed = state.smoother.smooth(raw)

    baseline = state.calibration.get()
    verdict = classify(
        smoothed,
        eyes,
        baseline=baseline.metrics if baseline is not None else None,
        thresholds=state.thresholds,
    )
    return PostureAnalysis.from_verdict(verdict, smoothed)


class PostureEngine:
    """Thread-safe shell around an ``EngineState``.

    Frame analysis, calibration and clearing all take the same lock, so a
    recalibration never lands in the middle of a frame's buffer updates.
    """

    def __init__(self, state: EngineState | None = None) -> None:
        self.state = state or EngineState.create()
        self._lock = threading.Lock()

    def submit_frame(self, landmarks: Iterable[Any] | None) -> PostureAnalysis:
        with self._lock:
            return analyze_landmarks(self.state, landmarks)

    def calibrate(self, landmarks: Iterable[Any]) -> CalibrationBaseline:
        frame = as_frame(landmarks)
        with self._lock:
            return self.state.calibration.calibrate(frame)

    def clear_calibration(self) -> None:
        with self._lock:
            self.state.calibration.clear()

    def get_calibration(self) -> CalibrationBaseline | None:
        with self._lock:
            return self.state.calibration.get()

    @property
    def is_calibrated(self) -> bool:
        return self.get_calibration() is not None
