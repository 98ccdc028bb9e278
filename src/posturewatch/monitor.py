from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from posturewatch.calibration import CalibrationBaseline
from posturewatch.change_filter import ChangeFilter
from posturewatch.classification import PostureAnalysis, no_person_analysis
from posturewatch.config import AppConfig, MonitorConfig
from posturewatch.engine import PostureEngine
from posturewatch.errors import (
    InitializationError,
    NotInitializedError,
    PersonNotVisibleError,
    SourceUnavailableError,
)
from posturewatch.landmarks import Landmark
from posturewatch.sources.base import BaseLandmarkSource
from posturewatch.sources.factory import build_source

logger = logging.getLogger(__name__)

# Returns the current image, or None when no frame is available yet.
FrameProvider = Callable[[], Any]
ResultListener = Callable[["DetectionResult"], None]


class MonitorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DETECTING = "detecting"
    ERROR = "error"


@dataclass(frozen=True)
class DetectionResult:
    landmarks: tuple[Landmark, ...] | None
    posture: PostureAnalysis
    timestamp: float  # milliseconds, monotonic


class PostureMonitor:
    """Drives a landmark source at a fixed cadence and forwards posture updates.

    Lifecycle: idle -> loading -> ready (or error) on ``initialize``;
    ready <-> detecting on ``start``/``stop``. The landmark source is treated
    as non-reentrant: while one frame is being extracted, concurrent callers
    get the last completed result instead of a second model call.
    """

    def __init__(
        self,
        source_factory: Callable[[], BaseLandmarkSource],
        engine: PostureEngine | None = None,
        config: MonitorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or MonitorConfig()
        self.engine = engine or PostureEngine()
        self._source_factory = source_factory
        self._clock = clock

        self._source: BaseLandmarkSource | None = None
        self._state = MonitorState.IDLE
        self._state_lock = threading.Lock()
        self._extract_lock = threading.Lock()

        self._filter = ChangeFilter(
            angle_threshold=float(self.config.angle_change_deg),
            confidence_threshold=float(self.config.confidence_change),
            max_interval_ms=float(self.config.max_update_interval_ms),
        )
        self._listeners: list[ResultListener] = []
        self._last_result: DetectionResult | None = None
        self._frame_provider: FrameProvider | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_error: Exception | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "PostureMonitor":
        return cls(source_factory=lambda: build_source(config.source), config=config.monitor)

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def latest_result(self) -> DetectionResult | None:
        return self._last_result

    @property
    def is_calibrated(self) -> bool:
        return self.engine.is_calibrated

    def add_listener(self, listener: ResultListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ResultListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- lifecycle -------------------------------------------------------

    def initialize(self) -> None:
        with self._state_lock:
            if self._state in (MonitorState.READY, MonitorState.DETECTING):
                return
            self._state = MonitorState.LOADING

        try:
            source = self._source_factory()
        except Exception as e:
            with self._state_lock:
                self._state = MonitorState.ERROR
                self.last_error = e
            logger.error("Landmark source failed to load: %s", e)
            raise InitializationError(f"Failed to initialize landmark source: {e}") from e

        with self._state_lock:
            self._source = source
            self._state = MonitorState.READY
            self.last_error = None
        logger.info("Posture monitor ready (source=%s)", getattr(source, "name", type(source).__name__))

    def start(self, frame_provider: FrameProvider, background: bool = True) -> None:
        # A worker stopped from one of its own listeners may still be finishing.
        previous = self._thread
        if (
            previous is not None
            and self._stop_event.is_set()
            and previous is not threading.current_thread()
        ):
            previous.join()

        with self._state_lock:
            if self._state == MonitorState.DETECTING:
                return
            if self._state != MonitorState.READY:
                raise NotInitializedError(
                    "Detector not ready. Please wait for initialization to complete."
                )
            self._frame_provider = frame_provider
            self._stop_event.clear()
            self._state = MonitorState.DETECTING
            # Restarted from inside the worker: its loop keeps running.
            resumed = self._thread is not None and self._thread is threading.current_thread()

        if background and not resumed:
            self._thread = threading.Thread(target=self._run, name="posture-monitor", daemon=True)
            self._thread.start()
        logger.info("Detection started at %.1f fps", float(self.config.detection_fps))

    def stop(self) -> None:
        with self._state_lock:
            if self._state != MonitorState.DETECTING:
                return
            self._stop_event.set()
            thread = self._thread

        # The in-flight frame, if any, completes before the worker exits.
        if thread is not None and thread is not threading.current_thread():
            thread.join()
            self._thread = None

        with self._state_lock:
            self._state = MonitorState.READY
            self._frame_provider = None
        self._filter.reset()
        logger.info("Detection stopped")

    def dispose(self) -> None:
        self.stop()
        with self._state_lock:
            source, self._source = self._source, None
            self._state = MonitorState.IDLE
            self._last_result = None
        if source is not None:
            source.close()

    # -- per-frame -------------------------------------------------------

    def process_frame(self, image: Any) -> DetectionResult:
        """Run one image through the source and engine, single-flight."""
        source = self._require_source()
        if not self._extract_lock.acquire(blocking=False):
            last = self._last_result
            if last is not None:
                return last
            return DetectionResult(landmarks=None, posture=no_person_analysis(), timestamp=self._now_ms())

        try:
            try:
                landmarks = self._extract_or_none(source, image)
                posture = self.engine.submit_frame(landmarks)
            except Exception as e:
                # Per-frame failures degrade to no-person; the loop keeps going.
                self.last_error = e
                logger.exception("Frame analysis failed")
                landmarks, posture = None, no_person_analysis()
            result = DetectionResult(
                landmarks=tuple(landmarks) if landmarks is not None else None,
                posture=posture,
                timestamp=self._now_ms(),
            )
            self._last_result = result
            return result
        finally:
            self._extract_lock.release()

    def tick(self) -> DetectionResult | None:
        """Process the provider's current frame; return it if it was forwarded."""
        provider = self._frame_provider
        if provider is None:
            raise NotInitializedError("No frame provider. Call start() first.")

        result = self.process_frame(provider())
        if self.config.require_calibration and not self.engine.is_calibrated:
            return None
        if not self._filter.should_forward(result.posture, result.timestamp):
            return None

        logger.debug(
            "Posture update: %s confidence=%.2f (%s)",
            result.posture.type.value,
            result.posture.confidence,
            result.posture.reason,
        )
        for listener in list(self._listeners):
            listener(result)
        return result

    # -- calibration -----------------------------------------------------

    def calibrate(self, image: Any = None) -> CalibrationBaseline:
        """Capture the current pose as the user's good-posture baseline."""
        source = self._require_source()
        if image is None:
            provider = self._frame_provider
            if provider is None:
                raise NotInitializedError("Camera not started. Please start the camera first.")
            image = provider()
        if image is None:
            raise PersonNotVisibleError("No camera frame available yet.")

        with self._extract_lock:
            landmarks = source.extract(image)
        if landmarks is None:
            raise PersonNotVisibleError("No pose detected. Make sure you are visible in the camera.")
        return self.engine.calibrate(landmarks)

    def calibrate_landmarks(self, landmarks) -> CalibrationBaseline:
        return self.engine.calibrate(landmarks)

    def clear_calibration(self) -> None:
        self.engine.clear_calibration()

    def get_calibration(self) -> CalibrationBaseline | None:
        return self.engine.get_calibration()

    # -- internals -------------------------------------------------------

    def _run(self) -> None:
        interval = 1.0 / float(self.config.detection_fps)
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.tick()
            except Exception:
                # A single bad frame or listener must not kill the loop.
                logger.exception("Pose detection error")
            remaining = interval - (time.monotonic() - started)
            self._stop_event.wait(max(remaining, 0.0))

    def _require_source(self) -> BaseLandmarkSource:
        source = self._source
        if source is None or self._state not in (MonitorState.READY, MonitorState.DETECTING):
            raise NotInitializedError("Pose detector not initialized. Call initialize() first.")
        return source

    def _extract_or_none(self, source: BaseLandmarkSource, image: Any) -> list[Landmark] | None:
        if image is None:
            return None
        try:
            return source.extract(image)
        except SourceUnavailableError as e:
            self.last_error = e
            logger.warning("Landmark source unavailable for this frame: %s", e)
            return None

    def _now_ms(self) -> float:
        return float(self._clock()) * 1000.0
