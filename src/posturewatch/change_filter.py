from __future__ import annotations

from posturewatch.classification import PostureAnalysis
from posturewatch.geometry import PostureMetrics

ANGLE_CHANGE_THRESHOLD = 2.0  # degrees
CONFIDENCE_CHANGE_THRESHOLD = 0.1
MAX_UPDATE_INTERVAL_MS = 1000.0


def has_significant_change(
    current: PostureAnalysis,
    previous: PostureAnalysis | None,
    angle_threshold: float = ANGLE_CHANGE_THRESHOLD,
    confidence_threshold: float = CONFIDENCE_CHANGE_THRESHOLD,
) -> bool:
    if previous is None:
        return True
    if current.type != previous.type:
        return True
    for name in PostureMetrics.ANGLE_FIELDS:
        if abs(getattr(current, name) - getattr(previous, name)) >= angle_threshold:
            return True
    return abs(current.confidence - previous.confidence) >= confidence_threshold


class ChangeFilter:
    """Decides whether a new analysis is worth forwarding to consumers.

    Small fluctuations are suppressed, but something is always forwarded at
    least every ``max_interval_ms`` so consumers never go stale.
    """

    def __init__(
        self,
        angle_threshold: float = ANGLE_CHANGE_THRESHOLD,
        confidence_threshold: float = CONFIDENCE_CHANGE_THRESHOLD,
        max_interval_ms: float = MAX_UPDATE_INTERVAL_MS,
    ) -> None:
        self.angle_threshold = angle_threshold
        self.confidence_threshold = confidence_threshold
        self.max_interval_ms = max_interval_ms
        self._last: PostureAnalysis | None = None
        self._last_time_ms: float | None = None

    def should_forward(self, analysis: PostureAnalysis, now_ms: float) -> bool:
        stale = self._last_time_ms is None or (now_ms - self._last_time_ms) >= self.max_interval_ms
        changed = has_significant_change(
            analysis, self._last, self.angle_threshold, self.confidence_threshold
        )
        if not (changed or stale):
            return False
        self._last = analysis
        self._last_time_ms = now_ms
        return True

    @property
    def last_forwarded(self) -> PostureAnalysis | None:
        return self._last

    def reset(self) -> None:
        self._last = None
        self._last_time_ms = None
