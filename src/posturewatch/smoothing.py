from __future__ import annotations

from collections import deque

from posturewatch.geometry import PostureMetrics

SMOOTHING_WINDOW_SIZE = 5


class SmoothingBuffer:
    """Fixed-capacity FIFO returning a simple moving average on every push."""

    def __init__(self, capacity: int = SMOOTHING_WINDOW_SIZE) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._values: deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> float:
        self._values.append(float(value))
        return sum(self._values) / len(self._values)

    def clear(self) -> None:
        self._values.clear()

    @property
    def values(self) -> tuple[float, ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)


class MetricSmoother:
    """One smoothing buffer per tracked metric, reset together."""

    def __init__(self, capacity: int = SMOOTHING_WINDOW_SIZE) -> None:
        self.buffers = {name: SmoothingBuffer(capacity) for name in PostureMetrics.FIELDS}

    def smooth(self, raw: PostureMetrics) -> PostureMetrics:
        return PostureMetrics(
            **{name: self.buffers[name].push(getattr(raw, name)) for name in PostureMetrics.FIELDS}
        )

    def reset(self) -> None:
        for buf in self.buffers.values():
            buf.clear()

    def is_empty(self) -> bool:
        return all(len(buf) == 0 for buf in self.buffers.values())
