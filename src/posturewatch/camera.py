from __future__ import annotations

import platform
import threading

import cv2
import numpy as np


def open_capture(source: int | str) -> cv2.VideoCapture:
    """Open a webcam index or a video file path."""
    if isinstance(source, int) and platform.system() == "Darwin":
        cap = cv2.VideoCapture(source, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video source {source!r}")
    return cap


class LatestFrame:
    """Single-slot frame holder shared by the capture loop and the monitor.

    The capture side overwrites the slot with its own copy of the frame.
    Readers get a copy of whatever is newest, or None before the first frame
    arrives.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: np.ndarray | None = None

    def put(self, frame: np.ndarray) -> None:
        with self._lock:
            self._frame = frame.copy()

    def get(self) -> np.ndarray | None:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    __call__ = get
