from __future__ import annotations

import logging
import os
from pathlib import Path

import cv2

# Prefer CPU execution for broader compatibility on desktop machines.
os.environ.setdefault("MEDIAPIPE_DISABLE_GPU", "1")

import mediapipe as mp
import numpy as np

from posturewatch.errors import SourceUnavailableError
from posturewatch.landmarks import NUM_LANDMARKS, Landmark
from posturewatch.sources.base import BaseLandmarkSource

logger = logging.getLogger(__name__)

# Quality tier -> solutions model_complexity / tasks model variant.
MODEL_COMPLEXITY = {"fast": 0, "balanced": 1, "accurate": 2}
TASK_MODEL_VARIANT = {"fast": "lite", "balanced": "full", "accurate": "heavy"}


def default_task_model_path(model_quality: str) -> Path:
    variant = TASK_MODEL_VARIANT[model_quality]
    return Path(f"models/mediapipe/pose_landmarker_{variant}.task")


class MediaPipeLandmarkSource(BaseLandmarkSource):
    name = "mediapipe"

    def __init__(
        self,
        model_quality: str = "balanced",
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        task_model_path: str | None = None,
    ) -> None:
        if model_quality not in MODEL_COMPLEXITY:
            raise ValueError(f"Unsupported model quality: {model_quality}")
        self.model_quality = model_quality

        if hasattr(mp, "solutions"):
            self.backend = "solutions"
            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=MODEL_COMPLEXITY[model_quality],
                smooth_landmarks=True,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        else:
            self.backend = "tasks"
            self._init_tasks_backend(
                model_path=Path(task_model_path) if task_model_path else default_task_model_path(model_quality),
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        logger.info("MediaPipe pose loaded (backend=%s, quality=%s)", self.backend, model_quality)

    def _init_tasks_backend(
        self,
        model_path: Path,
        min_detection_confidence: float,
        min_tracking_confidence: float,
    ) -> None:
        if not model_path.exists():
            raise RuntimeError(
                f"MediaPipe Tasks model not found at: {model_path}. "
                "Download it first with scripts/download_pose_landmarker.py."
            )

        try:
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise RuntimeError(
                "Installed mediapipe package does not provide either `solutions` or tasks vision APIs."
            ) from e

        options = vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path),
                delegate=mp_python.BaseOptions.Delegate.CPU,
            ),
            running_mode=vision.RunningMode.IMAGE,
            num_poses=1,
            min_pose_detection_confidence=min_detection_confidence,
            min_pose_presence_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self.pose = vision.PoseLandmarker.create_from_options(options)
        self._mp_image_cls = mp.Image
        self._mp_image_fmt = mp.ImageFormat

    def extract(self, frame_bgr: np.ndarray) -> list[Landmark] | None:
        try:
            frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
            if self.backend == "solutions":
                results = self.pose.process(frame_rgb)
                if not results.pose_landmarks:
                    return None
                lm = results.pose_landmarks.landmark
            else:
                mp_image = self._mp_image_cls(image_format=self._mp_image_fmt.SRGB, data=frame_rgb)
                results = self.pose.detect(mp_image)
                if not results.pose_landmarks:
                    return None
                lm = results.pose_landmarks[0]
        except Exception as e:
            raise SourceUnavailableError(f"MediaPipe failed to process frame: {e}") from e

        if len(lm) != NUM_LANDMARKS:
            raise SourceUnavailableError(f"MediaPipe returned {len(lm)} landmarks, expected {NUM_LANDMARKS}")
        return [Landmark.from_obj(point) for point in lm]

    def close(self) -> None:
        if hasattr(self.pose, "close"):
            self.pose.close()
