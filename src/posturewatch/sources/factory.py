from __future__ import annotations

from posturewatch.config import SourceConfig
from posturewatch.sources.base import BaseLandmarkSource


def build_source(cfg: SourceConfig | None = None) -> BaseLandmarkSource:
    cfg = cfg or SourceConfig()
    key = cfg.backend.lower()

    if key == "mediapipe":
        # Imported lazily: mediapipe pulls in its model runtime on import.
        from posturewatch.sources.mediapipe_pose import MediaPipeLandmarkSource

        return MediaPipeLandmarkSource(
            model_quality=cfg.model_quality,
            min_detection_confidence=float(cfg.min_detection_confidence),
            min_tracking_confidence=float(cfg.min_tracking_confidence),
            task_model_path=cfg.task_model_path,
        )

    raise ValueError(f"Unsupported landmark source: {cfg.backend}")
