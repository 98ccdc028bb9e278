from __future__ import annotations

import numpy as np

from posturewatch.landmarks import Landmark


class BaseLandmarkSource:
    """Pose model adapter: one BGR image in, 33 landmarks (or None) out.

    Implementations are not expected to be reentrant. Per-frame failures are
    raised as ``SourceUnavailableError``.
    """

    name = "base"

    def extract(self, frame_bgr: np.ndarray) -> list[Landmark] | None:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        return None
