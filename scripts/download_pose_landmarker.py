#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path
import urllib.request

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{variant}/float16/latest/pose_landmarker_{variant}.task"
)
# Matches posturewatch.sources.mediapipe_pose.TASK_MODEL_VARIANT.
VARIANTS = {"fast": "lite", "balanced": "full", "accurate": "heavy"}


def main() -> int:
    parser = argparse.ArgumentParser(description="Download a MediaPipe pose landmarker model")
    parser.add_argument("--quality", choices=sorted(VARIANTS), default="balanced")
    parser.add_argument("--out-dir", default="models/mediapipe")
    args = parser.parse_args()

    variant = VARIANTS[args.quality]
    out_path = Path(args.out_dir) / f"pose_landmarker_{variant}.task"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    print(f"Downloading pose model ({variant}) to {out_path} ...")
    urllib.request.urlretrieve(MODEL_URL.format(variant=variant), out_path)
    print("Done.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
