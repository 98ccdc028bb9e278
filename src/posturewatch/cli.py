from __future__ import annotations

import argparse
import logging
import time
from collections import Counter
from pathlib import Path

from posturewatch.errors import (
    ConfigError,
    InitializationError,
    PersonNotVisibleError,
    SourceUnavailableError,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="posturewatch CLI")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Monitor sitting posture from a webcam")
    watch.add_argument("--camera-id", type=int, default=0, help="Webcam device id")
    watch.add_argument("--config", default="configs/posturewatch.yaml", help="Config YAML")
    watch.add_argument("--display", action="store_true", help="Show annotated webcam window")
    watch.add_argument(
        "--calibrate-after",
        type=float,
        default=None,
        help="Calibrate automatically once N seconds have passed (retries until visible)",
    )
    watch.add_argument("--duration-minutes", type=float, default=None, help="Stop automatically after N minutes")

    analyze = sub.add_parser("analyze-video", help="Replay a recorded video through the posture monitor")
    analyze.add_argument("--input-video", required=True, help="Path to recorded video file")
    analyze.add_argument("--config", default="configs/posturewatch.yaml", help="Config YAML")
    analyze.add_argument(
        "--calibrate-at",
        type=float,
        default=None,
        help="Calibrate on the first usable frame at or after this video time (seconds)",
    )

    return parser.parse_args(argv)


def _print_update(result) -> None:
    posture = result.posture
    print(
        f"[{time.strftime('%H:%M:%S')}] {posture.type.value:<13} conf={posture.confidence:.2f} "
        f"cva={posture.slouch_angle:.1f} tilt={posture.head_tilt_angle:.1f} "
        f"yaw={posture.head_yaw:.1f} pitch={posture.head_pitch:.1f} ({posture.reason})"
    )


def _try_calibrate(monitor, image) -> bool:
    try:
        baseline = monitor.calibrate(image)
    except (PersonNotVisibleError, SourceUnavailableError) as e:
        print(f"Calibration failed: {e}")
        return False
    m = baseline.metrics
    print(
        f"Calibrated: cva={m.slouch_angle:.1f} tilt={m.head_tilt_angle:.1f} "
        f"shoulder_height={m.shoulder_height:.3f} yaw={m.head_yaw:.1f} pitch={m.head_pitch:.1f}"
    )
    return True


def watch(args: argparse.Namespace) -> int:
    import cv2

    from posturewatch.camera import LatestFrame, open_capture
    from posturewatch.config import load_config
    from posturewatch.display import draw_overlay
    from posturewatch.monitor import PostureMonitor

    config = load_config(Path(args.config))
    monitor = PostureMonitor.from_config(config)
    print(f"Loading pose model (quality={config.source.model_quality}) ...")
    try:
        monitor.initialize()
    except InitializationError as e:
        print(str(e))
        return 1
    monitor.add_listener(_print_update)

    cap = open_capture(args.camera_id)
    latest = LatestFrame()
    start = time.time()
    next_auto_calibration = args.calibrate_after

    try:
        monitor.start(latest)
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            latest.put(frame)
            elapsed = time.time() - start

            if (
                next_auto_calibration is not None
                and not monitor.is_calibrated
                and elapsed >= next_auto_calibration
            ):
                if not _try_calibrate(monitor, frame):
                    next_auto_calibration = elapsed + 1.0

            if args.display:
                shown = frame.copy()
                draw_overlay(shown, monitor.latest_result, monitor.is_calibrated)
                cv2.imshow("posturewatch", shown)
                key = cv2.waitKey(1) & 0xFF
                if key == ord("q"):
                    break
                if key == ord("c"):
                    _try_calibrate(monitor, latest.get())
                elif key == ord("x"):
                    monitor.clear_calibration()
                    print("Calibration cleared")

            if args.duration_minutes is not None and elapsed / 60.0 >= args.duration_minutes:
                break
    except KeyboardInterrupt:
        pass
    finally:
        monitor.dispose()
        cap.release()
        cv2.destroyAllWindows()
    return 0


def analyze_video_cmd(args: argparse.Namespace) -> int:
    import cv2

    from posturewatch.camera import LatestFrame, open_capture
    from posturewatch.config import load_config
    from posturewatch.monitor import PostureMonitor
    from posturewatch.sources.factory import build_source

    input_video = Path(args.input_video)
    if not input_video.exists():
        raise FileNotFoundError(f"Input video not found: {input_video}")

    config = load_config(Path(args.config))
    cap = open_capture(str(input_video))
    # Pace the change filter by video time, not wall time.
    monitor = PostureMonitor(
        source_factory=lambda: build_source(config.source),
        config=config.monitor,
        clock=lambda: cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0,
    )
    monitor.add_listener(_print_update)

    counts: Counter[str] = Counter()
    forwarded = 0
    holder = LatestFrame()
    try:
        monitor.initialize()
        monitor.start(holder, background=False)
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            holder.put(frame)
            video_s = cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
            if args.calibrate_at is not None and not monitor.is_calibrated and video_s >= args.calibrate_at:
                _try_calibrate(monitor, frame)

            if monitor.tick() is not None:
                forwarded += 1
            counts[monitor.latest_result.posture.type.value] += 1
    except InitializationError as e:
        print(str(e))
        return 1
    finally:
        monitor.dispose()
        cap.release()

    processed = sum(counts.values())
    print(f"Processed frames: {processed}  forwarded updates: {forwarded}")
    for posture_type, n in counts.most_common():
        print(f"  {posture_type:<13} {n:>6}  ({n / max(processed, 1):.1%})")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "watch":
            return watch(args)
        if args.command == "analyze-video":
            return analyze_video_cmd(args)
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        return 2
    raise ValueError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
