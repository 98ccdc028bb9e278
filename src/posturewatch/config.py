from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from posturewatch.errors import ConfigError

MODEL_QUALITY_TIERS = ("fast", "balanced", "accurate")


@dataclass(frozen=True)
class SourceConfig:
    backend: str = "mediapipe"
    # Forwarded to the pose model as-is; the engine never looks at it.
    model_quality: str = "balanced"
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    task_model_path: str | None = None


@dataclass(frozen=True)
class MonitorConfig:
    detection_fps: float = 10.0
    # Only forward results once a baseline exists.
    require_calibration: bool = False
    angle_change_deg: float = 2.0
    confidence_change: float = 0.1
    max_update_interval_ms: float = 1000.0


@dataclass(frozen=True)
class AppConfig:
    source: SourceConfig = field(default_factory=SourceConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)


def _build(cls, section: str, raw) -> object:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown option(s) in '{section}': {', '.join(unknown)}")
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigError(f"Invalid '{section}' section: {e}") from e


def _check_unit_interval(name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} must be within [0, 1], got {value}")
    return value


def validate(config: AppConfig) -> AppConfig:
    src = config.source
    if src.model_quality not in MODEL_QUALITY_TIERS:
        raise ConfigError(
            f"model_quality must be one of {', '.join(MODEL_QUALITY_TIERS)}, got {src.model_quality!r}"
        )
    _check_unit_interval("min_detection_confidence", src.min_detection_confidence)
    _check_unit_interval("min_tracking_confidence", src.min_tracking_confidence)

    mon = config.monitor
    if float(mon.detection_fps) <= 0:
        raise ConfigError(f"detection_fps must be positive, got {mon.detection_fps}")
    if float(mon.max_update_interval_ms) <= 0:
        raise ConfigError(f"max_update_interval_ms must be positive, got {mon.max_update_interval_ms}")
    return config


def config_from_dict(doc: dict | None) -> AppConfig:
    doc = doc or {}
    unknown = sorted(set(doc) - {"source", "monitor"})
    if unknown:
        raise ConfigError(f"Unknown config section(s): {', '.join(unknown)}")
    config = AppConfig(
        source=_build(SourceConfig, "source", doc.get("source")),
        monitor=_build(MonitorConfig, "monitor", doc.get("monitor")),
    )
    return validate(config)


def load_config(config_path: Path) -> AppConfig:
    if not config_path.exists():
        return AppConfig()

    with config_path.open("r", encoding="utf-8") as f:
        try:
            doc = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(doc, dict):
        raise ConfigError(f"Top level of {config_path} must be a mapping")
    return config_from_dict(doc)
