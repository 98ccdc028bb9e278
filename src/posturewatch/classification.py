"""
Posture classification.

Smoothed metrics are turned into a single verdict by walking an ordered rule
table; the first rule whose predicate holds decides the posture type and
confidence. Three tables exist and exactly one is consulted per frame:

- eyes hidden: the strongest distraction signal, overrides everything else
- calibrated: deviations from the user's own baseline
- uncalibrated: fixed clinical thresholds

Within the calibrated and uncalibrated tables forward-head posture is checked
first, then horizontal attention loss (yaw), then vertical (pitch/tilt).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from posturewatch.geometry import EyeVisibility, PostureMetrics


class PostureType(str, Enum):
    GOOD_POSTURE = "good-posture"
    SLOUCHING = "slouching"
    LOOKING_AWAY = "looking-away"
    LOOKING_DOWN = "looking-down"
    NO_PERSON = "no-person"


@dataclass(frozen=True)
class PostureThresholds:
    # Reference: https://pmc.ncbi.nlm.nih.gov/articles/PMC5446097/
    slouch_angle: float = 40.0  # CVA below this = forward head posture
    head_tilt: float = 20.0
    head_turn: float = 30.0
    deviation_multiplier: float = 1.5
    shoulder_height_deviation: float = 0.05  # fraction of frame height
    eyes_hidden_down: float = 15.0

    base_confidence: float = 0.6
    max_confidence: float = 0.95
    default_confidence: float = 0.9
    no_person_confidence: float = 0.95

    @property
    def slouch_deviation(self) -> float:
        return self.slouch_angle * self.deviation_multiplier

    @property
    def head_tilt_deviation(self) -> float:
        return self.head_tilt * self.deviation_multiplier

    @property
    def head_yaw_deviation(self) -> float:
        return self.head_turn * self.deviation_multiplier

    @property
    def head_pitch_deviation(self) -> float:
        return self.head_tilt * self.deviation_multiplier


DEFAULT_THRESHOLDS = PostureThresholds()


@dataclass(frozen=True)
class RuleContext:
    metrics: PostureMetrics
    eyes: EyeVisibility
    thresholds: PostureThresholds
    baseline: PostureMetrics | None = None
    deviation: PostureMetrics | None = None

    def scaled(self, extra: float) -> float:
        t = self.thresholds
        return min(t.max_confidence, t.base_confidence + extra)


@dataclass(frozen=True)
class Rule:
    name: str
    posture: PostureType
    applies: Callable[[RuleContext], bool]
    confidence: Callable[[RuleContext], float]


@dataclass(frozen=True)
class Verdict:
    posture: PostureType
    confidence: float
    rule: str


@dataclass(frozen=True)
class PostureAnalysis:
    type: PostureType
    confidence: float
    slouch_angle: float = 0.0
    head_tilt_angle: float = 0.0
    shoulder_alignment: float = 0.0
    shoulder_height: float = 0.0
    head_yaw: float = 0.0
    head_pitch: float = 0.0
    reason: str = ""

    @classmethod
    def from_verdict(cls, verdict: Verdict, metrics: PostureMetrics) -> "PostureAnalysis":
        return cls(type=verdict.posture, confidence=verdict.confidence, reason=verdict.rule, **metrics.as_dict())

    @property
    def metrics(self) -> PostureMetrics:
        return PostureMetrics(**{name: getattr(self, name) for name in PostureMetrics.FIELDS})

    def as_dict(self) -> dict:
        data = {"type": self.type.value, "confidence": float(self.confidence), "reason": self.reason}
        data.update(self.metrics.as_dict())
        return data


def no_person_analysis(thresholds: PostureThresholds = DEFAULT_THRESHOLDS) -> PostureAnalysis:
    return PostureAnalysis(
        type=PostureType.NO_PERSON,
        confidence=thresholds.no_person_confidence,
        reason="no_person",
    )


def _default(c: RuleContext) -> float:
    return c.thresholds.default_confidence


def _always(_c: RuleContext) -> bool:
    return True


EYES_HIDDEN_RULES: tuple[Rule, ...] = (
    Rule(
        name="eyes_hidden_head_down",
        posture=PostureType.LOOKING_DOWN,
        applies=lambda c: (
            abs(c.metrics.head_pitch) > c.thresholds.eyes_hidden_down
            or c.metrics.head_tilt_angle > c.thresholds.eyes_hidden_down
        ),
        confidence=_default,
    ),
    Rule(
        name="eyes_hidden",
        posture=PostureType.LOOKING_AWAY,
        applies=_always,
        confidence=_default,
    ),
)

CALIBRATED_RULES: tuple[Rule, ...] = (
    Rule(
        name="forward_head",
        posture=PostureType.SLOUCHING,
        applies=lambda c: (
            c.metrics.slouch_angle < c.thresholds.slouch_angle
            or c.deviation.slouch_angle > c.thresholds.slouch_deviation
        ),
        confidence=lambda c: c.scaled(
            max(c.thresholds.slouch_angle - c.metrics.slouch_angle, c.deviation.slouch_angle) / 10.0
        ),
    ),
    # Sliding down in the seat: the CVA can stay fine while the shoulders drop.
    Rule(
        name="shoulder_slip",
        posture=PostureType.SLOUCHING,
        applies=lambda c: c.deviation.shoulder_height > c.thresholds.shoulder_height_deviation,
        confidence=lambda c: c.scaled(c.deviation.shoulder_height * 10.0),
    ),
    Rule(
        name="head_turned",
        posture=PostureType.LOOKING_AWAY,
        applies=lambda c: c.deviation.head_yaw > c.thresholds.head_yaw_deviation,
        confidence=lambda c: c.scaled(c.deviation.head_yaw / 60.0),
    ),
    Rule(
        name="head_down",
        posture=PostureType.LOOKING_DOWN,
        applies=lambda c: (
            c.deviation.head_pitch > c.thresholds.head_pitch_deviation
            or c.deviation.head_tilt_angle > c.thresholds.head_tilt_deviation
        ),
        confidence=lambda c: c.scaled(max(c.deviation.head_pitch, c.deviation.head_tilt_angle) / 40.0),
    ),
    Rule(name="within_baseline", posture=PostureType.GOOD_POSTURE, applies=_always, confidence=_default),
)

UNCALIBRATED_RULES: tuple[Rule, ...] = (
    Rule(
        name="forward_head",
        posture=PostureType.SLOUCHING,
        applies=lambda c: c.metrics.slouch_angle < c.thresholds.slouch_angle,
        confidence=lambda c: c.scaled((c.thresholds.slouch_angle - c.metrics.slouch_angle) / 10.0),
    ),
    Rule(
        name="head_turned",
        posture=PostureType.LOOKING_AWAY,
        applies=lambda c: abs(c.metrics.head_yaw) > c.thresholds.head_turn,
        confidence=lambda c: c.scaled(abs(c.metrics.head_yaw) / 60.0),
    ),
    Rule(
        name="head_down",
        posture=PostureType.LOOKING_DOWN,
        applies=lambda c: c.metrics.head_tilt_angle > c.thresholds.head_tilt,
        confidence=lambda c: c.scaled(c.metrics.head_tilt_angle / 40.0),
    ),
    Rule(name="within_limits", posture=PostureType.GOOD_POSTURE, applies=_always, confidence=_default),
)


def select_rules(eyes: EyeVisibility, baseline: PostureMetrics | None) -> tuple[Rule, ...]:
    if not eyes.visible:
        return EYES_HIDDEN_RULES
    if baseline is not None:
        return CALIBRATED_RULES
    return UNCALIBRATED_RULES


def evaluate(rules: tuple[Rule, ...], ctx: RuleContext) -> Verdict:
    for rule in rules:
        if rule.applies(ctx):
            return Verdict(posture=rule.posture, confidence=float(rule.confidence(ctx)), rule=rule.name)
    # Every table ends with a catch-all rule.
    raise RuntimeError("No classification rule matched")


def classify(
    metrics: PostureMetrics,
    eyes: EyeVisibility,
    baseline: PostureMetrics | None = None,
    thresholds: PostureThresholds = DEFAULT_THRESHOLDS,
) -> Verdict:
    """Classify smoothed metrics. ``baseline`` is the calibrated snapshot, if any."""
    deviation = metrics.deviation_from(baseline) if baseline is not None else None
    ctx = RuleContext(
        metrics=metrics,
        eyes=eyes,
        thresholds=thresholds,
        baseline=baseline,
        deviation=deviation,
    )
    return evaluate(select_rules(eyes, baseline), ctx)
