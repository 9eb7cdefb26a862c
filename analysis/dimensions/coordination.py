from __future__ import annotations

"""Coordination dimension: how well adjacent joints on the shooting side move together."""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from analysis.angle_calculator import JointAngleSeries
from analysis.context import MIN_SAMPLES, MotionContext
from analysis.math_utils import argmax, mean, truncated_correlation
from analysis.scoring import score_from_deviation

logger = logging.getLogger(__name__)

CHAIN = ("hip", "knee", "shoulder", "elbow", "wrist")


@dataclass(frozen=True)
class CoordinationSettings:
    hip_knee_weight: float = 0.5
    elbow_wrist_weight: float = 0.5
    elbow_to_wrist_delay: int = 1
    delay_tolerance: float = 5.0


DEFAULT_SETTINGS = CoordinationSettings()


@dataclass(frozen=True)
class CoordinationResult:
    score: int
    joint_sync_coefficient: float
    hip_knee_coordination: int
    elbow_wrist_coordination: int


def _usable(context: MotionContext, kind: str) -> Optional[JointAngleSeries]:
    s = context.dominant(kind)
    if s is None or len(s) < MIN_SAMPLES:
        return None
    return s


def hip_knee_coordination(context: MotionContext) -> float:
    hip, knee = _usable(context, "hip"), _usable(context, "knee")
    if hip is None or knee is None:
        return 50.0
    corr = abs(truncated_correlation(hip.angles, knee.angles))
    range_ratio = min(hip.range, knee.range) / max(hip.range, knee.range, 1.0)
    return corr * 60.0 + range_ratio * 40.0


def elbow_wrist_coordination(context: MotionContext, settings: CoordinationSettings = DEFAULT_SETTINGS) -> float:
    elbow, wrist = _usable(context, "elbow"), _usable(context, "wrist")
    if elbow is None or wrist is None:
        return 50.0
    delay = abs(argmax(wrist.angles) - argmax(elbow.angles))
    timing = score_from_deviation(abs(delay - settings.elbow_to_wrist_delay), 0.0, settings.delay_tolerance)
    flow = abs(truncated_correlation(elbow.angles, wrist.angles)) * 100.0
    return 0.5 * timing + 0.5 * flow


def sync_coefficient(context: MotionContext) -> float:
    """Mean |correlation| over adjacent pairs of the hip-to-wrist chain; 0.5 with no usable pair."""
    correlations: List[float] = []
    pairs: List[Tuple[str, str]] = list(zip(CHAIN, CHAIN[1:]))
    for a, b in pairs:
        sa, sb = _usable(context, a), _usable(context, b)
        if sa is not None and sb is not None:
            correlations.append(abs(truncated_correlation(sa.angles, sb.angles)))
    if not correlations:
        return 0.5
    return mean(correlations)


def analyze(context: MotionContext, settings: CoordinationSettings = DEFAULT_SETTINGS) -> CoordinationResult:
    hip_knee = hip_knee_coordination(context)
    elbow_wrist = elbow_wrist_coordination(context, settings)
    total = settings.hip_knee_weight * hip_knee + settings.elbow_wrist_weight * elbow_wrist
    return CoordinationResult(
        score=int(round(total)),
        joint_sync_coefficient=round(sync_coefficient(context), 2),
        hip_knee_coordination=int(round(hip_knee)),
        elbow_wrist_coordination=int(round(elbow_wrist)),
    )


def recommendations(result: CoordinationResult) -> List[str]:
    recs: List[str] = []
    if result.joint_sync_coefficient < 0.6:
        recs.append(
            f"Joints are poorly synchronised (coefficient {result.joint_sync_coefficient:.2f}); practise "
            "full-body drills that carry force from the legs up to the arms."
        )
    if result.hip_knee_coordination < 60:
        recs.append(
            f"Hip-knee coordination needs work ({result.hip_knee_coordination}); flex hips and knees "
            "together instead of only bending the knees. Try synchronised squats."
        )
    if result.elbow_wrist_coordination < 60:
        recs.append(
            f"Elbow-wrist coordination needs work ({result.elbow_wrist_coordination}); let the wrist "
            "snap flow straight out of the elbow extension. Try close-range form shooting."
        )
    if result.score >= 75:
        recs.append("Coordination is excellent; the joints work together and the chain transfers power well.")
    return recs


def problems(result: CoordinationResult) -> List[str]:
    if result.score >= 65:
        return []
    return [f"Joint coordination is weak (score {result.score})."]
