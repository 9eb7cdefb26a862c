from __future__ import annotations

"""Joint angles dimension: how close each joint's mean angle sits to its optimal range."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from analysis.angle_calculator import JOINT_DEFINITIONS, JointDefinition
from analysis.context import MotionContext
from analysis.scoring import error_margin_info, score_from_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JointAngleSettings:
    kind_weights: Tuple[Tuple[str, float], ...] = (
        ("knee", 0.25), ("hip", 0.15), ("shoulder", 0.20), ("elbow", 0.25), ("wrist", 0.15),
    )
    dominant_multiplier: float = 1.5
    tolerance: float = 30.0
    deviation_threshold: float = 15.0


DEFAULT_SETTINGS = JointAngleSettings()


@dataclass(frozen=True)
class JointAngleSummary:
    mean: float
    min: float
    max: float
    optimal_range: Tuple[float, float]
    deviation_from_optimal: float


@dataclass(frozen=True)
class JointAnglesResult:
    score: int
    angles: Dict[str, JointAngleSummary]
    error_margin: Dict[str, Any]


def analyze(context: MotionContext, settings: JointAngleSettings = DEFAULT_SETTINGS,
            definitions: Optional[Mapping[Any, JointDefinition]] = None) -> JointAnglesResult:
    defs = JOINT_DEFINITIONS if definitions is None else definitions
    weights = dict(settings.kind_weights)
    angles: Dict[str, JointAngleSummary] = {}
    weighted = 0.0
    total_weight = 0.0
    for joint, definition in defs.items():
        s = context.series(joint)
        if s is None or len(s) == 0:
            continue
        low, high = definition.optimal_range
        joint_score = score_from_range(s.mean, low, high, settings.tolerance)
        weight = weights.get(joint.kind, 0.0)
        if joint.side == context.dominant_side:
            weight *= settings.dominant_multiplier
        weighted += joint_score * weight
        total_weight += weight
        angles[joint.value] = JointAngleSummary(
            mean=s.mean,
            min=s.min,
            max=s.max,
            optimal_range=definition.optimal_range,
            deviation_from_optimal=s.mean - definition.target,
        )

    if total_weight == 0.0:
        logger.debug("Joint angles: no joint produced samples, using neutral score")
        score = 50
    else:
        score = int(round(weighted / total_weight))
    return JointAnglesResult(score=score, angles=angles, error_margin=error_margin_info(context.camera_angle))


def recommendations(result: JointAnglesResult, settings: JointAngleSettings = DEFAULT_SETTINGS) -> List[str]:
    recs: List[str] = []
    for joint, summary in result.angles.items():
        dev = summary.deviation_from_optimal
        if abs(dev) > settings.deviation_threshold:
            direction = "too open" if dev > 0 else "too closed"
            low, high = summary.optimal_range
            recs.append(
                f"{joint.replace('_', ' ').capitalize()} angle is {direction} (off by {abs(dev):.1f}°); "
                f"aim for the {low:.0f}-{high:.0f}° range."
            )
    if result.score >= 80:
        recs.append("Joint angles look good overall with healthy ranges of motion; keep this shooting posture.")
    return recs


def problems(result: JointAnglesResult) -> List[str]:
    if result.score >= 70:
        return []
    return [f"Several joint angles sit outside their optimal ranges (score {result.score})."]
