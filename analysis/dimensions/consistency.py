from __future__ import annotations

"""Consistency dimension.

Measures how repeatable the dominant-side knee, elbow and wrist angles are
over the motion, using the coefficient of variation of each series.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
import logging

from analysis.context import MIN_SAMPLES, MotionContext
from analysis.math_utils import coefficient_of_variation, mean
from analysis.scoring import error_margin_info, score_from_deviation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsistencySettings:
    joint_weights: Tuple[Tuple[str, float], ...] = (("knee", 0.35), ("elbow", 0.35), ("wrist", 0.30))
    optimal_cv: float = 0.05
    worst_cv: float = 0.15
    high_cv: float = 0.08
    medium_cv: float = 0.15
    knee_std_threshold: float = 8.0
    elbow_std_threshold: float = 6.0
    wrist_std_threshold: float = 4.0


DEFAULT_SETTINGS = ConsistencySettings()


@dataclass(frozen=True)
class ConsistencyResult:
    score: int
    overall_consistency: str
    knee_angle_std: float
    elbow_angle_std: float
    wrist_angle_std: float
    error_margin: Dict[str, Any]
    details: Dict[str, List[float]] = field(default_factory=dict)


def analyze(context: MotionContext, settings: ConsistencySettings = DEFAULT_SETTINGS) -> ConsistencyResult:
    margin = error_margin_info(context.camera_angle)
    stds: Dict[str, float] = {}
    details: Dict[str, List[float]] = {}
    weighted = 0.0
    total_weight = 0.0
    cvs: List[float] = []
    for kind, weight in settings.joint_weights:
        s = context.dominant(kind)
        if s is None or len(s) < MIN_SAMPLES:
            stds[kind] = 0.0
            details[kind] = []
            continue
        cv = coefficient_of_variation(s.angles)
        cvs.append(cv)
        stds[kind] = s.std_dev
        details[kind] = list(s.angles)
        weighted += score_from_deviation(cv, settings.optimal_cv, settings.worst_cv) * weight
        total_weight += weight

    if total_weight == 0.0:
        logger.debug("Consistency: no dominant-side series with %d samples, using neutral result", MIN_SAMPLES)
        return ConsistencyResult(50, "medium", 0.0, 0.0, 0.0, margin, details)

    avg_cv = mean(cvs)
    if avg_cv <= settings.high_cv:
        label = "high"
    elif avg_cv <= settings.medium_cv:
        label = "medium"
    else:
        label = "low"

    return ConsistencyResult(
        score=int(round(weighted / total_weight)),
        overall_consistency=label,
        knee_angle_std=stds.get("knee", 0.0),
        elbow_angle_std=stds.get("elbow", 0.0),
        wrist_angle_std=stds.get("wrist", 0.0),
        error_margin=margin,
        details=details,
    )


def recommendations(result: ConsistencyResult, settings: ConsistencySettings = DEFAULT_SETTINGS) -> List[str]:
    recs: List[str] = []
    if result.knee_angle_std > settings.knee_std_threshold:
        recs.append(
            f"Knee bend varies a lot (std ±{result.knee_angle_std:.1f}°); build lower-body strength "
            "so the legs load the same way every shot."
        )
    if result.elbow_angle_std > settings.elbow_std_threshold:
        recs.append(
            f"Elbow path is unstable (std ±{result.elbow_angle_std:.1f}°); practise releasing from a "
            "fixed set point and cut down arm swing."
        )
    if result.wrist_angle_std > settings.wrist_std_threshold:
        recs.append(
            f"Wrist release point is inconsistent (std ±{result.wrist_angle_std:.1f}°); work on wrist "
            "flexibility and a repeatable flick."
        )
    if result.overall_consistency == "high":
        recs.append("Excellent repeatability. Keep the current routine and raise training intensity to push accuracy.")
    return recs


def problems(result: ConsistencyResult) -> List[str]:
    if result.overall_consistency == "high":
        return []
    return [f"Shooting motion consistency is {result.overall_consistency} (score {result.score})."]
