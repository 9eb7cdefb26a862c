from __future__ import annotations

"""Symmetry dimension: left/right agreement of knee, elbow and shoulder motion."""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
import logging

from analysis.context import MIN_SAMPLES, MotionContext
from analysis.math_utils import mean, truncated_correlation
from analysis.pose_types import JointType, Side
from analysis.scoring import SYMMETRY_ERROR_DEGREES, error_margin_info, score_from_deviation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymmetrySettings:
    acceptable_difference: Tuple[Tuple[str, float], ...] = (("knee", 15.0), ("elbow", 10.0), ("shoulder", 8.0))
    pair_weights: Tuple[Tuple[str, float], ...] = (("knee", 0.30), ("elbow", 0.30), ("shoulder", 0.40))
    mean_weight: float = 0.4
    range_weight: float = 0.3
    correlation_weight: float = 0.3
    balance_pairs: Tuple[str, ...] = ("knee", "elbow")


DEFAULT_SETTINGS = SymmetrySettings()


@dataclass(frozen=True)
class SymmetryResult:
    score: int
    knee_symmetry: int
    elbow_symmetry: int
    shoulder_symmetry: int
    left_right_balance: int
    error_margin: Dict[str, Any]


def _pair(context: MotionContext, kind: str):
    left = context.series(JointType.for_side(kind, Side.LEFT))
    right = context.series(JointType.for_side(kind, Side.RIGHT))
    if left is None or right is None or len(left) < MIN_SAMPLES or len(right) < MIN_SAMPLES:
        return None
    return left, right


def _pair_score(context: MotionContext, kind: str, acceptable: float, settings: SymmetrySettings) -> float:
    pair = _pair(context, kind)
    if pair is None:
        logger.debug("Symmetry: %s pair lacks samples, using neutral score", kind)
        return 50.0
    left, right = pair
    mean_score = score_from_deviation(abs(left.mean - right.mean), 0.0, acceptable)
    range_score = score_from_deviation(abs(left.range - right.range), 0.0, acceptable)
    corr = abs(truncated_correlation(left.angles, right.angles))
    return (
        settings.mean_weight * mean_score
        + settings.range_weight * range_score
        + settings.correlation_weight * corr * 100.0
    )


def analyze(context: MotionContext, settings: SymmetrySettings = DEFAULT_SETTINGS) -> SymmetryResult:
    acceptable = dict(settings.acceptable_difference)
    pair_scores = {kind: _pair_score(context, kind, acc, settings) for kind, acc in acceptable.items()}
    total = sum(pair_scores[kind] * w for kind, w in settings.pair_weights)

    balance: List[float] = []
    for kind in settings.balance_pairs:
        pair = _pair(context, kind)
        if pair is not None:
            balance.append(abs(truncated_correlation(pair[0].angles, pair[1].angles)) * 100.0)
    balance_score = mean(balance) if balance else 50.0

    return SymmetryResult(
        score=int(round(total)),
        knee_symmetry=int(round(pair_scores["knee"])),
        elbow_symmetry=int(round(pair_scores["elbow"])),
        shoulder_symmetry=int(round(pair_scores["shoulder"])),
        left_right_balance=int(round(balance_score)),
        error_margin=error_margin_info(context.camera_angle, SYMMETRY_ERROR_DEGREES),
    )


def recommendations(result: SymmetryResult) -> List[str]:
    recs: List[str] = []
    if result.knee_symmetry < 60:
        recs.append(
            f"Lower-body symmetry is weak ({result.knee_symmetry}); strengthen the non-shooting leg "
            "to steady the base."
        )
    if result.elbow_symmetry < 60:
        recs.append(
            f"Upper-body symmetry needs work ({result.elbow_symmetry}); keep the guide arm quiet "
            "instead of swinging it through the shot."
        )
    if result.shoulder_symmetry < 70:
        recs.append(
            f"Shoulder alignment needs adjusting ({result.shoulder_symmetry}); keep both shoulders level at release."
        )
    if result.left_right_balance < 60:
        recs.append(
            f"Left/right coordination is low (balance {result.left_right_balance}%); add mirror drills "
            "for bilateral control."
        )
    if result.score >= 80:
        recs.append("Good body symmetry. Keep this posture; it is the base of a stable shot.")
    return recs


def problems(result: SymmetryResult) -> List[str]:
    if result.score >= 65:
        return []
    return [f"Left and right sides move asymmetrically (score {result.score})."]
