from __future__ import annotations

"""Stability dimension: lower-body base, upper-body control and release-point steadiness."""

from dataclasses import dataclass
from typing import List
import logging

from analysis.context import MotionContext
from analysis.math_utils import argmax, standard_deviation
from analysis.pose_types import JointType
from analysis.scoring import score_from_deviation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StabilitySettings:
    base_weight: float = 0.40
    upper_weight: float = 0.35
    release_weight: float = 0.25
    knee_std_ideal: float = 5.0
    knee_std_worst: float = 15.0
    shoulder_std_ideal: float = 3.0
    shoulder_std_worst: float = 10.0
    wrist_std_ideal: float = 2.0
    wrist_std_worst: float = 8.0
    release_window: int = 2


DEFAULT_SETTINGS = StabilitySettings()


@dataclass(frozen=True)
class StabilityResult:
    score: int
    base_stability: int
    upper_body_stability: int
    release_point_consistency: int


def base_stability(context: MotionContext, settings: StabilitySettings = DEFAULT_SETTINGS) -> float:
    if not (context.has_samples(JointType.LEFT_KNEE) and context.has_samples(JointType.RIGHT_KNEE)):
        logger.debug("Stability: knee series lack samples, neutral base score")
        return 50.0
    left = context.joints[JointType.LEFT_KNEE].std_dev
    right = context.joints[JointType.RIGHT_KNEE].std_dev
    balance = 1.0 - abs(left - right) / max(left + right, 0.1)
    movement = score_from_deviation((left + right) / 2.0, settings.knee_std_ideal, settings.knee_std_worst)
    return 0.4 * balance * 100.0 + 0.6 * movement


def upper_body_stability(context: MotionContext, settings: StabilitySettings = DEFAULT_SETTINGS) -> float:
    shoulder = context.dominant_angles("shoulder")
    if shoulder is None:
        return 50.0
    return score_from_deviation(
        standard_deviation(shoulder), settings.shoulder_std_ideal, settings.shoulder_std_worst
    )


def release_point_consistency(context: MotionContext, settings: StabilitySettings = DEFAULT_SETTINGS) -> float:
    wrist = context.dominant_angles("wrist")
    if wrist is None:
        return 50.0
    peak = argmax(wrist)
    start = max(0, peak - settings.release_window)
    end = min(len(wrist) - 1, peak + settings.release_window)
    return score_from_deviation(
        standard_deviation(wrist[start:end + 1]), settings.wrist_std_ideal, settings.wrist_std_worst
    )


def analyze(context: MotionContext, settings: StabilitySettings = DEFAULT_SETTINGS) -> StabilityResult:
    base = base_stability(context, settings)
    upper = upper_body_stability(context, settings)
    release = release_point_consistency(context, settings)
    total = settings.base_weight * base + settings.upper_weight * upper + settings.release_weight * release
    return StabilityResult(
        score=int(round(total)),
        base_stability=int(round(base)),
        upper_body_stability=int(round(upper)),
        release_point_consistency=int(round(release)),
    )


def recommendations(result: StabilityResult) -> List[str]:
    recs: List[str] = []
    if result.base_stability < 60:
        recs.append(
            f"Lower-body base is unsteady ({result.base_stability}); build core strength and balance "
            "with single-leg stands and squats."
        )
    if result.upper_body_stability < 60:
        recs.append(
            f"Upper-body control needs work ({result.upper_body_stability}); keep the shoulders still, "
            "no shrugging or swaying. Try wall push-up holds."
        )
    if result.release_point_consistency < 65:
        recs.append(
            f"Release point moves around ({result.release_point_consistency}); lock in one release spot "
            "with spot shooting to build muscle memory."
        )
    if result.score >= 75:
        recs.append("Stability is excellent. Keep it up and start extending your range.")
    return recs


def problems(result: StabilityResult) -> List[str]:
    if result.score >= 65:
        return []
    return [f"Body stability during the shot is low (score {result.score})."]
