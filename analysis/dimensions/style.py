from __future__ import annotations

"""Shooting style dimension.

Classifies the shot as one-motion, two-motion or hybrid from three signals on
the dominant elbow and wrist series: a pause at the set point, release
smoothness and elbow-extension timing.
"""

from dataclasses import dataclass
from typing import List, Sequence
import logging
import math

from analysis.context import MIN_SAMPLES, MotionContext
from analysis.math_utils import abs_deltas, argmax, mean, standard_deviation
from analysis.pose_types import ShootingStyle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StyleSettings:
    pause_min_samples: int = 10
    pause_seconds: float = 0.15
    pause_min_frames: int = 3
    stable_change_deg: float = 2.0
    two_motion_elbow_change: float = 50.0
    one_motion_release_ratio: float = 0.15
    smoothness_scale: float = 10.0
    ideal_extension_gap: int = 2


DEFAULT_SETTINGS = StyleSettings()


@dataclass(frozen=True)
class StyleCharacteristics:
    has_pause_at_set_point: bool
    release_smoothness: float
    elbow_extension_timing: float


@dataclass(frozen=True)
class ShootingStyleResult:
    score: int
    style: ShootingStyle
    confidence: float
    characteristics: StyleCharacteristics


NEUTRAL_RESULT = ShootingStyleResult(
    score=50,
    style=ShootingStyle.HYBRID,
    confidence=0.5,
    characteristics=StyleCharacteristics(False, 0.5, 0.5),
)


def detect_pause(elbow: Sequence[float], fps: float, settings: StyleSettings = DEFAULT_SETTINGS) -> bool:
    """True when the elbow holds still for a run of consecutive small changes."""
    if len(elbow) < settings.pause_min_samples:
        return False
    min_pause = max(settings.pause_min_frames, int(math.floor(fps * settings.pause_seconds)))
    run = 0
    for change in abs_deltas(elbow):
        if change < settings.stable_change_deg:
            run += 1
            if run >= min_pause:
                return True
        else:
            run = 0
    return False


def release_smoothness(wrist: Sequence[float], settings: StyleSettings = DEFAULT_SETTINGS) -> float:
    if len(wrist) < MIN_SAMPLES:
        return 0.5
    change_std = standard_deviation(abs_deltas(wrist))
    return min(1.0, max(0.0, 1.0 - change_std / settings.smoothness_scale))


def _max_change_index(values: Sequence[float]) -> int:
    """Frame index at the end of the largest frame-to-frame change (0 if no change)."""
    deltas = abs_deltas(values)
    if not deltas or max(deltas) == 0.0:
        return 0
    return argmax(deltas) + 1


def extension_timing(elbow: Sequence[float], wrist: Sequence[float],
                     settings: StyleSettings = DEFAULT_SETTINGS) -> float:
    if len(elbow) < MIN_SAMPLES or len(wrist) < MIN_SAMPLES:
        return 0.5
    gap = abs(argmax(elbow) - _max_change_index(wrist))
    ideal = settings.ideal_extension_gap
    if gap <= ideal:
        return 1.0
    if gap <= ideal + 3:
        return 0.7
    if gap <= ideal + 5:
        return 0.4
    return 0.2


def release_duration(wrist: Sequence[float]) -> int:
    """Frames spanned by above-threshold wrist changes (threshold = mean + std)."""
    if len(wrist) < 3:
        return 0
    changes = abs_deltas(wrist)
    threshold = mean(changes) + standard_deviation(changes)
    above = [i for i, c in enumerate(changes) if c > threshold]
    if not above:
        return len(wrist) - 1
    return above[-1] + 1 - above[0]


def analyze(context: MotionContext, settings: StyleSettings = DEFAULT_SETTINGS) -> ShootingStyleResult:
    elbow_series = context.dominant("elbow")
    wrist_series = context.dominant("wrist")
    if (elbow_series is None or wrist_series is None
            or len(elbow_series) < MIN_SAMPLES or len(wrist_series) < MIN_SAMPLES):
        logger.debug("Style: dominant elbow/wrist lack samples, using neutral result")
        return NEUTRAL_RESULT

    elbow = list(elbow_series.angles)
    wrist = list(wrist_series.angles)
    has_pause = detect_pause(elbow, context.fps, settings)
    smoothness = release_smoothness(wrist, settings)
    timing = extension_timing(elbow, wrist, settings)
    release_ratio = release_duration(wrist) / len(context.sequence.frames)

    if has_pause and elbow_series.range > settings.two_motion_elbow_change * 0.8:
        style = ShootingStyle.TWO_MOTION
        confidence = min(0.95, 0.6 + (0.3 if smoothness < 0.5 else 0.0))
    elif not has_pause and smoothness > 0.7 and release_ratio < settings.one_motion_release_ratio * 1.5:
        style = ShootingStyle.ONE_MOTION
        confidence = min(0.95, 0.7 + (0.2 if smoothness > 0.8 else 0.0))
    else:
        style = ShootingStyle.HYBRID
        confidence = 0.6

    return ShootingStyleResult(
        score=int(round(100.0 * (0.5 * smoothness + 0.5 * timing))),
        style=style,
        confidence=round(confidence, 2),
        characteristics=StyleCharacteristics(
            has_pause_at_set_point=has_pause,
            release_smoothness=round(smoothness, 2),
            elbow_extension_timing=round(timing, 2),
        ),
    )


def recommendations(result: ShootingStyleResult) -> List[str]:
    recs: List[str] = []
    traits = result.characteristics
    if result.style == ShootingStyle.ONE_MOTION:
        recs.append(
            "Your shot is one-motion: fluid and quick to release. Keep the rhythm and make sure "
            "power carries all the way through."
        )
        if traits.release_smoothness < 0.7:
            recs.append("Smooth out the one-motion release with form shooting without a ball, feeling the legs drive the arms.")
    elif result.style == ShootingStyle.TWO_MOTION:
        recs.append(
            "Your shot is two-motion: controlled and suited to range. Hold the elbow steady at the "
            "set point so the release point repeats."
        )
        if traits.has_pause_at_set_point and traits.elbow_extension_timing < 0.6:
            recs.append("After the set-point pause, extend the elbow in one quick continuous move.")
    else:
        recs.append(
            "Your shot sits between one-motion and two-motion. Pick by distance: one-motion up close, "
            "two-motion from deep."
        )
    return recs


def problems(result: ShootingStyleResult) -> List[str]:
    if result.style == ShootingStyle.HYBRID and result.confidence < 0.6:
        return ["Shooting style could not be identified clearly."]
    return []
