from __future__ import annotations

"""Timing dimension.

Segments the shot into setup, load, release and follow-through using the
deepest knee bend and the fullest elbow extension as phase boundaries, then
scores total duration, phase proportions and rhythm.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple
import logging
import math

from analysis.context import MotionContext
from analysis.math_utils import abs_deltas, argmax, argmin, clamp, coefficient_of_variation, mean
from analysis.pose_types import ShootingPhase
from analysis.scoring import score_from_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimingSettings:
    # (phase, min ratio, max ratio, weight)
    phase_bands: Tuple[Tuple[ShootingPhase, float, float, float], ...] = (
        (ShootingPhase.SETUP, 0.15, 0.25, 0.2),
        (ShootingPhase.LOAD, 0.25, 0.35, 0.3),
        (ShootingPhase.RELEASE, 0.15, 0.25, 0.3),
        (ShootingPhase.FOLLOW_THROUGH, 0.20, 0.30, 0.2),
    )
    ideal_duration_ms: Tuple[float, float] = (800.0, 2000.0)
    duration_weight: float = 0.25
    phase_weight: float = 0.60
    rhythm_weight: float = 0.15
    rhythm_cv_threshold: float = 0.5
    setup_fraction: float = 0.4


DEFAULT_SETTINGS = TimingSettings()


@dataclass(frozen=True)
class PhaseTiming:
    duration_ms: float
    percentage: int


@dataclass(frozen=True)
class TimingResult:
    score: int
    phases: Dict[ShootingPhase, PhaseTiming]
    total_duration_ms: float
    rhythm_consistency: float


def _percentage(duration: float, total: float) -> int:
    return int(round(duration / total * 100.0)) if total > 0 else 0


def neutral_result(total_duration_ms: float) -> TimingResult:
    quarter = total_duration_ms / 4.0
    return TimingResult(
        score=50,
        phases={phase: PhaseTiming(quarter, 25) for phase in ShootingPhase},
        total_duration_ms=total_duration_ms,
        rhythm_consistency=0.5,
    )


def phase_boundaries(knee: List[float], elbow: List[float],
                     settings: TimingSettings = DEFAULT_SETTINGS) -> Tuple[int, int, int]:
    """Sample indices ending setup, load and release."""
    deepest_knee = argmin(knee)
    setup_end = max(1, int(math.floor(deepest_knee * settings.setup_fraction)))
    load_end = deepest_knee
    release_end = min(argmax(elbow), len(knee) - 2)
    return setup_end, load_end, release_end


def phase_durations(boundaries: Tuple[int, int, int], total_ms: float, fps: float) -> Dict[ShootingPhase, float]:
    ms_per_frame = 1000.0 / fps
    setup_end, load_end, release_end = boundaries
    return {
        ShootingPhase.SETUP: max(0.0, setup_end * ms_per_frame),
        ShootingPhase.LOAD: max(0.0, (load_end - setup_end) * ms_per_frame),
        ShootingPhase.RELEASE: max(0.0, (release_end - load_end) * ms_per_frame),
        ShootingPhase.FOLLOW_THROUGH: max(0.0, total_ms - release_end * ms_per_frame),
    }


def rhythm_consistency(durations: Dict[ShootingPhase, float], knee: List[float], elbow: List[float],
                       settings: TimingSettings = DEFAULT_SETTINGS) -> float:
    knee_changes = abs_deltas(knee)
    elbow_changes = abs_deltas(elbow)
    phase_cv = coefficient_of_variation(list(durations.values()))
    knee_cv = coefficient_of_variation(knee_changes) if knee_changes else 1.0
    elbow_cv = coefficient_of_variation(elbow_changes) if elbow_changes else 1.0
    avg_cv = mean([phase_cv, knee_cv, elbow_cv])
    return clamp(1.0 - avg_cv / settings.rhythm_cv_threshold, 0.0, 1.0)


def analyze(context: MotionContext, settings: TimingSettings = DEFAULT_SETTINGS) -> TimingResult:
    total = context.sequence.duration_ms
    knee = context.dominant_angles("knee")
    elbow = context.dominant_angles("elbow")
    if knee is None or elbow is None:
        logger.debug("Timing: dominant knee/elbow lack samples, using neutral result")
        return neutral_result(total)

    durations = phase_durations(phase_boundaries(knee, elbow, settings), total, context.fps)

    low, high = settings.ideal_duration_ms
    duration_score = score_from_range(total, low, high, low, high + high)

    phase_block = 0.0
    for phase, lo, hi, weight in settings.phase_bands:
        ratio = durations[phase] / total if total > 0 else 0.0
        phase_block += score_from_range(ratio, lo, hi, lo, hi) * weight

    rhythm = rhythm_consistency(durations, knee, elbow, settings)
    score = (
        settings.duration_weight * duration_score
        + settings.phase_weight * phase_block
        + settings.rhythm_weight * rhythm * 100.0
    )
    return TimingResult(
        score=int(round(clamp(score, 0.0, 100.0))),
        phases={phase: PhaseTiming(d, _percentage(d, total)) for phase, d in durations.items()},
        total_duration_ms=total,
        rhythm_consistency=round(rhythm, 2),
    )


def recommendations(result: TimingResult, settings: TimingSettings = DEFAULT_SETTINGS) -> List[str]:
    recs: List[str] = []
    low, high = settings.ideal_duration_ms
    seconds = result.total_duration_ms / 1000.0
    if result.total_duration_ms < low:
        recs.append(
            f"The shot is rushed ({seconds:.2f}s); slow down so power transfers fully. "
            "Aim for 0.8-2.0 seconds."
        )
    elif result.total_duration_ms > high:
        recs.append(f"The shot is slow ({seconds:.2f}s); tighten it up so defenders cannot close out.")
    if result.phases[ShootingPhase.SETUP].percentage > 30:
        recs.append(
            f"Setup takes too long ({result.phases[ShootingPhase.SETUP].percentage}%); simplify the "
            "preparation and get into the load sooner."
        )
    if result.phases[ShootingPhase.LOAD].percentage < 20:
        recs.append(
            f"The load is too short ({result.phases[ShootingPhase.LOAD].percentage}%); sit deeper to "
            "use the legs."
        )
    if result.phases[ShootingPhase.RELEASE].percentage > 30:
        recs.append(
            f"The release phase is too long ({result.phases[ShootingPhase.RELEASE].percentage}%); "
            "speed up the release."
        )
    if result.rhythm_consistency < 0.6:
        recs.append(
            f"Rhythm is uneven ({result.rhythm_consistency * 100:.0f}% consistent); shoot in continuous "
            "sets to build a steady tempo."
        )
    return recs


def problems(result: TimingResult) -> List[str]:
    if result.score >= 65:
        return []
    return [f"Phase timing and rhythm are off (score {result.score})."]
