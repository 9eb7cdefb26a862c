from __future__ import annotations

"""Kinetic chain dimension.

Checks that the dominant-side joints fire proximal to distal
(hip, knee, shoulder, elbow, wrist), how evenly their velocity peaks are
spaced, and how range of motion carries from the hip down the chain.

Score blend: sequence 40 %, timing coordination 35 %, transfer efficiency 25 %.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple
import logging

from analysis.context import MotionContext
from analysis.math_utils import abs_deltas, argmax, mean
from analysis.scoring import score_from_deviation

logger = logging.getLogger(__name__)

CHAIN = ("hip", "knee", "shoulder", "elbow", "wrist")


@dataclass(frozen=True)
class KineticChainSettings:
    # frames after hip onset
    ideal_delays: Tuple[Tuple[str, int], ...] = (("knee", 2), ("shoulder", 4), ("elbow", 6), ("wrist", 8))
    ideal_range_ratios: Tuple[Tuple[str, float], ...] = (
        ("knee", 0.9), ("shoulder", 0.7), ("elbow", 0.8), ("wrist", 0.6),
    )
    acceleration_factor: float = 1.5
    delay_penalty_per_frame: float = 5.0
    delay_penalty_cap: float = 25.0
    sequence_weight: float = 0.40
    timing_weight: float = 0.35
    efficiency_weight: float = 0.25


DEFAULT_SETTINGS = KineticChainSettings()


@dataclass(frozen=True)
class ChainPhases:
    hip_initiation: bool = False
    knee_follow_through: bool = False
    elbow_extension: bool = False
    wrist_snap: bool = False


@dataclass(frozen=True)
class KineticChainResult:
    score: int
    force_transfer_efficiency: float
    sequence_score: int
    timing_score: int
    phases: ChainPhases
    acceleration_starts: Dict[str, int] = field(default_factory=dict)


NEUTRAL_RESULT = KineticChainResult(
    score=50,
    force_transfer_efficiency=0.5,
    sequence_score=50,
    timing_score=50,
    phases=ChainPhases(),
)


def acceleration_start(angles: Sequence[float], factor: float = 1.5) -> int:
    """First change index whose |Δangle| exceeds `factor` × the mean |Δangle|; 0 if none."""
    velocities = abs_deltas(angles)
    if not velocities:
        return 0
    threshold = mean(velocities) * factor
    for i, v in enumerate(velocities):
        if v > threshold:
            return i
    return 0


def peak_velocity_index(angles: Sequence[float]) -> int:
    return argmax(abs_deltas(angles))


def sequence_component(starts: Dict[str, int], settings: KineticChainSettings = DEFAULT_SETTINGS
                       ) -> Tuple[float, Dict[str, bool]]:
    fired = {"hip": True}
    for prev, cur in zip(CHAIN, CHAIN[1:]):
        fired[cur] = starts[cur] > starts[prev]
    order_score = sum(1 for ok in fired.values() if ok) / len(CHAIN) * 100.0

    penalty = 0.0
    for joint, ideal in settings.ideal_delays:
        diff = abs((starts[joint] - starts["hip"]) - ideal)
        penalty += min(settings.delay_penalty_cap, diff * settings.delay_penalty_per_frame)
    delay_score = max(0.0, 100.0 - penalty)
    return 0.6 * order_score + 0.4 * delay_score, fired


def timing_component(peaks: Sequence[int]) -> float:
    in_order = 1
    for prev, cur in zip(peaks, peaks[1:]):
        if cur > prev:
            in_order += 1
    order_score = in_order / len(peaks) * 100.0
    intervals = [cur - prev for prev, cur in zip(peaks, peaks[1:])]
    avg = mean(intervals)
    spread = mean([abs(i - avg) for i in intervals])
    uniformity = max(0.0, 100.0 - spread * 10.0)
    return 0.6 * order_score + 0.4 * uniformity


def efficiency_component(ranges: Dict[str, float], settings: KineticChainSettings = DEFAULT_SETTINGS) -> float:
    """Mean 0-100 agreement of each joint's range/hip-range ratio with its ideal."""
    hip_range = ranges["hip"]
    scores: List[float] = []
    for joint, ideal in settings.ideal_range_ratios:
        ratio = ranges[joint] / hip_range if hip_range > 0 else 0.0
        scores.append(score_from_deviation(abs(ratio - ideal), 0.0, 1.0))
    return mean(scores)


def analyze(context: MotionContext, settings: KineticChainSettings = DEFAULT_SETTINGS) -> KineticChainResult:
    angles = {kind: context.dominant_angles(kind) for kind in CHAIN}
    if any(a is None for a in angles.values()):
        logger.debug("Kinetic chain: dominant chain lacks samples, using neutral result")
        return NEUTRAL_RESULT

    starts = {kind: acceleration_start(angles[kind], settings.acceleration_factor) for kind in CHAIN}
    sequence_score, fired = sequence_component(starts, settings)
    timing_score = timing_component([peak_velocity_index(angles[kind]) for kind in CHAIN])
    efficiency = efficiency_component({kind: context.dominant(kind).range for kind in CHAIN}, settings)

    total = (
        settings.sequence_weight * sequence_score
        + settings.timing_weight * timing_score
        + settings.efficiency_weight * efficiency
    )
    return KineticChainResult(
        score=int(round(total)),
        force_transfer_efficiency=round(efficiency / 100.0, 2),
        sequence_score=int(round(sequence_score)),
        timing_score=int(round(timing_score)),
        phases=ChainPhases(
            hip_initiation=fired["hip"],
            knee_follow_through=fired["knee"],
            elbow_extension=fired["elbow"],
            wrist_snap=fired["wrist"],
        ),
        acceleration_starts=starts,
    )


def recommendations(result: KineticChainResult) -> List[str]:
    recs: List[str] = []
    phases = result.phases
    if not phases.hip_initiation:
        recs.append(
            "Hip initiation is hard to see; drive up from the hips to start the shot. "
            "Try hip-led squat jumps."
        )
    if not phases.knee_follow_through:
        recs.append(
            "Knees do not follow the hips; let them extend right after the hips fire. "
            "Try continuous squat jumps to feel the rhythm."
        )
    if not phases.elbow_extension:
        recs.append(
            "Elbow extension is mistimed; finish extending as the body reaches its highest point. "
            "Try wall release drills."
        )
    if not phases.wrist_snap:
        recs.append(
            "Wrist snap timing is off; snap immediately after the elbow locks out. "
            "Try close-range wrist flick drills."
        )
    if result.force_transfer_efficiency < 0.6:
        recs.append(
            f"Force transfer efficiency is low ({result.force_transfer_efficiency * 100:.0f}%); work on "
            "full-body coordination so power flows from the legs to the arms."
        )
    if result.score >= 75:
        recs.append("Kinetic chain is excellent: correct firing order and efficient transfer, the key to range.")
    return recs


def problems(result: KineticChainResult) -> List[str]:
    if result.score >= 65:
        return []
    return [f"Power does not flow cleanly through the kinetic chain (score {result.score})."]
