#!/usr/bin/env python3
from __future__ import annotations

"""
Shot-form analysis engine.

Pipeline:
- Validate the pose sequence handed over by the pose-detection provider
- Compute the ten joint-angle series and the dominant (shooting) side once
- Run the eight dimension analyzers on that shared context
- Weighted overall score plus a camera-angle error-margin confidence interval

Output: a CompleteAnalysisResult whose to_dict() is the persisted JSON.

Usage:
  python -m analysis.engine pose.json --camera-angle side --out result.json
  python -m analysis.engine --mock --out result.json
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
import argparse
import json
import logging
import sys

from analysis.context import MotionContext
from analysis.dimensions import (
    consistency,
    coordination,
    joint_angles,
    kinetic_chain,
    stability,
    style,
    symmetry,
    timing,
)
from analysis.math_utils import clamp
from analysis.pose_types import CameraAngle, PoseSequence, detection_confidence
from analysis.scoring import BASE_ERROR_DEGREES, CONFIDENCE_PENALTY_FACTOR, error_margin
from utils.config import configure_logging
from utils.io import load_json_file, save_json_file, to_jsonable

logger = logging.getLogger(__name__)

# Dimension name -> module exposing analyze / recommendations / problems
DIMENSIONS: Tuple[Tuple[str, Any], ...] = (
    ("consistency", consistency),
    ("joint_angles", joint_angles),
    ("symmetry", symmetry),
    ("shooting_style", style),
    ("timing", timing),
    ("stability", stability),
    ("coordination", coordination),
    ("kinetic_chain", kinetic_chain),
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "consistency": 0.20,
    "joint_angles": 0.15,
    "symmetry": 0.10,
    "shooting_style": 0.10,
    "timing": 0.10,
    "stability": 0.15,
    "coordination": 0.10,
    "kinetic_chain": 0.10,
}


def _default_weights() -> Dict[str, float]:
    return dict(DEFAULT_WEIGHTS)


def _default_base_error() -> Dict[CameraAngle, float]:
    return dict(BASE_ERROR_DEGREES)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EngineSettings:
    weights: Dict[str, float] = field(default_factory=_default_weights)
    base_error: Dict[CameraAngle, float] = field(default_factory=_default_base_error)
    confidence_penalty: float = CONFIDENCE_PENALTY_FACTOR
    consistency: consistency.ConsistencySettings = consistency.DEFAULT_SETTINGS
    joint_angles: joint_angles.JointAngleSettings = joint_angles.DEFAULT_SETTINGS
    symmetry: symmetry.SymmetrySettings = symmetry.DEFAULT_SETTINGS
    shooting_style: style.StyleSettings = style.DEFAULT_SETTINGS
    timing: timing.TimingSettings = timing.DEFAULT_SETTINGS
    stability: stability.StabilitySettings = stability.DEFAULT_SETTINGS
    coordination: coordination.CoordinationSettings = coordination.DEFAULT_SETTINGS
    kinetic_chain: kinetic_chain.KineticChainSettings = kinetic_chain.DEFAULT_SETTINGS

    def __post_init__(self) -> None:
        names = {name for name, _ in DIMENSIONS}
        if set(self.weights) != names:
            raise ValueError(f"Dimension weights must cover exactly {sorted(names)}")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("Dimension weights must be non-negative")
        total = sum(self.weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Dimension weights must sum to 1.0, got {total}")
        missing = [a for a in CameraAngle if a not in self.base_error]
        if missing:
            raise ValueError(f"base_error missing camera angles: {[a.value for a in missing]}")


@dataclass(frozen=True)
class CompleteAnalysisResult:
    overall_score: int
    confidence_interval: Tuple[float, float]
    detection_confidence: float
    dimensions: Dict[str, Any]
    metadata: Dict[str, Any]
    findings: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    ai_report: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


class ShotFormEngine:
    """Runs all dimension analyzers over one pose sequence."""

    def __init__(self, settings: Optional[EngineSettings] = None,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        self.settings = settings or EngineSettings()
        self.clock = clock or _utc_now

    def analyze(self, sequence: PoseSequence, camera_angle: Any = CameraAngle.SIDE) -> CompleteAnalysisResult:
        sequence.validate()
        angle = CameraAngle.parse(camera_angle)
        context = MotionContext.from_sequence(sequence, angle)

        dimensions: Dict[str, Any] = {}
        findings: Dict[str, Dict[str, List[str]]] = {}
        for name, module in DIMENSIONS:
            result = module.analyze(context, getattr(self.settings, name))
            dimensions[name] = result
            findings[name] = {
                "problems": module.problems(result),
                "recommendations": module.recommendations(result),
            }
            logger.debug("Dimension %s scored %s", name, result.score)

        weighted = sum(dimensions[name].score * self.settings.weights[name] for name, _ in DIMENSIONS)
        overall = int(round(weighted))

        confidence = detection_confidence(sequence)
        margin = error_margin(angle, confidence, self.settings.base_error, self.settings.confidence_penalty)
        interval = (
            round(clamp(overall - margin, 0.0, 100.0), 2),
            round(clamp(overall + margin, 0.0, 100.0), 2),
        )

        metadata = {
            "video_duration_ms": sequence.duration_ms,
            "fps": sequence.fps,
            "total_frames_analyzed": sequence.total_frames,
            "camera_angle": angle.value,
            "detection_confidence": round(confidence, 2),
            "dominant_side": context.dominant_side.value,
            "processing_timestamp": self.clock().isoformat(),
            "error_margins": {
                "side_view": self.settings.base_error[CameraAngle.SIDE],
                "front_view": self.settings.base_error[CameraAngle.FRONT],
                "other_view": self.settings.base_error[CameraAngle.OTHER],
            },
            "error_margin": round(margin, 2),
        }

        logger.info(
            "Analyzed %d frames (%s view, %s side): overall=%d interval=%s",
            sequence.total_frames, angle.value, context.dominant_side.value, overall, interval,
        )
        return CompleteAnalysisResult(
            overall_score=overall,
            confidence_interval=interval,
            detection_confidence=round(confidence, 2),
            dimensions=dimensions,
            metadata=metadata,
            findings=findings,
        )


def analyze(sequence: PoseSequence, camera_angle: Any = CameraAngle.SIDE) -> CompleteAnalysisResult:
    """Analyze with default settings."""
    return ShotFormEngine().analyze(sequence, camera_angle)


def main():
    parser = argparse.ArgumentParser(description="Shot-form analysis from a pose sequence JSON")
    parser.add_argument("pose_json", nargs="?", help="Path to pose sequence JSON")
    parser.add_argument("--mock", action="store_true", help="Analyze a generated mock sequence instead")
    parser.add_argument("--duration-ms", type=float, default=1000.0, help="Mock sequence duration")
    parser.add_argument("--camera-angle", default="side", choices=[a.value for a in CameraAngle])
    parser.add_argument("--out", help="Write result JSON here instead of stdout")
    args = parser.parse_args()

    configure_logging()
    if args.mock:
        from analysis.pose_extraction import generate_mock_pose_sequence

        sequence = generate_mock_pose_sequence(args.duration_ms)
    elif args.pose_json:
        sequence = PoseSequence.from_dict(load_json_file(args.pose_json))
    else:
        parser.error("pose_json is required unless --mock is given")
        return

    result = analyze(sequence, args.camera_angle)
    if args.out:
        out = save_json_file(args.out, result.to_dict())
        print(f"Saved analysis to {out}")
    else:
        json.dump(result.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
        print()


if __name__ == "__main__":
    main()
