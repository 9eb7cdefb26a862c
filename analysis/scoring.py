"""
Shared scoring curves and error margins.

All dimension scores are produced by bounded linear interpolation between an
ideal bound (score 100) and a worst acceptable bound (score 0).
"""

from typing import Any, Dict, Mapping, Optional

from analysis.math_utils import clamp
from analysis.pose_types import CameraAngle


BASE_ERROR_DEGREES: Dict[CameraAngle, float] = {
    CameraAngle.SIDE: 15.0,
    CameraAngle.FRONT: 20.0,
    CameraAngle.OTHER: 25.0,
}

SYMMETRY_ERROR_DEGREES: Dict[CameraAngle, float] = {
    CameraAngle.SIDE: 15.0,
    CameraAngle.FRONT: 15.0,
    CameraAngle.OTHER: 20.0,
}

CONFIDENCE_PENALTY_FACTOR = 0.5

_CONDITIONS = {
    CameraAngle.SIDE: "Side view: best for joint flexion and extension angles",
    CameraAngle.FRONT: "Front view: best for left/right symmetry, less reliable for flexion depth",
    CameraAngle.OTHER: "Non-standard view: angle estimates carry the widest uncertainty",
}


def score_from_deviation(value: float, ideal: float, worst: float) -> float:
    """Map `value` linearly from 100 at `ideal` to 0 at `worst`, clamped.

    Works in either direction: with ideal < worst smaller values are better,
    with ideal > worst larger values are better.
    """
    if worst == ideal:
        return 100.0 if value == ideal else 0.0
    return clamp(100.0 - (value - ideal) / (worst - ideal) * 100.0, 0.0, 100.0)


def score_from_range(value: float, low: float, high: float, below_tolerance: float,
                     above_tolerance: Optional[float] = None) -> float:
    """100 inside [low, high]; decays linearly to 0 at `tolerance` beyond either edge."""
    if above_tolerance is None:
        above_tolerance = below_tolerance
    if value < low:
        return score_from_deviation(value, low, low - below_tolerance)
    if value > high:
        return score_from_deviation(value, high, high + above_tolerance)
    return 100.0


def error_margin(camera_angle: CameraAngle, detection_confidence: float = 1.0,
                 base: Optional[Mapping[CameraAngle, float]] = None,
                 penalty_factor: float = CONFIDENCE_PENALTY_FACTOR) -> float:
    table = BASE_ERROR_DEGREES if base is None else base
    confidence = clamp(detection_confidence, 0.0, 1.0)
    return table[CameraAngle.parse(camera_angle)] * (1.0 + (1.0 - confidence) * penalty_factor)


def error_margin_info(camera_angle: CameraAngle,
                      base: Optional[Mapping[CameraAngle, float]] = None) -> Dict[str, Any]:
    angle = CameraAngle.parse(camera_angle)
    table = BASE_ERROR_DEGREES if base is None else base
    return {"value": table[angle], "unit": "degrees", "condition": _CONDITIONS[angle]}
