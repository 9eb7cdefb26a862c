from __future__ import annotations

"""Joint angle time series.

Each joint is defined by three landmarks (proximal, center, distal); the
angle at the center landmark is computed per frame and gated on landmark
visibility before it contributes to the series statistics.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple
import logging

from analysis.math_utils import angle_between, mean, min_max, standard_deviation
from analysis.pose_types import JointType, PoseFrame, PoseLandmark, PoseSequence, Side

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5


@dataclass(frozen=True)
class JointDefinition:
    joint: JointType
    proximal: PoseLandmark
    center: PoseLandmark
    distal: PoseLandmark
    optimal_range: Tuple[float, float]
    target: float


@dataclass(frozen=True)
class JointAngle:
    joint: JointType
    angle: float
    confidence: float
    timestamp: float = 0.0


@dataclass(frozen=True)
class JointAngleSeries:
    joint: JointType
    angles: Tuple[float, ...]
    timestamps: Tuple[float, ...]
    mean: float
    min: float
    max: float
    std_dev: float

    @property
    def range(self) -> float:
        return self.max - self.min

    def __len__(self) -> int:
        return len(self.angles)


def _definitions() -> Dict[JointType, JointDefinition]:
    L, J = PoseLandmark, JointType
    table = [
        (J.LEFT_KNEE, L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE, (100.0, 140.0), 120.0),
        (J.RIGHT_KNEE, L.RIGHT_HIP, L.RIGHT_KNEE, L.RIGHT_ANKLE, (100.0, 140.0), 120.0),
        (J.LEFT_HIP, L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE, (80.0, 120.0), 100.0),
        (J.RIGHT_HIP, L.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_KNEE, (80.0, 120.0), 100.0),
        (J.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_SHOULDER, L.LEFT_ELBOW, (70.0, 110.0), 90.0),
        (J.RIGHT_SHOULDER, L.RIGHT_HIP, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, (70.0, 110.0), 90.0),
        (J.LEFT_ELBOW, L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST, (140.0, 180.0), 165.0),
        (J.RIGHT_ELBOW, L.RIGHT_SHOULDER, L.RIGHT_ELBOW, L.RIGHT_WRIST, (140.0, 180.0), 165.0),
        (J.LEFT_WRIST, L.LEFT_ELBOW, L.LEFT_WRIST, L.LEFT_INDEX, (150.0, 180.0), 170.0),
        (J.RIGHT_WRIST, L.RIGHT_ELBOW, L.RIGHT_WRIST, L.RIGHT_INDEX, (150.0, 180.0), 170.0),
    ]
    return {
        joint: JointDefinition(joint, prox, center, dist, rng, target)
        for joint, prox, center, dist, rng, target in table
    }


JOINT_DEFINITIONS: Mapping[JointType, JointDefinition] = _definitions()


def compute_frame_angle(frame: PoseFrame, definition: JointDefinition) -> JointAngle:
    """Angle at the joint center for one frame, or angle 0 / confidence 0 when gated out."""
    points = [frame.get(definition.proximal), frame.get(definition.center), frame.get(definition.distal)]
    if any(p is None for p in points):
        return JointAngle(definition.joint, 0.0, 0.0, frame.timestamp)
    confidence = min(p.gate_visibility for p in points)
    if confidence < MIN_CONFIDENCE:
        return JointAngle(definition.joint, 0.0, 0.0, frame.timestamp)
    angle = angle_between(points[0], points[1], points[2])
    return JointAngle(definition.joint, angle, confidence, frame.timestamp)


def compute_series(sequence: PoseSequence, definition: JointDefinition) -> JointAngleSeries:
    angles: List[float] = []
    timestamps: List[float] = []
    for frame in sequence.frames:
        sample = compute_frame_angle(frame, definition)
        if sample.confidence >= MIN_CONFIDENCE:
            angles.append(sample.angle)
            timestamps.append(sample.timestamp)
    lo, hi = min_max(angles)
    return JointAngleSeries(
        joint=definition.joint,
        angles=tuple(angles),
        timestamps=tuple(timestamps),
        mean=mean(angles),
        min=lo,
        max=hi,
        std_dev=standard_deviation(angles),
    )


def compute_all_joints(sequence: PoseSequence,
                       definitions: Optional[Mapping[JointType, JointDefinition]] = None
                       ) -> Dict[JointType, JointAngleSeries]:
    defs = JOINT_DEFINITIONS if definitions is None else definitions
    series = {joint: compute_series(sequence, d) for joint, d in defs.items()}
    logger.debug(
        "Joint samples: %s",
        ", ".join(f"{j.value}={len(s)}" for j, s in series.items()),
    )
    return series


def detect_dominant_side(series: Mapping[JointType, JointAngleSeries]) -> Side:
    """Shooting side from wrist angular range; right on ties or missing data."""
    left = series.get(JointType.LEFT_WRIST)
    right = series.get(JointType.RIGHT_WRIST)
    if left is None or right is None:
        return Side.RIGHT
    return Side.RIGHT if right.range >= left.range else Side.LEFT
