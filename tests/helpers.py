from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Iterable, Optional, Sequence

from analysis.angle_calculator import JointAngleSeries
from analysis.context import MotionContext
from analysis.math_utils import mean, min_max, standard_deviation
from analysis.pose_types import (
    LANDMARK_COUNT,
    CameraAngle,
    JointType,
    Landmark,
    PoseFrame,
    PoseLandmark,
    PoseSequence,
    Side,
)

P = PoseLandmark

STANDING_POSE = {
    P.NOSE: (0.5, 0.15),
    P.LEFT_SHOULDER: (0.4, 0.25),
    P.RIGHT_SHOULDER: (0.6, 0.25),
    P.LEFT_ELBOW: (0.35, 0.28),
    P.RIGHT_ELBOW: (0.65, 0.28),
    P.LEFT_WRIST: (0.3, 0.35),
    P.RIGHT_WRIST: (0.7, 0.35),
    P.LEFT_INDEX: (0.28, 0.3),
    P.RIGHT_INDEX: (0.72, 0.3),
    P.LEFT_HIP: (0.42, 0.53),
    P.RIGHT_HIP: (0.58, 0.53),
    P.LEFT_KNEE: (0.4, 0.72),
    P.RIGHT_KNEE: (0.6, 0.72),
    P.LEFT_ANKLE: (0.4, 0.9),
    P.RIGHT_ANKLE: (0.6, 0.9),
}

FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def standing_frame(timestamp: float = 0.0, visibility: Optional[float] = 0.9) -> PoseFrame:
    landmarks = []
    for i in range(LANDMARK_COUNT):
        x, y = STANDING_POSE.get(P(i), (0.5, 0.5))
        landmarks.append(Landmark(x, y, 0.0, visibility))
    return PoseFrame(landmarks=tuple(landmarks), timestamp=timestamp)


def static_sequence(n: int = 30, fps: float = 30.0) -> PoseSequence:
    return PoseSequence.build([standing_frame(i / fps * 1000.0) for i in range(n)], fps)


def make_series(joint: JointType, angles: Sequence[float]) -> JointAngleSeries:
    lo, hi = min_max(angles)
    return JointAngleSeries(
        joint=joint,
        angles=tuple(angles),
        timestamps=tuple(float(i) for i in range(len(angles))),
        mean=mean(angles),
        min=lo,
        max=hi,
        std_dev=standard_deviation(angles),
    )


def make_context(angles: Dict[JointType, Iterable[float]], n_frames: int = 30, fps: float = 30.0,
                 dominant: Side = Side.RIGHT, camera: CameraAngle = CameraAngle.SIDE) -> MotionContext:
    joints = {joint: make_series(joint, list(a)) for joint, a in angles.items()}
    for joint in JointType:
        joints.setdefault(joint, make_series(joint, []))
    return MotionContext(
        sequence=static_sequence(n_frames, fps),
        joints=MappingProxyType(joints),
        dominant_side=dominant,
        camera_angle=camera,
    )
