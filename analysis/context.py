from __future__ import annotations

"""Per-analysis motion context handed to every dimension analyzer."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from analysis.angle_calculator import (
    JointAngleSeries,
    compute_all_joints,
    detect_dominant_side,
)
from analysis.pose_types import CameraAngle, JointType, PoseSequence, Side

MIN_SAMPLES = 5


@dataclass(frozen=True)
class MotionContext:
    sequence: PoseSequence
    joints: Mapping[JointType, JointAngleSeries]
    dominant_side: Side
    camera_angle: CameraAngle

    @classmethod
    def from_sequence(cls, sequence: PoseSequence, camera_angle: object = CameraAngle.SIDE,
                      dominant_side: Optional[Side] = None) -> "MotionContext":
        joints = compute_all_joints(sequence)
        side = dominant_side or detect_dominant_side(joints)
        return cls(
            sequence=sequence,
            joints=MappingProxyType(dict(joints)),
            dominant_side=side,
            camera_angle=CameraAngle.parse(camera_angle),
        )

    @property
    def fps(self) -> float:
        return self.sequence.fps

    def series(self, joint: JointType) -> Optional[JointAngleSeries]:
        return self.joints.get(joint)

    def dominant(self, kind: str) -> Optional[JointAngleSeries]:
        """Dominant-side series for a joint kind such as ``"elbow"``."""
        return self.joints.get(JointType.for_side(kind, self.dominant_side))

    def has_samples(self, joint: JointType, minimum: int = MIN_SAMPLES) -> bool:
        s = self.joints.get(joint)
        return s is not None and len(s) >= minimum

    def dominant_angles(self, kind: str, minimum: int = MIN_SAMPLES) -> Optional[list]:
        """Angles of the dominant-side joint, or None when fewer than `minimum` samples."""
        s = self.dominant(kind)
        if s is None or len(s) < minimum:
            return None
        return list(s.angles)
