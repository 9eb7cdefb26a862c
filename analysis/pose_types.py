from __future__ import annotations

"""Pose data model shared by the analysis pipeline.

A `PoseSequence` is what the pose-detection provider hands to the engine:
one `PoseFrame` per sampled video frame, each with exactly 33 landmark slots
in the MediaPipe Pose layout. A slot may be ``None`` when the detector did
not locate that point in the frame.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import math


LANDMARK_COUNT = 33


class InvalidPoseSequenceError(ValueError):
    """The pose sequence violates the detector contract and cannot be analyzed."""


class PoseLandmark(IntEnum):
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class JointType(str, Enum):
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"

    @property
    def side(self) -> Side:
        return Side.LEFT if self.value.startswith("left") else Side.RIGHT

    @property
    def kind(self) -> str:
        """Joint name without the side prefix, e.g. ``knee``."""
        return self.value.split("_", 1)[1]

    @classmethod
    def for_side(cls, kind: str, side: Side) -> "JointType":
        return cls(f"{side.value}_{kind}")


class CameraAngle(str, Enum):
    SIDE = "side"
    FRONT = "front"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "CameraAngle":
        if isinstance(value, CameraAngle):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown camera angle {value!r}; expected one of side, front, other") from None


class ShootingStyle(str, Enum):
    ONE_MOTION = "one_motion"
    TWO_MOTION = "two_motion"
    HYBRID = "hybrid"


class ShootingPhase(str, Enum):
    SETUP = "setup"
    LOAD = "load"
    RELEASE = "release"
    FOLLOW_THROUGH = "follow_through"


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @property
    def gate_visibility(self) -> float:
        """Visibility used for confidence gating; unreported counts as fully visible."""
        return 1.0 if self.visibility is None else self.visibility

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"x": self.x, "y": self.y, "z": self.z}
        if self.visibility is not None:
            data["visibility"] = self.visibility
        return data


@dataclass(frozen=True)
class PoseFrame:
    landmarks: Tuple[Optional[Landmark], ...]
    timestamp: float

    def get(self, index: int) -> Optional[Landmark]:
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None


@dataclass(frozen=True)
class PoseSequence:
    frames: Tuple[PoseFrame, ...]
    fps: float
    duration_ms: float
    total_frames: int

    @classmethod
    def build(cls, frames: Sequence[PoseFrame], fps: float, duration_ms: Optional[float] = None) -> "PoseSequence":
        """Create a sequence whose frame count and duration follow from `frames`."""
        frames = tuple(frames)
        if duration_ms is None:
            duration_ms = len(frames) / fps * 1000.0 if fps > 0 else 0.0
        return cls(frames=frames, fps=fps, duration_ms=duration_ms, total_frames=len(frames))

    def validate(self) -> "PoseSequence":
        """Check the detector contract; raise InvalidPoseSequenceError on violation."""
        if not self.frames:
            raise InvalidPoseSequenceError("Pose sequence has no frames")
        if not (isinstance(self.fps, (int, float)) and math.isfinite(self.fps) and self.fps > 0):
            raise InvalidPoseSequenceError(f"fps must be positive, got {self.fps!r}")
        if not (isinstance(self.duration_ms, (int, float)) and math.isfinite(self.duration_ms)
                and self.duration_ms >= 0):
            raise InvalidPoseSequenceError(f"duration_ms must be finite and non-negative, got {self.duration_ms!r}")
        if self.total_frames != len(self.frames):
            raise InvalidPoseSequenceError(
                f"total_frames={self.total_frames} does not match {len(self.frames)} frames"
            )
        prev_ts = -math.inf
        for i, frame in enumerate(self.frames):
            if len(frame.landmarks) != LANDMARK_COUNT:
                raise InvalidPoseSequenceError(
                    f"Frame {i} has {len(frame.landmarks)} landmarks, expected {LANDMARK_COUNT}"
                )
            if not math.isfinite(frame.timestamp):
                raise InvalidPoseSequenceError(f"Frame {i} has a non-finite timestamp")
            if frame.timestamp < prev_ts:
                raise InvalidPoseSequenceError(
                    f"Frame {i} timestamp {frame.timestamp} precedes previous {prev_ts}"
                )
            prev_ts = frame.timestamp
            for j, lm in enumerate(frame.landmarks):
                if lm is None:
                    continue
                if not all(math.isfinite(c) for c in (lm.x, lm.y, lm.z)):
                    raise InvalidPoseSequenceError(f"Frame {i} landmark {j} has non-finite coordinates")
                if lm.visibility is not None and not (0.0 <= lm.visibility <= 1.0):
                    raise InvalidPoseSequenceError(
                        f"Frame {i} landmark {j} visibility {lm.visibility} outside [0, 1]"
                    )
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PoseSequence":
        """Parse the JSON interchange form.

        Expected shape::

            {"fps": 30, "duration_ms": 1000, "total_frames": 30,
             "frames": [{"timestamp": 0, "landmarks": [{"x":..,"y":..,"z":..,"visibility":..} | null, ...]}]}

        ``duration_ms`` and ``total_frames`` default to values derived from the frames.
        """
        try:
            raw_frames = data["frames"]
            fps = float(data["fps"])
            frames: List[PoseFrame] = []
            for raw in raw_frames:
                landmarks = tuple(
                    None if lm is None else Landmark(
                        x=float(lm["x"]),
                        y=float(lm["y"]),
                        z=float(lm.get("z", 0.0)),
                        visibility=None if lm.get("visibility") is None else float(lm["visibility"]),
                    )
                    for lm in raw["landmarks"]
                )
                frames.append(PoseFrame(landmarks=landmarks, timestamp=float(raw["timestamp"])))
            total_frames = int(data.get("total_frames", len(frames)))
            duration_ms = data.get("duration_ms")
            if duration_ms is None:
                duration_ms = len(frames) / fps * 1000.0 if fps > 0 else 0.0
            return cls(frames=tuple(frames), fps=fps, duration_ms=float(duration_ms), total_frames=total_frames)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidPoseSequenceError(f"Malformed pose sequence payload: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fps": self.fps,
            "duration_ms": self.duration_ms,
            "total_frames": self.total_frames,
            "frames": [
                {
                    "timestamp": f.timestamp,
                    "landmarks": [None if lm is None else lm.to_dict() for lm in f.landmarks],
                }
                for f in self.frames
            ],
        }


def detection_confidence(sequence: PoseSequence) -> float:
    """Mean reported visibility over all landmarks in all frames (0 if none reported)."""
    total = 0.0
    count = 0
    for frame in sequence.frames:
        for lm in frame.landmarks:
            if lm is not None and lm.visibility is not None:
                total += lm.visibility
                count += 1
    return total / count if count else 0.0
