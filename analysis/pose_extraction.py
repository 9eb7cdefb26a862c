#!/usr/bin/env python3
"""
Pose sequence providers.

- generate_mock_pose_sequence: deterministic synthetic shot
  (setup -> load -> release -> follow-through) used for demos and tests
- detect_video: MediaPipe Pose over a video file (needs the `pose` extra)
- estimate_capture_quality: pre-upload estimate of how reliable the analysis
  of a clip will be, from camera angle, lighting and resolution
"""

import argparse
import logging
import math
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from analysis.pose_types import (
    LANDMARK_COUNT,
    CameraAngle,
    Landmark,
    PoseFrame,
    PoseLandmark,
    PoseSequence,
    ShootingPhase,
)
from utils.io import save_json_file

try:
    import cv2
    import mediapipe as mp
    MP_AVAILABLE = True
    mp_pose = mp.solutions.pose
except Exception:
    MP_AVAILABLE = False
    mp_pose = None

logger = logging.getLogger(__name__)


def _mock_phase(progress: float) -> ShootingPhase:
    if progress < 0.2:
        return ShootingPhase.SETUP
    if progress < 0.5:
        return ShootingPhase.LOAD
    if progress < 0.7:
        return ShootingPhase.RELEASE
    return ShootingPhase.FOLLOW_THROUGH


def _mock_landmarks(phase: ShootingPhase, rng: np.random.Generator) -> List[Landmark]:
    knee_bend = {ShootingPhase.LOAD: 0.3, ShootingPhase.RELEASE: 0.15}.get(phase, 0.1)
    elbow_angle = {ShootingPhase.LOAD: 90.0, ShootingPhase.RELEASE: 150.0}.get(phase, 120.0)
    releasing = phase == ShootingPhase.RELEASE
    wrist_y = 0.2 if phase == ShootingPhase.FOLLOW_THROUGH else 0.35
    wrist_z = 0.2 if releasing else 0.0

    P = PoseLandmark
    fixed = {
        P.NOSE: (0.5, 0.15, 0.0),
        P.LEFT_SHOULDER: (0.4, 0.25, 0.0),
        P.RIGHT_SHOULDER: (0.6, 0.25, 0.0),
        P.LEFT_ELBOW: (0.35, 0.4 - elbow_angle / 1000.0, 0.0),
        P.RIGHT_ELBOW: (0.65, 0.4 - elbow_angle / 1000.0, 0.0),
        P.LEFT_WRIST: (0.5 if releasing else 0.3, wrist_y, wrist_z),
        P.RIGHT_WRIST: (0.5 if releasing else 0.7, wrist_y, wrist_z),
        P.LEFT_HIP: (0.42, 0.5 + knee_bend * 0.3, 0.0),
        P.RIGHT_HIP: (0.58, 0.5 + knee_bend * 0.3, 0.0),
        P.LEFT_KNEE: (0.4, 0.7 + knee_bend * 0.2, 0.0),
        P.RIGHT_KNEE: (0.6, 0.7 + knee_bend * 0.2, 0.0),
        P.LEFT_ANKLE: (0.4, 0.9, 0.0),
        P.RIGHT_ANKLE: (0.6, 0.9, 0.0),
    }
    landmarks: List[Landmark] = []
    for i in range(LANDMARK_COUNT):
        if i in fixed:
            x, y, z = fixed[P(i)]
            landmarks.append(Landmark(x, y, z, 1.0))
        else:
            # untracked points jitter around the body
            x = 0.3 + float(rng.random()) * 0.4
            y = 0.2 + float(rng.random()) * 0.6
            vis = 0.7 + float(rng.random()) * 0.3
            landmarks.append(Landmark(x, y, 0.0, vis))
    return landmarks


def generate_mock_pose_sequence(duration_ms: float, fps: float = 30.0, seed: int = 0) -> PoseSequence:
    """Synthetic knee-bend-then-extend, elbow-extend-then-follow-through shot.

    Same (duration_ms, fps, seed) always yields the same sequence.
    """
    rng = np.random.default_rng(seed)
    total = int(math.floor(duration_ms / 1000.0 * fps))
    frames = []
    for i in range(total):
        phase = _mock_phase(i / total)
        frames.append(PoseFrame(landmarks=tuple(_mock_landmarks(phase, rng)), timestamp=i / fps * 1000.0))
    return PoseSequence(frames=tuple(frames), fps=fps, duration_ms=duration_ms, total_frames=total)


def detect_video(video_path: str, stride: int = 1) -> PoseSequence:
    """Extract a PoseSequence from a video file with MediaPipe Pose.

    Frames where no person is found keep 33 empty landmark slots.
    """
    if not MP_AVAILABLE:
        raise RuntimeError("MediaPipe/OpenCV not installed; install the 'pose' extra to detect video")
    if stride < 1:
        raise ValueError("stride must be >= 1")

    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        cap.release()
        raise RuntimeError(f"Could not open video: {video_path}")
    fps = float(cap.get(cv2.CAP_PROP_FPS) or 30.0)
    frames: List[PoseFrame] = []
    idx = 0
    try:
        with mp_pose.Pose(static_image_mode=False, model_complexity=1, enable_segmentation=False,
                          min_detection_confidence=0.5, min_tracking_confidence=0.5) as pose:
            while True:
                ok = cap.grab()
                if not ok:
                    break
                if idx % stride != 0:
                    idx += 1
                    continue
                ok, frame_bgr = cap.retrieve()
                if not ok:
                    break
                res = pose.process(cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB))
                if res.pose_landmarks:
                    landmarks = tuple(
                        Landmark(float(lm.x), float(lm.y), float(lm.z), float(min(1.0, max(0.0, lm.visibility))))
                        for lm in res.pose_landmarks.landmark
                    )
                else:
                    landmarks = (None,) * LANDMARK_COUNT
                frames.append(PoseFrame(landmarks=landmarks, timestamp=idx / fps * 1000.0))
                idx += 1
    finally:
        cap.release()

    effective_fps = fps / stride
    logger.info("Detected %d frames from %s at %.1f fps", len(frames), video_path, effective_fps)
    return PoseSequence(
        frames=tuple(frames),
        fps=effective_fps,
        duration_ms=idx / fps * 1000.0,
        total_frames=len(frames),
    )


def estimate_capture_quality(camera_angle: Any = CameraAngle.SIDE, lighting: str = "good",
                             resolution: Optional[Mapping[str, int]] = None) -> Dict[str, Any]:
    """Predict analysis reliability before upload.

    Returns quality_score (0-100), confidence_level, error_margin label and
    capture recommendations.
    """
    angle = CameraAngle.parse(camera_angle)
    score = 70
    recs: List[str] = []

    if angle == CameraAngle.SIDE:
        score += 15
    elif angle == CameraAngle.FRONT:
        score += 5
        recs.append("A side view gives more accurate joint angles.")
    else:
        score -= 10
        recs.append("Film from the side for the best results.")

    if lighting == "good":
        score += 10
    elif lighting == "moderate":
        score += 5
        recs.append("Brighter lighting improves landmark detection.")
    else:
        score -= 15
        recs.append("Poor lighting noticeably reduces analysis accuracy.")

    if resolution:
        min_dim = min(int(resolution["width"]), int(resolution["height"]))
        if min_dim >= 1080:
            score += 5
        elif min_dim < 720:
            score -= 10
            recs.append("Record at a higher resolution (720p or better).")

    score = max(0, min(100, score))
    if score >= 80:
        level = "high"
        margin = "±15°" if angle == CameraAngle.SIDE else "±20°"
    elif score >= 60:
        level = "medium"
        margin = "±20°"
    else:
        level = "low"
        margin = "±25°+"
    return {
        "quality_score": score,
        "confidence_level": level,
        "error_margin": margin,
        "recommendations": recs,
    }


def main():
    parser = argparse.ArgumentParser(description="Extract a pose sequence JSON from a video")
    parser.add_argument("video", nargs="?", help="Path to input video")
    parser.add_argument("--mock-ms", type=float, help="Generate a mock sequence of this duration instead")
    parser.add_argument("--stride", type=int, default=1)
    parser.add_argument("--out", required=True, help="Output pose JSON path")
    args = parser.parse_args()

    if args.mock_ms:
        sequence = generate_mock_pose_sequence(args.mock_ms)
    elif args.video:
        sequence = detect_video(args.video, stride=args.stride)
    else:
        parser.error("video is required unless --mock-ms is given")
        return
    out = save_json_file(args.out, sequence.to_dict())
    print(f"Saved {sequence.total_frames} frames to {out}")


if __name__ == "__main__":
    main()
