import json
import math

import numpy as np

import pytest

from analysis.engine import DEFAULT_WEIGHTS, DIMENSIONS, EngineSettings, ShotFormEngine
from analysis.pose_extraction import estimate_capture_quality, generate_mock_pose_sequence
from analysis.context import MIN_SAMPLES
from analysis.pose_types import (
    LANDMARK_COUNT,
    CameraAngle,
    InvalidPoseSequenceError,
    Landmark,
    PoseFrame,
    PoseLandmark,
    PoseSequence,
)
from tests.helpers import static_sequence


@pytest.fixture
def engine(fixed_clock):
    return ShotFormEngine(clock=fixed_clock)


def test_mock_sequence_shape():
    seq = generate_mock_pose_sequence(1000)
    assert seq.total_frames == 30
    assert seq.fps == 30.0
    assert seq.duration_ms == 1000
    seq.validate()


def test_mock_sequence_is_deterministic():
    assert generate_mock_pose_sequence(500, seed=3) == generate_mock_pose_sequence(500, seed=3)


def test_analyze_mock_sequence(engine):
    result = engine.analyze(generate_mock_pose_sequence(1000), "side")
    assert 0 <= result.overall_score <= 100
    assert set(result.dimensions) == {name for name, _ in DIMENSIONS}
    low, high = result.confidence_interval
    assert 0.0 <= low <= result.overall_score <= high <= 100.0

    meta = result.metadata
    assert meta["fps"] == 30.0
    assert meta["total_frames_analyzed"] == 30
    assert meta["video_duration_ms"] == 1000
    assert meta["camera_angle"] == "side"
    assert meta["error_margins"] == {"side_view": 15.0, "front_view": 20.0, "other_view": 25.0}
    assert meta["processing_timestamp"] == "2024-01-01T00:00:00+00:00"
    assert meta["dominant_side"] in ("left", "right")


def test_overall_is_weighted_sum(engine):
    result = engine.analyze(generate_mock_pose_sequence(1200), "front")
    expected = sum(result.dimensions[name].score * w for name, w in DEFAULT_WEIGHTS.items())
    assert result.overall_score == int(round(expected))


def test_analysis_is_idempotent(engine):
    seq = generate_mock_pose_sequence(1000)
    assert engine.analyze(seq).to_dict() == engine.analyze(seq).to_dict()


def test_static_pose(engine):
    result = engine.analyze(static_sequence(30), CameraAngle.SIDE)
    assert result.dimensions["consistency"].score == 100
    assert result.dimensions["shooting_style"].style.value == "hybrid"
    assert result.detection_confidence == 0.9


def test_error_margin_widens_off_axis(engine):
    seq = static_sequence(30)
    margins = [engine.analyze(seq, angle).metadata["error_margin"] for angle in ("side", "front", "other")]
    assert margins[0] < margins[1] < margins[2]


def test_findings_cover_every_dimension(engine):
    result = engine.analyze(generate_mock_pose_sequence(1000))
    assert set(result.findings) == set(result.dimensions)
    for f in result.findings.values():
        assert set(f) == {"problems", "recommendations"}


def test_to_dict_is_json_serializable(engine):
    data = engine.analyze(generate_mock_pose_sequence(1000)).to_dict()
    decoded = json.loads(json.dumps(data))
    assert decoded["dimensions"]["timing"]["phases"].keys() == {"setup", "load", "release", "follow_through"}
    assert decoded["ai_report"] is None


def test_invalid_sequence_rejected(engine):
    with pytest.raises(InvalidPoseSequenceError):
        engine.analyze(PoseSequence.build([], 30.0))


def test_unknown_camera_angle_rejected(engine):
    with pytest.raises(ValueError):
        engine.analyze(static_sequence(10), "overhead")


def test_settings_validate_weights():
    with pytest.raises(ValueError):
        EngineSettings(weights={**DEFAULT_WEIGHTS, "consistency": 0.5})
    with pytest.raises(ValueError):
        EngineSettings(weights={"consistency": 1.0})
    bad = dict(DEFAULT_WEIGHTS)
    bad["symmetry"], bad["timing"] = -0.1, 0.3
    with pytest.raises(ValueError):
        EngineSettings(weights=bad)


def test_settings_require_every_camera_angle():
    with pytest.raises(ValueError):
        EngineSettings(base_error={CameraAngle.SIDE: 10.0})


def test_capture_quality_estimate():
    best = estimate_capture_quality("side", "good", {"width": 1920, "height": 1080})
    assert best["quality_score"] == 100
    assert best["confidence_level"] == "high"
    assert best["error_margin"] == "±15°"
    assert best["recommendations"] == []

    worst = estimate_capture_quality("other", "poor", {"width": 640, "height": 480})
    assert worst["quality_score"] == 35
    assert worst["confidence_level"] == "low"
    assert len(worst["recommendations"]) == 3


def test_infinite_duration_is_rejected_before_scoring(engine):
    data = generate_mock_pose_sequence(1000).to_dict()
    data["duration_ms"] = math.inf
    with pytest.raises(InvalidPoseSequenceError):
        engine.analyze(PoseSequence.from_dict(data))


def _random_sequence(n=30, seed=7):
    rng = np.random.default_rng(seed)
    frames = []
    for i in range(n):
        landmarks = tuple(
            Landmark(float(rng.random()), float(rng.random()), float(rng.random()) * 0.1, float(rng.random()))
            for _ in range(LANDMARK_COUNT)
        )
        frames.append(PoseFrame(landmarks=landmarks, timestamp=i / 30.0 * 1000.0))
    return PoseSequence.build(frames, 30.0)


def _left_handed_sequence(n=30):
    frames = []
    for i, frame in enumerate(static_sequence(n).frames):
        landmarks = list(frame.landmarks)
        landmarks[PoseLandmark.LEFT_INDEX] = Landmark(0.28 - 0.004 * i, 0.3 - 0.006 * i, 0.0, 0.9)
        frames.append(PoseFrame(landmarks=tuple(landmarks), timestamp=frame.timestamp))
    return PoseSequence.build(frames, 30.0)


def _truncated_mock(n):
    return PoseSequence.build(generate_mock_pose_sequence(1000).frames[:n], 30.0)


SEQUENCES = {
    "static": lambda: static_sequence(30),
    "mock_long": lambda: generate_mock_pose_sequence(2500, seed=11),
    "random": _random_sequence,
    "random_short": lambda: _random_sequence(8, seed=3),
    "truncated_min_samples": lambda: _truncated_mock(MIN_SAMPLES),
    "single_frame": lambda: _truncated_mock(1),
    "left_handed": _left_handed_sequence,
}


@pytest.mark.parametrize("name", sorted(SEQUENCES))
@pytest.mark.parametrize("camera_angle", ["side", "front", "other"])
def test_scores_and_interval_are_bounded(engine, name, camera_angle):
    result = engine.analyze(SEQUENCES[name](), camera_angle)
    for dimension in result.dimensions.values():
        assert 0 <= dimension.score <= 100
    assert 0 <= result.overall_score <= 100
    low, high = result.confidence_interval
    assert 0.0 <= low <= result.overall_score <= high <= 100.0


def test_left_handed_shooter_detected(engine):
    result = engine.analyze(_left_handed_sequence())
    assert result.metadata["dominant_side"] == "left"


def test_static_pose_scorecard_is_pinned(engine):
    result = engine.analyze(static_sequence(30), "side")
    scores = {name: d.score for name, d in result.dimensions.items()}
    assert scores == {
        "consistency": 100,
        "joint_angles": 40,
        "symmetry": 70,
        "shooting_style": 100,
        "timing": 28,
        "stability": 100,
        "coordination": 20,
        "kinetic_chain": 32,
    }
    assert result.overall_score == 66
    assert result.confidence_interval == (50.25, 81.75)
