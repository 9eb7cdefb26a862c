import pytest

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
from analysis.angle_calculator import JOINT_DEFINITIONS
from analysis.pose_types import JointType, ShootingPhase, ShootingStyle, Side
from tests.helpers import make_context

J = JointType


def _alternating(center, spread, n=10):
    return [center + (spread if i % 2 else -spread) for i in range(n)]


# consistency

def test_consistency_neutral_without_samples():
    result = consistency.analyze(make_context({}))
    assert result.score == 50
    assert result.overall_consistency == "medium"


def test_consistency_perfectly_repeatable_motion():
    ctx = make_context({J.RIGHT_KNEE: [120] * 10, J.RIGHT_ELBOW: [150] * 10, J.RIGHT_WRIST: [165] * 10})
    result = consistency.analyze(ctx)
    assert result.score == 100
    assert result.overall_consistency == "high"
    assert consistency.problems(result) == []


def test_consistency_drops_with_variation():
    steady = consistency.analyze(make_context({
        J.RIGHT_KNEE: _alternating(120, 2), J.RIGHT_ELBOW: _alternating(150, 2), J.RIGHT_WRIST: _alternating(160, 2),
    }))
    noisy = consistency.analyze(make_context({
        J.RIGHT_KNEE: _alternating(120, 20), J.RIGHT_ELBOW: _alternating(150, 20), J.RIGHT_WRIST: _alternating(160, 20),
    }))
    assert noisy.score < steady.score
    assert noisy.overall_consistency != "high"
    assert noisy.knee_angle_std == pytest.approx(20.0)
    assert any("Knee bend" in r for r in consistency.recommendations(noisy))
    assert consistency.problems(noisy)


def test_consistency_uses_dominant_side():
    ctx = make_context({J.LEFT_KNEE: [120] * 10, J.LEFT_ELBOW: [150] * 10, J.LEFT_WRIST: [165] * 10},
                       dominant=Side.LEFT)
    assert consistency.analyze(ctx).score == 100


# joint angles

def test_joint_angles_at_target_score_full():
    ctx = make_context({joint: [d.target] * 6 for joint, d in JOINT_DEFINITIONS.items()})
    result = joint_angles.analyze(ctx)
    assert result.score == 100
    assert all(s.deviation_from_optimal == 0 for s in result.angles.values())
    assert any("look good" in r for r in joint_angles.recommendations(result))


def test_joint_angles_flags_large_deviation():
    angles = {joint: [d.target] * 6 for joint, d in JOINT_DEFINITIONS.items()}
    angles[J.RIGHT_ELBOW] = [100.0] * 6
    result = joint_angles.analyze(make_context(angles))
    assert result.angles["right_elbow"].deviation_from_optimal == pytest.approx(-65.0)
    assert result.score < 100
    recs = joint_angles.recommendations(result)
    assert any("Right elbow" in r and "too closed" in r for r in recs)


def test_joint_angles_neutral_without_samples():
    result = joint_angles.analyze(make_context({}))
    assert result.score == 50
    assert result.angles == {}


# symmetry

def test_symmetry_identical_sides_score_full():
    wave = [100, 110, 120, 110, 100, 90]
    ctx = make_context({joint: wave for joint in J if joint.kind in ("knee", "elbow", "shoulder")})
    result = symmetry.analyze(ctx)
    assert result.score == 100
    assert result.left_right_balance == 100
    assert result.error_margin["value"] == 15.0


def test_symmetry_constant_series_lose_correlation_credit():
    ctx = make_context({joint: [100] * 6 for joint in J if joint.kind in ("knee", "elbow", "shoulder")})
    result = symmetry.analyze(ctx)
    assert result.knee_symmetry == 70
    assert result.score == 70
    assert result.left_right_balance == 0
    assert any("Left/right coordination" in r for r in symmetry.recommendations(result))


def test_symmetry_neutral_without_pairs():
    result = symmetry.analyze(make_context({J.LEFT_KNEE: [100] * 6}))
    assert result.knee_symmetry == 50
    assert result.score == 50
    assert result.left_right_balance == 50


# shooting style

def test_detect_pause():
    assert style.detect_pause([90.0] * 12, fps=30.0)
    assert not style.detect_pause([90.0 + 5 * i for i in range(12)], fps=30.0)
    assert not style.detect_pause([90.0] * 8, fps=30.0)


def test_release_smoothness_and_timing_defaults():
    assert style.release_smoothness([150, 151, 152, 153, 154, 155]) == 1.0
    assert style.release_smoothness([150, 151]) == 0.5
    assert style.extension_timing([1, 2], [1, 2]) == 0.5


def test_style_neutral_result_without_samples():
    result = style.analyze(make_context({}))
    assert result == style.NEUTRAL_RESULT
    assert result.style is ShootingStyle.HYBRID
    assert style.problems(result)


def test_style_two_motion():
    elbow = [90.0] * 8 + [110.0, 130.0, 150.0, 160.0, 160.0]
    wrist = [150.0, 152.0, 154.0, 156.0, 170.0, 172.0]
    result = style.analyze(make_context({J.RIGHT_ELBOW: elbow, J.RIGHT_WRIST: wrist}))
    assert result.style is ShootingStyle.TWO_MOTION
    assert result.characteristics.has_pause_at_set_point


def test_style_one_motion():
    elbow = [90.0 + 5 * i for i in range(12)]
    wrist = [150.0 + i for i in range(11)] + [168.0, 169.0]
    result = style.analyze(make_context({J.RIGHT_ELBOW: elbow, J.RIGHT_WRIST: wrist}))
    assert result.style is ShootingStyle.ONE_MOTION
    assert not result.characteristics.has_pause_at_set_point
    assert result.confidence == pytest.approx(0.9)
    assert style.problems(result) == []


# timing

def test_timing_neutral_without_samples():
    result = timing.analyze(make_context({}))
    assert result.score == 50
    assert all(p.percentage == 25 for p in result.phases.values())
    assert result.rhythm_consistency == 0.5


def test_timing_phases_follow_knee_and_elbow_extremes():
    knee = [140.0 - 3 * i for i in range(11)] + [110.0 + 3 * j for j in range(1, 20)]
    elbow = [90.0 + 3 * i for i in range(21)] + [150.0 - 2 * j for j in range(1, 10)]
    result = timing.analyze(make_context({J.RIGHT_KNEE: knee, J.RIGHT_ELBOW: elbow}))
    assert result.total_duration_ms == pytest.approx(1000.0)
    pct = {phase: t.percentage for phase, t in result.phases.items()}
    assert pct == {
        ShootingPhase.SETUP: 13,
        ShootingPhase.LOAD: 20,
        ShootingPhase.RELEASE: 33,
        ShootingPhase.FOLLOW_THROUGH: 33,
    }
    assert sum(t.duration_ms for t in result.phases.values()) == pytest.approx(1000.0)
    assert 0 <= result.score <= 100
    assert 0.0 <= result.rhythm_consistency <= 1.0


# stability

def test_stability_still_body_scores_full():
    ctx = make_context({
        J.LEFT_KNEE: [120] * 10, J.RIGHT_KNEE: [120] * 10,
        J.RIGHT_SHOULDER: [90] * 10, J.RIGHT_WRIST: [170] * 10,
    })
    result = stability.analyze(ctx)
    assert (result.score, result.base_stability, result.upper_body_stability,
            result.release_point_consistency) == (100, 100, 100, 100)
    assert any("excellent" in r for r in stability.recommendations(result))


def test_stability_neutral_without_samples():
    result = stability.analyze(make_context({}))
    assert result.score == 50


# coordination

def test_coordination_neutral_without_samples():
    result = coordination.analyze(make_context({}))
    assert result.score == 50
    assert result.joint_sync_coefficient == 0.5


def test_coordination_hip_and_knee_in_lockstep():
    wave = [100, 110, 120, 130, 120, 110]
    ctx = make_context({J.RIGHT_HIP: wave, J.RIGHT_KNEE: wave})
    result = coordination.analyze(ctx)
    assert result.hip_knee_coordination == 100
    assert result.joint_sync_coefficient == 1.0


# kinetic chain

def _step_at(k, n=15):
    return [100.0] * (k + 1) + [110.0] * (n - k - 1)


def test_acceleration_start():
    assert kinetic_chain.acceleration_start(_step_at(4)) == 4
    assert kinetic_chain.acceleration_start([100.0] * 6) == 0
    assert kinetic_chain.acceleration_start([]) == 0


def test_kinetic_chain_proximal_to_distal():
    ctx = make_context({
        J.RIGHT_HIP: _step_at(2),
        J.RIGHT_KNEE: _step_at(4),
        J.RIGHT_SHOULDER: _step_at(6),
        J.RIGHT_ELBOW: _step_at(8),
        J.RIGHT_WRIST: _step_at(10),
    })
    result = kinetic_chain.analyze(ctx)
    assert result.sequence_score == 100
    assert result.timing_score == 100
    assert result.force_transfer_efficiency == pytest.approx(0.75)
    assert result.score == 94
    assert result.phases == kinetic_chain.ChainPhases(True, True, True, True)
    assert kinetic_chain.problems(result) == []


def test_kinetic_chain_out_of_order():
    ctx = make_context({
        J.RIGHT_HIP: _step_at(10),
        J.RIGHT_KNEE: _step_at(8),
        J.RIGHT_SHOULDER: _step_at(6),
        J.RIGHT_ELBOW: _step_at(4),
        J.RIGHT_WRIST: _step_at(2),
    })
    result = kinetic_chain.analyze(ctx)
    assert result.phases.hip_initiation
    assert not result.phases.knee_follow_through
    assert not result.phases.wrist_snap
    assert result.sequence_score < 50


def test_kinetic_chain_neutral_without_samples():
    result = kinetic_chain.analyze(make_context({J.RIGHT_HIP: _step_at(2)}))
    assert result == kinetic_chain.NEUTRAL_RESULT
    assert not result.phases.hip_initiation
