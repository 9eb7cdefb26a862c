import json
from types import SimpleNamespace

import pytest

from agents import report_agent
from agents.report_agent import (
    DISCLAIMER,
    MAX_PROBLEMS,
    MAX_RECOMMENDATIONS,
    build_local_report,
    build_training_plan,
    generate_report,
    validate_report,
)
from analysis.engine import ShotFormEngine
from analysis.pose_extraction import generate_mock_pose_sequence


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeClient:
    def __init__(self, text=None, error=None):
        self.models = FakeModels(text, error)


@pytest.fixture
def result(fixed_clock):
    return ShotFormEngine(clock=fixed_clock).analyze(generate_mock_pose_sequence(1000)).to_dict()


@pytest.fixture(autouse=True)
def no_llm_env(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("SHOTFORM_USE_LLM", raising=False)


def _llm_report(**overrides):
    report = {
        "summary": "Solid base, work on the release.",
        "problems": ["Release point moves around."],
        "recommendations": ["Spot shoot from the elbow."],
        "training_plan": {
            "title": "Plan",
            "description": "Four weeks of form work.",
            "exercises": [{"name": "Spot shooting", "description": "10 in a row", "sets": 3, "reps": 10}],
            "duration_weeks": 4,
        },
        "disclaimer": DISCLAIMER,
    }
    report.update(overrides)
    return report


def test_local_report_shape(result):
    report = build_local_report(result)
    assert report["generated_by"] == "rules"
    assert report["disclaimer"] == DISCLAIMER
    assert len(report["problems"]) <= MAX_PROBLEMS
    assert len(report["recommendations"]) <= MAX_RECOMMENDATIONS
    assert len(set(report["recommendations"])) == len(report["recommendations"])
    validate_report(report)


def test_local_report_collects_findings():
    findings = {"timing": {"problems": ["p1", "p1", "p2"], "recommendations": ["r1"]}}
    report = build_local_report({"overall_score": 60, "dimensions": {}, "findings": findings})
    assert report["problems"] == ["p1", "p2"]
    assert report["recommendations"] == ["r1"]


def test_disclaimer_states_kinematic_method():
    assert "kinematic" in DISCLAIMER
    assert "±15°" in DISCLAIMER


@pytest.mark.parametrize("overall, weeks", [(90, 4), (70, 4), (60, 6), (30, 8)])
def test_training_plan_duration(overall, weeks):
    plan = build_training_plan({"overall_score": overall, "dimensions": {}})
    assert plan["duration_weeks"] == weeks


def test_training_plan_targets_weak_dimensions():
    strong = {name: {"score": 90} for name in report_agent.DIMENSION_LABELS}
    plan = build_training_plan({"overall_score": 90, "dimensions": strong})
    assert [e["name"] for e in plan["exercises"]] == ["Close-range shooting", "Slow-motion shot rehearsal"]

    weak = dict(strong, stability={"score": 40})
    plan = build_training_plan({"overall_score": 60, "dimensions": weak})
    assert plan["exercises"][0]["name"] == "Single-leg balance"


def test_validate_report_rejects_bad_fields():
    with pytest.raises(ValueError):
        validate_report([])
    with pytest.raises(ValueError):
        validate_report(_llm_report(summary=""))
    with pytest.raises(ValueError):
        validate_report(_llm_report(problems="not a list"))
    with pytest.raises(ValueError):
        validate_report(_llm_report(training_plan={"title": "x", "description": "y", "exercises": [], "duration_weeks": 4}))
    plan = _llm_report()["training_plan"]
    with pytest.raises(ValueError):
        validate_report(_llm_report(training_plan=dict(plan, duration_weeks=True)))


def test_validate_report_caps_lists():
    report = validate_report(_llm_report(problems=[f"p{i}" for i in range(9)]))
    assert len(report["problems"]) == MAX_PROBLEMS


def test_gemini_report_used_when_valid(result):
    client = FakeClient(text="```json\n" + json.dumps(_llm_report()) + "\n```")
    report = generate_report(result, use_llm=True, client=client, model="test-model")
    assert report["generated_by"] == "gemini:test-model"
    assert report["summary"] == "Solid base, work on the release."
    call = client.models.calls[0]
    assert call["model"] == "test-model"
    assert call["config"]["response_mime_type"] == "application/json"


@pytest.mark.parametrize("client", [
    FakeClient(text="not json"),
    FakeClient(text=""),
    FakeClient(text=json.dumps(_llm_report(summary=None))),
    FakeClient(error=TimeoutError("deadline exceeded")),
])
def test_gemini_failure_falls_back_to_rules(result, client, caplog):
    report = generate_report(result, use_llm=True, client=client)
    assert report["generated_by"] == "rules"
    assert "Report enrichment failed" in caplog.text


def test_llm_disabled_never_calls_client(result):
    client = FakeClient(error=AssertionError("should not be called"))
    report = generate_report(result, use_llm=False, client=client)
    assert report["generated_by"] == "rules"
    assert client.models.calls == []


def test_llm_without_api_key_falls_back(result, caplog):
    assert generate_report(result, use_llm=True)["generated_by"] == "rules"
    assert "GOOGLE_API_KEY" in caplog.text


def test_default_without_key_or_client_is_local(result):
    assert generate_report(result)["generated_by"] == "rules"


def test_env_flag_disables_llm(result, monkeypatch):
    monkeypatch.setenv("SHOTFORM_USE_LLM", "false")
    client = FakeClient(text=json.dumps(_llm_report()))
    assert generate_report(result, client=client)["generated_by"] == "rules"
