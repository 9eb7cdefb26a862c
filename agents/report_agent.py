#!/usr/bin/env python3
"""Shot-form Report Agent (Gemini Flash Lite)

Turns an analysis result JSON into a coaching report:
- summary, ranked problems, recommendations
- a templated training plan
- a fixed disclaimer

A deterministic rule-based report is always built first. When enabled, Gemini
rewrites it under a JSON contract; any failure falls back to the rule-based
report.

Usage:
  python -m agents.report_agent results/analysis.json [--no-llm]
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from utils.config import configure_logging, get_env_bool, get_env_float, get_required_env, load_env
from utils.io import load_json_file
load_env()

try:
    from google import genai  # type: ignore
    from google.genai import types  # type: ignore
except Exception as e:
    raise RuntimeError("google-genai client not installed. pip install google-genai") from e

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-lite"
DEFAULT_TIMEOUT_S = 20.0
MAX_PROBLEMS = 5
MAX_RECOMMENDATIONS = 8

DIMENSION_LABELS = {
    "consistency": "consistency",
    "joint_angles": "joint angles",
    "symmetry": "symmetry",
    "shooting_style": "shooting style",
    "timing": "timing",
    "stability": "stability",
    "coordination": "coordination",
    "kinetic_chain": "kinetic chain",
}

DISCLAIMER = (
    "Important:\n"
    "1. This analysis uses computer vision; every angle carries an error margin of roughly ±15° to ±25°.\n"
    "2. Results are for reference only and are not medical or professional training advice.\n"
    "3. There is no single correct shooting form; joint angles vary by 50° or more between professional players.\n"
    "4. Mechanical changes do not guarantee a better shooting percentage; mental factors and defensive pressure matter too.\n"
    "5. If you feel pain or discomfort, consult a doctor or qualified coach.\n"
    "Method: kinematic analysis (joint positions and angles over time), not kinetic measurement of forces or torques."
)


def _score(result: Mapping[str, Any], name: str) -> float:
    dim = (result.get("dimensions") or {}).get(name) or {}
    try:
        return float(dim.get("score", 0))
    except (TypeError, ValueError):
        return 0.0


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def build_summary(result: Mapping[str, Any]) -> str:
    overall = int(result.get("overall_score", 0))
    if overall >= 85:
        summary = f"Your shooting form is excellent overall ({overall}/100)."
    elif overall >= 70:
        summary = f"Your shooting form is good ({overall}/100) with room to improve."
    elif overall >= 55:
        summary = f"Your shooting form is average ({overall}/100); targeted work will help."
    else:
        summary = f"Your shooting form needs significant work ({overall}/100); start from the fundamentals."

    strengths = [label for name, label in DIMENSION_LABELS.items() if _score(result, name) >= 75]
    weaknesses = [label for name, label in DIMENSION_LABELS.items() if _score(result, name) < 60]
    if strengths:
        summary += f" Strengths: {', '.join(strengths)}."
    if weaknesses:
        summary += f" Improve first: {', '.join(weaknesses)}."
    return summary


def build_training_plan(result: Mapping[str, Any]) -> Dict[str, Any]:
    overall = int(result.get("overall_score", 0))
    exercises: List[Dict[str, Any]] = []
    if _score(result, "consistency") < 70:
        exercises.append({"name": "Spot shooting", "description": "Shoot 10 in a row from one spot, repeating the same rhythm each time.", "sets": 3, "reps": 10})
    if _score(result, "stability") < 70:
        exercises.append({"name": "Single-leg balance", "description": "Stand on the shooting-side leg and hold balance to steady the base.", "duration": "30s x 3"})
    if _score(result, "kinetic_chain") < 70:
        exercises.append({"name": "Hip-led squats", "description": "Start each squat from the hips and feel power travel up from the legs.", "sets": 3, "reps": 10})
    if _score(result, "timing") < 70:
        exercises.append({"name": "Metronome shooting", "description": "Complete one shot every 2 seconds to a metronome to build steady rhythm.", "duration": "5 min"})
    if _score(result, "joint_angles") < 75:
        exercises.append({"name": "Mirror form holds", "description": "Hold the set point and release positions in front of a mirror, checking elbow and knee angles.", "sets": 3, "reps": 8})
    if _score(result, "symmetry") < 75:
        exercises.append({"name": "Bilateral mirror drills", "description": "Mirror each shooting movement with both sides to balance left and right.", "sets": 2, "reps": 10})
    if _score(result, "coordination") < 75:
        exercises.append({"name": "Form shooting without a ball", "description": "Rehearse the full motion slowly so hips, knees, elbow and wrist move as one.", "sets": 3, "reps": 10})
    exercises.append({"name": "Close-range shooting", "description": "Shoot one step inside the free-throw line, focusing on form over distance.", "sets": 3, "reps": 15})
    exercises.append({"name": "Slow-motion shot rehearsal", "description": "Perform the shot at half speed and pause at each phase.", "sets": 2, "reps": 10})

    if overall >= 70:
        weeks = 4
    elif overall >= 55:
        weeks = 6
    else:
        weeks = 8
    return {
        "title": "Personal training plan",
        "description": f"Targeted plan based on your analysis ({overall}/100).",
        "exercises": exercises,
        "duration_weeks": weeks,
    }


def build_local_report(result: Mapping[str, Any]) -> Dict[str, Any]:
    """Rule-based report from the scores and per-dimension findings."""
    findings = result.get("findings") or {}
    problems: List[str] = []
    recommendations: List[str] = []
    for name in DIMENSION_LABELS:
        f = findings.get(name) or {}
        problems.extend(f.get("problems") or [])
        recommendations.extend(f.get("recommendations") or [])
    return {
        "summary": build_summary(result),
        "problems": _dedupe(problems)[:MAX_PROBLEMS],
        "recommendations": _dedupe(recommendations)[:MAX_RECOMMENDATIONS],
        "training_plan": build_training_plan(result),
        "disclaimer": DISCLAIMER,
        "generated_by": "rules",
    }


def _str_list(value: Any, field: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{field}' must be a list of strings")
    return value


def validate_report(data: Any) -> Dict[str, Any]:
    """Check a model response field by field; raise ValueError on any mismatch."""
    if not isinstance(data, dict):
        raise ValueError("report must be a JSON object")
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ValueError("'summary' must be a non-empty string")
    problems = _str_list(data.get("problems"), "problems")
    recommendations = _str_list(data.get("recommendations"), "recommendations")
    disclaimer = data.get("disclaimer")
    if not isinstance(disclaimer, str) or not disclaimer.strip():
        raise ValueError("'disclaimer' must be a non-empty string")

    plan = data.get("training_plan")
    if not isinstance(plan, dict):
        raise ValueError("'training_plan' must be an object")
    for key in ("title", "description"):
        if not isinstance(plan.get(key), str):
            raise ValueError(f"'training_plan.{key}' must be a string")
    weeks = plan.get("duration_weeks")
    if not isinstance(weeks, int) or isinstance(weeks, bool) or weeks <= 0:
        raise ValueError("'training_plan.duration_weeks' must be a positive integer")
    exercises = plan.get("exercises")
    if not isinstance(exercises, list) or not exercises:
        raise ValueError("'training_plan.exercises' must be a non-empty list")
    for ex in exercises:
        if not isinstance(ex, dict) or not isinstance(ex.get("name"), str) or not isinstance(ex.get("description"), str):
            raise ValueError("each exercise needs string 'name' and 'description'")

    return {
        "summary": summary.strip(),
        "problems": problems[:MAX_PROBLEMS],
        "recommendations": recommendations[:MAX_RECOMMENDATIONS],
        "training_plan": {
            "title": plan["title"],
            "description": plan["description"],
            "exercises": exercises,
            "duration_weeks": weeks,
        },
        "disclaimer": disclaimer.strip(),
    }


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def _scorecard(result: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "overall_score": result.get("overall_score"),
        "confidence_interval": result.get("confidence_interval"),
        "camera_angle": (result.get("metadata") or {}).get("camera_angle"),
        "dimensions": result.get("dimensions"),
    }


def generate_with_gemini(result: Mapping[str, Any], client: Any, model: str, timeout_s: float) -> Dict[str, Any]:
    draft = build_local_report(result)
    system = (
        "You are a supportive basketball shooting coach. Rewrite the DRAFT report for the player using the SCORECARD.\n\n"
        "Rules:\n"
        "- Keep every number, angle and score from the draft accurate; do not invent measurements\n"
        "- This is kinematics (angles over time), never claim to measure forces\n"
        "- At most 5 problems and 8 recommendations, each one specific and actionable\n"
        "- Keep the training plan structure; adjust wording only\n\n"
        "Output ONLY a JSON object with keys: summary (string), problems (string[]), recommendations (string[]), "
        "training_plan {title, description, exercises [{name, description, sets?, reps?, duration?}], duration_weeks (int)}, "
        "disclaimer (string)."
    )
    payload = json.dumps({"SCORECARD": _scorecard(result), "DRAFT": draft}, ensure_ascii=False)
    resp = client.models.generate_content(
        model=model,
        contents=[{"role": "user", "parts": [{"text": payload}]}],
        config={
            "system_instruction": system,
            "temperature": 0.2,
            "max_output_tokens": 2048,
            "response_mime_type": "application/json",
            "http_options": types.HttpOptions(timeout=int(timeout_s * 1000)),
        },
    )
    text = (getattr(resp, "text", None) or "").strip()
    if not text:
        raise RuntimeError("Empty response from Gemini")
    report = validate_report(json.loads(_strip_fences(text)))
    report["generated_by"] = f"gemini:{model}"
    return report


def generate_report(result: Mapping[str, Any], use_llm: Optional[bool] = None, client: Any = None,
                    model: Optional[str] = None, timeout_s: Optional[float] = None) -> Dict[str, Any]:
    """Coaching report for an analysis result dict; never raises on enrichment failure."""
    api_key = os.getenv("GOOGLE_API_KEY")
    if use_llm is None:
        use_llm = get_env_bool("SHOTFORM_USE_LLM", bool(api_key) or client is not None)
    if not use_llm:
        return build_local_report(result)

    model = model or os.getenv("SHOTFORM_REPORT_MODEL") or DEFAULT_MODEL
    timeout_s = timeout_s if timeout_s is not None else get_env_float("SHOTFORM_REPORT_TIMEOUT_S", DEFAULT_TIMEOUT_S)
    try:
        if client is None:
            client = genai.Client(api_key=get_required_env("GOOGLE_API_KEY"))
        return generate_with_gemini(result, client, model, timeout_s)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Report enrichment failed (%s: %s); using rule-based report", type(exc).__name__, exc)
        return build_local_report(result)


def main() -> None:
    parser = argparse.ArgumentParser(description="Shot-form Report Agent")
    parser.add_argument("json_path", help="Path to analysis result JSON file")
    parser.add_argument("--no-llm", action="store_true", help="Skip Gemini and print the rule-based report")
    args = parser.parse_args()

    configure_logging()
    p = Path(args.json_path)
    if not p.exists():
        raise FileNotFoundError(p)
    raw = load_json_file(p)
    report = generate_report(raw, use_llm=False if args.no_llm else None)
    print(json.dumps(report, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
