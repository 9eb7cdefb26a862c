#!/usr/bin/env python3
"""Worker service for shot-form analysis tasks.

Accepts pose sequences (JSON) over HTTP, queues them as tasks and processes
each one: validate the sequence, run `analysis.engine.ShotFormEngine`, attach
a coaching report from `agents.report_agent.generate_report`, persist.

Tasks can also be triggered by Pub/Sub push messages carrying
`{ "taskId": "..." }` in the data payload. A push whose task is left pending
for another attempt is answered with 500 so Pub/Sub redelivers it. Requeuing
stale tasks drains the pending queue in the background.

Environment variables:
- SHOTFORM_TASK_BACKEND: `memory` (default) or `firestore`
- SHOTFORM_STALE_AFTER_S: seconds before a processing task is requeued (default 300)
- SHOTFORM_MAX_ATTEMPTS: attempts before a task fails permanently (default 3)
- GOOGLE_API_KEY: enables Gemini report enrichment
- PORT: listen port when run directly (default 8080)
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import replace
from typing import Any, Callable, Dict, List, Literal, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from analysis.engine import ShotFormEngine
from analysis.pose_extraction import estimate_capture_quality
from analysis.pose_types import InvalidPoseSequenceError, PoseSequence
from utils.config import configure_logging, get_env_float, get_env_int, load_env
from worker.task_queue import InMemoryTaskStore, Task, TaskStatus, TaskStore

logger = logging.getLogger(__name__)

CameraAngleName = Literal["side", "front", "other"]


class AnalysisRequest(BaseModel):
    pose_sequence: Dict[str, Any]
    camera_angle: CameraAngleName = "side"


class Resolution(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class QualityRequest(BaseModel):
    camera_angle: CameraAngleName = "side"
    lighting_condition: Literal["good", "moderate", "poor"] = "good"
    resolution: Optional[Resolution] = None
    video_duration: Optional[float] = None


def build_store_from_env() -> TaskStore:
    backend = (os.getenv("SHOTFORM_TASK_BACKEND") or "memory").lower()
    stale_after = get_env_float("SHOTFORM_STALE_AFTER_S", 300.0)
    max_attempts = get_env_int("SHOTFORM_MAX_ATTEMPTS", 3)
    if backend == "firestore":
        from utils.firestore_tasks import FirestoreTaskStore

        return FirestoreTaskStore(stale_after_s=stale_after, max_attempts=max_attempts)
    if backend != "memory":
        raise RuntimeError(f"Unknown SHOTFORM_TASK_BACKEND: {backend}")
    return InMemoryTaskStore(stale_after_s=stale_after, max_attempts=max_attempts)


def _default_report(result: Dict[str, Any]) -> Dict[str, Any]:
    from agents.report_agent import generate_report

    return generate_report(result)


def _status_payload(task: Task) -> Dict[str, Any]:
    return {
        "task_id": task.task_id,
        "status": task.status.value,
        "attempts": task.attempts,
        "error": task.error,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


class AnalysisWorker:
    """Runs one claimed task end to end and records the outcome in the store."""

    def __init__(self, store: TaskStore, engine: ShotFormEngine,
                 report_fn: Callable[[Dict[str, Any]], Dict[str, Any]]) -> None:
        self.store = store
        self.engine = engine
        self.report_fn = report_fn

    def process_task(self, task_id: str) -> Optional[Task]:
        task = self.store.claim(task_id)
        if task is None:
            logger.info("Task %s not claimable (missing or not pending)", task_id)
            return None
        return self._run(task)

    def process_next(self) -> Optional[Task]:
        task = self.store.load_pending()
        if task is None:
            return None
        return self._run(task)

    def drain(self, limit: int = 100) -> List[Task]:
        """Process pending tasks oldest first until none are left or `limit` runs happened."""
        done: List[Task] = []
        while len(done) < limit:
            task = self.process_next()
            if task is None:
                break
            done.append(task)
        if done:
            logger.info("Drained %d pending task(s)", len(done))
        return done

    def _run(self, task: Task) -> Task:
        logger.info("Processing task %s (%s view, attempt %d)", task.task_id, task.camera_angle, task.attempts)
        try:
            sequence = PoseSequence.from_dict(task.pose_sequence)
            result = self.engine.analyze(sequence, task.camera_angle)
            report = self.report_fn(result.to_dict())
            payload = replace(result, ai_report=report).to_dict()
        except InvalidPoseSequenceError as exc:
            logger.error("Task %s rejected: %s", task.task_id, exc)
            return self.store.mark_failed(task.task_id, str(exc), retryable=False)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Task %s failed: %s", task.task_id, exc)
            return self.store.mark_failed(task.task_id, str(exc), retryable=True)
        return self.store.save(task.task_id, payload)


def create_app(store: Optional[TaskStore] = None, engine: Optional[ShotFormEngine] = None,
               report_fn: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None) -> FastAPI:
    store = store if store is not None else build_store_from_env()
    worker = AnalysisWorker(store, engine or ShotFormEngine(), report_fn or _default_report)

    app = FastAPI(title="Shot-form analysis worker")
    app.state.store = store
    app.state.worker = worker

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/analyses", status_code=202)
    async def submit_analysis(body: AnalysisRequest, background: BackgroundTasks) -> Dict[str, Any]:
        task = store.create(body.pose_sequence, body.camera_angle)
        background.add_task(worker.process_task, task.task_id)
        return {"task_id": task.task_id, "status": task.status.value}

    @app.get("/api/analyses/{task_id}/status")
    async def analysis_status(task_id: str) -> Dict[str, Any]:
        task = store.get(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
        return _status_payload(task)

    @app.get("/api/analyses/{task_id}")
    async def analysis_result(task_id: str) -> Dict[str, Any]:
        task = store.get(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
        if task.status != TaskStatus.COMPLETED or task.result is None:
            raise HTTPException(status_code=409, detail=f"Task {task_id} is {task.status.value}")
        return task.result

    @app.post("/api/analyses/requeue-stale")
    async def requeue_stale(background: BackgroundTasks) -> Dict[str, Any]:
        changed = store.requeue_stale()
        background.add_task(worker.drain)
        return {"tasks": [{"task_id": t.task_id, "status": t.status.value} for t in changed]}

    @app.post("/api/quality-estimate")
    async def quality_estimate(body: QualityRequest) -> Dict[str, Any]:
        resolution = body.resolution.model_dump() if body.resolution else None
        return estimate_capture_quality(body.camera_angle, body.lighting_condition, resolution)

    @app.post("/")
    async def pubsub_push(request: Request) -> Response:
        """Pub/Sub push endpoint. Accepts JSON envelope.

        Expected body:
        {
          "message": {
             "data": base64("{\"taskId\": \"...\"}")
          }
        }
        """
        envelope = await request.json()
        message = envelope.get("message", {}) if isinstance(envelope, dict) else {}
        data_b64 = message.get("data")
        if not data_b64:
            return Response(status_code=204)
        try:
            payload = json.loads(base64.b64decode(data_b64).decode("utf-8"))
        except Exception:  # noqa: BLE001
            logger.error("Invalid payload: %s", data_b64)
            return Response(status_code=204)

        task_id = payload.get("taskId") if isinstance(payload, dict) else None
        if not task_id:
            logger.error("Missing taskId in payload")
            return Response(status_code=204)

        task = await run_in_threadpool(worker.process_task, task_id)
        if task is not None and task.status == TaskStatus.PENDING:
            logger.warning("Task %s left pending after attempt %d; requesting redelivery", task_id, task.attempts)
            return Response(status_code=500)
        return Response(status_code=204)

    return app


if __name__ == "__main__":
    import uvicorn  # type: ignore

    load_env()
    configure_logging()
    port = int(os.environ.get("PORT", "8080"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
