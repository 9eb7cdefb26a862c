#!/usr/bin/env python3
"""
Firestore-backed analysis task store.

One document per task in the `analysis_tasks` collection, keyed by task id.
Claims use optimistic concurrency (a precondition on the document's last
update time), so two workers can never both move the same task from pending
to processing.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

try:
    from google.api_core.exceptions import Conflict, FailedPrecondition
    from google.cloud import firestore  # type: ignore
except ImportError as exc:  # pragma: no cover - surface clearer message
    raise ImportError(
        f"Required Firestore dependencies not installed: {exc}\n"
        "Install with: pip install google-cloud-firestore"
    ) from exc

from worker.task_queue import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_STALE_AFTER_S,
    Task,
    TaskStatus,
    new_task_id,
    next_status_after_failure,
)

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "analysis_tasks"


class FirestoreTaskStore:
    """TaskStore on a Firestore collection."""

    def __init__(self, client: Any = None, collection: str = DEFAULT_COLLECTION,
                 stale_after_s: float = DEFAULT_STALE_AFTER_S, max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 clock: Optional[Callable[[], float]] = None) -> None:
        self.client = client or firestore.Client()
        self.collection = collection
        self.stale_after_s = stale_after_s
        self.max_attempts = max_attempts
        self.clock = clock or time.time

    def _doc(self, task_id: str) -> Any:
        return self.client.collection(self.collection).document(task_id)

    def _write(self, doc_ref: Any, data: Dict[str, Any], snap: Any = None) -> None:
        """Update with server timestamp; with `snap`, only if the document is unchanged since it was read."""
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        if snap is None:
            doc_ref.update(data)
        else:
            doc_ref.update(data, option=self.client.write_option(last_update_time=snap.update_time))

    def create(self, pose_sequence: Dict[str, Any], camera_angle: str = "side") -> Task:
        now = self.clock()
        task = Task(task_id=new_task_id(), pose_sequence=pose_sequence, camera_angle=camera_angle,
                    created_at=now, updated_at=now)
        data = task.to_dict()
        data["createdAt"] = firestore.SERVER_TIMESTAMP
        data["updatedAt"] = firestore.SERVER_TIMESTAMP
        self._doc(task.task_id).set(data)
        logger.info("Task %s created in %s", task.task_id, self.collection)
        return task

    def get(self, task_id: str) -> Optional[Task]:
        snap = self._doc(task_id).get()
        if not snap.exists:
            return None
        return Task.from_dict(snap.to_dict() or {})

    def claim(self, task_id: str) -> Optional[Task]:
        doc_ref = self._doc(task_id)
        snap = doc_ref.get()
        if not snap.exists:
            return None
        task = Task.from_dict(snap.to_dict() or {})
        if task.status != TaskStatus.PENDING:
            return None
        now = self.clock()
        task.status = TaskStatus.PROCESSING
        task.attempts += 1
        task.started_at = now
        task.updated_at = now
        try:
            self._write(doc_ref, {
                "status": task.status.value,
                "attempts": task.attempts,
                "started_at": now,
                "updated_at": now,
            }, snap=snap)
        except (FailedPrecondition, Conflict):
            logger.info("Task %s claimed by another worker", task_id)
            return None
        logger.info("Task %s claimed (attempt %d)", task_id, task.attempts)
        return task

    def load_pending(self) -> Optional[Task]:
        query = (
            self.client.collection(self.collection)
            .where(filter=firestore.FieldFilter("status", "==", TaskStatus.PENDING.value))
            .order_by("created_at")
            .limit(10)
        )
        for snap in query.stream():
            task = self.claim(snap.id)
            if task is not None:
                return task
        return None

    def save(self, task_id: str, result: Dict[str, Any]) -> Task:
        doc_ref = self._doc(task_id)
        snap = doc_ref.get()
        if not snap.exists:
            raise KeyError(f"Task not found: {task_id}")
        task = Task.from_dict(snap.to_dict() or {})
        task.status = TaskStatus.COMPLETED
        task.result = result
        task.error = None
        task.updated_at = self.clock()
        self._write(doc_ref, {
            "status": task.status.value,
            "result": result,
            "error": None,
            "updated_at": task.updated_at,
            "completedAt": firestore.SERVER_TIMESTAMP,
        })
        logger.info("Task %s completed", task_id)
        return task

    def mark_failed(self, task_id: str, reason: str, retryable: bool = True) -> Task:
        doc_ref = self._doc(task_id)
        snap = doc_ref.get()
        if not snap.exists:
            raise KeyError(f"Task not found: {task_id}")
        task = Task.from_dict(snap.to_dict() or {})
        task.status = next_status_after_failure(task, retryable, self.max_attempts)
        task.error = reason
        task.updated_at = self.clock()
        self._write(doc_ref, {"status": task.status.value, "error": reason, "updated_at": task.updated_at})
        logger.info("Task %s -> %s after attempt %d: %s", task_id, task.status.value, task.attempts, reason)
        return task

    def requeue_stale(self, now: Optional[float] = None) -> List[Task]:
        now = self.clock() if now is None else now
        query = self.client.collection(self.collection).where(
            filter=firestore.FieldFilter("status", "==", TaskStatus.PROCESSING.value)
        )
        changed: List[Task] = []
        for snap in query.stream():
            task = Task.from_dict(snap.to_dict() or {})
            if task.started_at is None or now - task.started_at <= self.stale_after_s:
                continue
            task.status = next_status_after_failure(task, True, self.max_attempts)
            task.error = f"Processing timed out after {self.stale_after_s:.0f}s"
            task.updated_at = now
            try:
                self._write(snap.reference, {
                    "status": task.status.value,
                    "error": task.error,
                    "updated_at": now,
                }, snap=snap)
            except (FailedPrecondition, Conflict):
                # finished or reclaimed meanwhile
                continue
            logger.warning("Stale task %s -> %s", task.task_id, task.status.value)
            changed.append(task)
        return changed
