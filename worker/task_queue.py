from __future__ import annotations

"""Analysis task lifecycle.

States: pending -> processing -> completed | failed. A failed attempt goes
back to pending while attempts remain. A task stuck in processing longer than
the staleness window is requeued the same way.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
import logging
import threading
import time
import uuid

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER_S = 300.0
DEFAULT_MAX_ATTEMPTS = 3


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Task:
    task_id: str
    pose_sequence: Dict[str, Any]
    camera_angle: str = "side"
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0
    started_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["status"] = TaskStatus(kwargs.get("status", TaskStatus.PENDING))
        return cls(**kwargs)


def new_task_id() -> str:
    return uuid.uuid4().hex


class TaskStore(Protocol):
    def create(self, pose_sequence: Dict[str, Any], camera_angle: str = "side") -> Task: ...

    def get(self, task_id: str) -> Optional[Task]: ...

    def claim(self, task_id: str) -> Optional[Task]: ...

    def load_pending(self) -> Optional[Task]: ...

    def save(self, task_id: str, result: Dict[str, Any]) -> Task: ...

    def mark_failed(self, task_id: str, reason: str, retryable: bool = True) -> Task: ...

    def requeue_stale(self, now: Optional[float] = None) -> List[Task]: ...


def next_status_after_failure(task: Task, retryable: bool, max_attempts: int) -> TaskStatus:
    if retryable and task.attempts < max_attempts:
        return TaskStatus.PENDING
    return TaskStatus.FAILED


class InMemoryTaskStore:
    """Thread-safe process-local store; suitable for a single worker instance and tests.

    Every method returns a snapshot of the stored task, so callers only change
    task state through the store.
    """

    def __init__(self, stale_after_s: float = DEFAULT_STALE_AFTER_S, max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 clock: Optional[Callable[[], float]] = None) -> None:
        self.stale_after_s = stale_after_s
        self.max_attempts = max_attempts
        self.clock = clock or time.time
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(f"Task not found: {task_id}")
        return task

    def create(self, pose_sequence: Dict[str, Any], camera_angle: str = "side") -> Task:
        now = self.clock()
        task = Task(task_id=new_task_id(), pose_sequence=pose_sequence, camera_angle=camera_angle,
                    created_at=now, updated_at=now)
        with self._lock:
            self._tasks[task.task_id] = task
        logger.info("Task %s created", task.task_id)
        return replace(task)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return None if task is None else replace(task)

    def _claim_locked(self, task: Task) -> Task:
        now = self.clock()
        task.status = TaskStatus.PROCESSING
        task.attempts += 1
        task.started_at = now
        task.updated_at = now
        logger.info("Task %s claimed (attempt %d)", task.task_id, task.attempts)
        return replace(task)

    def claim(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.status != TaskStatus.PENDING:
                return None
            return self._claim_locked(task)

    def load_pending(self) -> Optional[Task]:
        with self._lock:
            pending = [t for t in self._tasks.values() if t.status == TaskStatus.PENDING]
            if not pending:
                return None
            return self._claim_locked(min(pending, key=lambda t: t.created_at))

    def save(self, task_id: str, result: Dict[str, Any]) -> Task:
        with self._lock:
            task = self._require(task_id)
            task.status = TaskStatus.COMPLETED
            task.result = result
            task.error = None
            task.updated_at = self.clock()
            task = replace(task)
        logger.info("Task %s completed", task_id)
        return task

    def mark_failed(self, task_id: str, reason: str, retryable: bool = True) -> Task:
        with self._lock:
            task = self._require(task_id)
            task.status = next_status_after_failure(task, retryable, self.max_attempts)
            task.error = reason
            task.updated_at = self.clock()
            task = replace(task)
        logger.info("Task %s -> %s after attempt %d: %s", task_id, task.status.value, task.attempts, reason)
        return task

    def requeue_stale(self, now: Optional[float] = None) -> List[Task]:
        now = self.clock() if now is None else now
        changed: List[Task] = []
        with self._lock:
            for task in self._tasks.values():
                if task.status != TaskStatus.PROCESSING or task.started_at is None:
                    continue
                if now - task.started_at <= self.stale_after_s:
                    continue
                task.status = next_status_after_failure(task, True, self.max_attempts)
                task.error = f"Processing timed out after {self.stale_after_s:.0f}s"
                task.updated_at = now
                changed.append(replace(task))
        for task in changed:
            logger.warning("Stale task %s -> %s", task.task_id, task.status.value)
        return changed
