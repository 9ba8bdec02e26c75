"""Durable scheduled tasks and the worker that runs them.

Deferred work is written to ``scheduled_tasks`` with a ``due_at`` marker and
picked up by a polling worker, so a restart between scheduling and execution
only delays the task. Tasks found ``running`` for longer than
``TASK_STALE_SECONDS`` are assumed orphaned by a crash and re-queued, which
means handlers must be idempotent.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.config import Settings, settings
from app.core.metrics import PENDING_TASKS_GAUGE, SCHEDULED_TASKS
from app.core.security import utc_now
from app.models.task import ScheduledTask

logger = logging.getLogger(__name__)

TaskHandler = Callable[[Session, Dict[str, Any]], None]

task_handlers: Dict[str, TaskHandler] = {}


def register_task_handler(task_type: str) -> Callable[[TaskHandler], TaskHandler]:
    """Decorator registering the function that executes ``task_type`` tasks."""
    def decorator(func: TaskHandler) -> TaskHandler:
        task_handlers[task_type] = func
        return func
    return decorator


class TaskScheduler:
    """Create and cancel persisted tasks."""

    @staticmethod
    def schedule(
        db: Session,
        task_type: str,
        due_at: datetime,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ScheduledTask:
        task = ScheduledTask(
            task_type=task_type,
            payload_json=json.dumps(payload or {}, default=str),
            due_at=due_at,
            status="pending",
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        logger.info("Scheduled task %s (%s) due at %s", task.id, task_type, due_at.isoformat())
        return task

    @staticmethod
    def cancel(db: Session, task_id: int) -> bool:
        """Cancel a task that has not started yet."""
        task = db.query(ScheduledTask).filter(ScheduledTask.id == task_id).first()
        if not task or task.status != "pending":
            return False
        task.status = "cancelled"
        task.completed_at = utc_now()
        db.commit()
        logger.info("Cancelled task %s (%s)", task.id, task.task_type)
        return True

    @staticmethod
    def pending_count(db: Session) -> int:
        return db.query(ScheduledTask).filter(ScheduledTask.status == "pending").count()


class TaskWorker:
    """DB-backed task queue worker."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        config: Optional[Settings] = None,
        handlers: Optional[Dict[str, TaskHandler]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.config = config or settings
        self.handlers = task_handlers if handlers is None else handlers
        self._clock = clock
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._processed_count: int = 0
        self._lock = threading.Lock()

    def _new_session(self) -> Session:
        if self._session_factory is None:
            from app.core.database import SessionLocal
            self._session_factory = SessionLocal
        return self._session_factory()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="task-worker", daemon=True)
        self._thread.start()
        logger.info("Task worker started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Task worker stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "processed_count": self._processed_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            processed = 0
            try:
                self.requeue_stale_tasks()
                for _ in range(max(1, self.config.WORKER_BATCH_SIZE)):
                    if self.process_next_task():
                        processed += 1
                    else:
                        break
            except Exception:
                logger.exception("Task worker iteration failed")
            self._heartbeat = time.time()
            if processed == 0:
                self._stop_event.wait(max(0.1, self.config.WORKER_POLL_INTERVAL_SECONDS))

    def requeue_stale_tasks(self) -> int:
        """Return tasks orphaned in ``running`` to the queue."""
        cutoff = self._clock() - timedelta(seconds=self.config.TASK_STALE_SECONDS)
        db = self._new_session()
        try:
            count = (
                db.query(ScheduledTask)
                .filter(ScheduledTask.status == "running", ScheduledTask.started_at < cutoff)
                .update({ScheduledTask.status: "pending"}, synchronize_session=False)
            )
            db.commit()
            if count:
                logger.warning("Re-queued %d stale task(s)", count)
            return count
        finally:
            db.close()

    def process_next_task(self) -> bool:
        db = self._new_session()
        try:
            now = self._clock()
            task = (
                db.query(ScheduledTask)
                .filter(ScheduledTask.status == "pending", ScheduledTask.due_at <= now)
                .order_by(ScheduledTask.due_at.asc(), ScheduledTask.id.asc())
                .with_for_update(skip_locked=True)
                .first()
            )
            if not task:
                return False

            task.status = "running"
            task.started_at = now
            task.attempts += 1
            db.commit()
            db.refresh(task)

            try:
                self._execute(db, task)
            except Exception as exc:
                logger.exception("Task %s (%s) failed: %s", task.id, task.task_type, exc)
                db.rollback()
                db.refresh(task)
                task.last_error = str(exc)
                if task.attempts <= self.config.WORKER_MAX_RETRIES:
                    task.status = "pending"
                    SCHEDULED_TASKS.labels(task.task_type, "retry").inc()
                else:
                    task.status = "failed"
                    task.completed_at = self._clock()
                    SCHEDULED_TASKS.labels(task.task_type, "failed").inc()
                db.commit()
            finally:
                with self._lock:
                    self._processed_count += 1

            return True
        finally:
            db.close()

    def _execute(self, db: Session, task: ScheduledTask) -> None:
        handler = self.handlers.get(task.task_type)
        if handler is None:
            raise LookupError(f"No handler registered for task type '{task.task_type}'")

        payload = json.loads(task.payload_json) if task.payload_json else {}
        handler(db, payload)

        task.status = "completed"
        task.completed_at = self._clock()
        task.last_error = None
        db.commit()
        SCHEDULED_TASKS.labels(task.task_type, "completed").inc()
        logger.info("Task %s (%s) completed", task.id, task.task_type)

    def report_queue_depth(self, db: Session) -> int:
        depth = TaskScheduler.pending_count(db)
        PENDING_TASKS_GAUGE.set(depth)
        return depth


task_scheduler = TaskScheduler()
task_worker = TaskWorker()
