"""
In-process asyncio task queue for background work such as batch generation.

Each job runs as an asyncio.Task on the application's event loop under a
caller-chosen id. A second job with the id of one still running is refused.
Finished jobs stay visible through ``get_status`` until ``cleanup_old``
drops them.

Usage::

    from services.task_queue import task_queue

    accepted = task_queue.enqueue(f"batch-{batch.id}", service.process_batch, batch.id)
    info = task_queue.get_status(f"batch-{batch.id}")
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "running")
FINISHED_STATUSES = ("completed", "failed", "cancelled")


class _Job:
    __slots__ = (
        "task_id",
        "status",
        "error",
        "created_at",
        "started_at",
        "completed_at",
        "task",
    )

    def __init__(self, task_id: str) -> None:
        self.task_id: str = task_id
        self.status: str = "pending"
        self.error: str | None = None
        self.created_at: datetime = datetime.now(UTC)
        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None
        self.task: asyncio.Task | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class TaskQueue:
    """Named background jobs with duplicate protection and status tracking."""

    def __init__(self) -> None:
        self._jobs: dict[str, _Job] = {}

    def enqueue(self, task_id: str, coro_fn: Callable[..., Awaitable[Any]], *args: Any) -> bool:
        """
        Schedule ``coro_fn(*args)`` under *task_id*.

        Returns False without calling *coro_fn* when a job with the same id is
        still pending or running.
        """
        existing = self._jobs.get(task_id)
        if existing and existing.status in ACTIVE_STATUSES:
            logger.warning("task_queue: %s is already %s, rejecting duplicate", task_id, existing.status)
            return False

        job = _Job(task_id)
        self._jobs[task_id] = job
        job.task = asyncio.create_task(self._run(job, coro_fn, args), name=f"tq-{task_id}")
        logger.debug("task_queue: enqueued %s", task_id)
        return True

    def is_active(self, task_id: str) -> bool:
        job = self._jobs.get(task_id)
        return job is not None and job.status in ACTIVE_STATUSES

    def get_status(self, task_id: str) -> dict[str, Any] | None:
        job = self._jobs.get(task_id)
        return job.to_dict() if job else None

    def cleanup_old(self, max_age_seconds: int = 3600) -> int:
        """Drop finished jobs older than *max_age_seconds*. Returns how many were removed."""
        now = datetime.now(UTC)
        stale = [
            tid
            for tid, job in self._jobs.items()
            if job.status in FINISHED_STATUSES
            and job.completed_at is not None
            and (now - job.completed_at).total_seconds() > max_age_seconds
        ]
        for tid in stale:
            del self._jobs[tid]
        if stale:
            logger.info("task_queue: cleaned up %d finished jobs", len(stale))
        return len(stale)

    def stats(self) -> dict[str, int]:
        counts = {status: 0 for status in ACTIVE_STATUSES + FINISHED_STATUSES}
        for job in self._jobs.values():
            counts[job.status] = counts.get(job.status, 0) + 1
        counts["total"] = len(self._jobs)
        return counts

    async def wait(self, task_id: str) -> None:
        """Await a job's completion. Mostly useful in tests."""
        job = self._jobs.get(task_id)
        if job and job.task:
            await asyncio.gather(job.task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every active job and wait for them to unwind."""
        tasks = [job.task for job in self._jobs.values() if job.status in ACTIVE_STATUSES and job.task]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("task_queue: cancelled %d active jobs", len(tasks))

    async def _run(self, job: _Job, coro_fn: Callable[..., Awaitable[Any]], args: tuple) -> None:
        job.status = "running"
        job.started_at = datetime.now(UTC)
        try:
            await coro_fn(*args)
            job.status = "completed"
        except asyncio.CancelledError:
            job.status = "cancelled"
            raise
        except Exception as exc:
            job.error = str(exc)
            job.status = "failed"
            logger.error("task_queue: %s failed: %s", job.task_id, exc, exc_info=True)
        finally:
            job.completed_at = datetime.now(UTC)
            logger.debug("task_queue: %s finished with status=%s", job.task_id, job.status)


task_queue = TaskQueue()
