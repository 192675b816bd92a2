"""
Unit tests for the in-memory TaskQueue service.

Covers:
- Successful enqueue and completion
- Failure handling
- get_status for known / unknown task IDs
- Duplicate enqueue protection
- cleanup_old removes only finished jobs beyond max_age
- stats() counts
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from services.task_queue import TaskQueue

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _noop():
    return None


async def _failing(message: str = "boom"):
    raise RuntimeError(message)


async def _blocking(event: asyncio.Event):
    """Runs until *event* is set."""
    await event.wait()


# ---------------------------------------------------------------------------
# enqueue / get_status
# ---------------------------------------------------------------------------

async def test_enqueue_accepts_new_task():
    q = TaskQueue()
    assert q.enqueue("task-1", _noop) is True
    await q.wait("task-1")


async def test_unknown_task_id_returns_none():
    q = TaskQueue()
    assert q.get_status("no-such-task") is None


async def test_task_completed_status():
    q = TaskQueue()
    q.enqueue("ok-1", _noop)
    await q.wait("ok-1")

    info = q.get_status("ok-1")
    assert info["status"] == "completed"
    assert info["error"] is None
    assert info["completed_at"] is not None


async def test_task_arguments_are_passed():
    q = TaskQueue()
    seen = []

    async def _record(a, b):
        seen.append((a, b))

    q.enqueue("args", _record, 1, "two")
    await q.wait("args")
    assert seen == [(1, "two")]


async def test_failed_task_records_error():
    q = TaskQueue()
    q.enqueue("bad-1", _failing, "kaput")
    await q.wait("bad-1")

    info = q.get_status("bad-1")
    assert info["status"] == "failed"
    assert info["error"] == "kaput"


async def test_duplicate_running_task_rejected():
    q = TaskQueue()
    event = asyncio.Event()
    assert q.enqueue("dup", _blocking, event) is True
    await asyncio.sleep(0)

    assert q.is_active("dup")
    assert q.enqueue("dup", _blocking, event) is False

    event.set()
    await q.wait("dup")
    assert not q.is_active("dup")


async def test_finished_task_id_can_be_reused():
    q = TaskQueue()
    q.enqueue("again", _noop)
    await q.wait("again")
    assert q.enqueue("again", _noop) is True
    await q.wait("again")


# ---------------------------------------------------------------------------
# cleanup_old / stats / shutdown
# ---------------------------------------------------------------------------

async def test_cleanup_old_removes_only_stale_finished_jobs():
    q = TaskQueue()
    event = asyncio.Event()
    q.enqueue("old", _noop)
    q.enqueue("fresh", _noop)
    q.enqueue("running", _blocking, event)
    await q.wait("old")
    await q.wait("fresh")

    q._jobs["old"].completed_at = datetime.now(UTC) - timedelta(hours=2)

    removed = q.cleanup_old(max_age_seconds=3600)
    assert removed == 1
    assert q.get_status("old") is None
    assert q.get_status("fresh") is not None
    assert q.get_status("running") is not None

    event.set()
    await q.wait("running")


async def test_stats_counts_by_status():
    q = TaskQueue()
    q.enqueue("a", _noop)
    q.enqueue("b", _failing)
    await q.wait("a")
    await q.wait("b")

    stats = q.stats()
    assert stats["completed"] == 1
    assert stats["failed"] == 1
    assert stats["total"] == 2


async def test_shutdown_cancels_active_jobs():
    q = TaskQueue()
    q.enqueue("long", _blocking, asyncio.Event())
    await asyncio.sleep(0)

    await q.shutdown()
    assert q.get_status("long")["status"] == "cancelled"
