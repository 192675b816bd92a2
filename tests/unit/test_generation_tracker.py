"""
Unit tests for GenerationTracker.

Runs against the in-memory SQLite session so log rows, usage records and
alerts are real.
"""

import pytest
from sqlalchemy import func, select

from core.plans import AI_GENERATION
from infrastructure.database.models import AdminAlert, GenerationLog
from services.generation_tracker import FAILURE_ALERT_THRESHOLD, GenerationTracker
from services.usage_limits import get_user_usage

pytestmark = pytest.mark.asyncio


async def _alert_count(db_session) -> int:
    result = await db_session.execute(select(func.count(AdminAlert.id)))
    return result.scalar_one()


async def test_log_start_creates_started_entry(db_session, test_user):
    tracker = GenerationTracker(db_session)
    log = await tracker.log_start(
        test_user.id, "quiz_content", resource_id="tpl-1", input_metadata={"quiz_type": "WORDLE"}
    )

    stored = await db_session.get(GenerationLog, log.id)
    assert stored.status == "started"
    assert stored.input_metadata == {"quiz_type": "WORDLE"}


async def test_success_increments_ai_usage(db_session, test_user):
    tracker = GenerationTracker(db_session)
    log = await tracker.log_start(test_user.id, "quiz_content")
    await tracker.log_success(log.id, ai_model="claude", duration_ms=1200)

    assert log.status == "success"
    assert log.ai_model == "claude"
    usage = await get_user_usage(db_session, test_user.id)
    assert usage[AI_GENERATION] == 1


async def test_fallback_is_not_billed(db_session, test_user):
    tracker = GenerationTracker(db_session)
    log = await tracker.log_start(test_user.id, "field")
    await tracker.log_success(log.id, fallback=True)

    assert log.status == "fallback"
    usage = await get_user_usage(db_session, test_user.id)
    assert usage[AI_GENERATION] == 0


async def test_failure_truncates_error_and_skips_usage(db_session, test_user):
    tracker = GenerationTracker(db_session)
    log = await tracker.log_start(test_user.id, "quiz_image")
    await tracker.log_failure(log.id, "x" * 5000, duration_ms=10)

    assert log.status == "failed"
    assert len(log.error_message) == 2000
    usage = await get_user_usage(db_session, test_user.id)
    assert usage[AI_GENERATION] == 0


async def test_unknown_log_id_is_ignored(db_session):
    tracker = GenerationTracker(db_session)
    await tracker.log_success("missing-id")
    await tracker.log_failure("missing-id", "boom")


async def test_alert_raised_exactly_at_threshold(db_session, test_user):
    tracker = GenerationTracker(db_session)

    for attempt in range(FAILURE_ALERT_THRESHOLD + 1):
        log = await tracker.log_start(test_user.id, "quiz_content")
        await tracker.log_failure(log.id, f"model overloaded #{attempt}")
        expected = 1 if attempt + 1 >= FAILURE_ALERT_THRESHOLD else 0
        assert await _alert_count(db_session) == expected

    alert = (await db_session.execute(select(AdminAlert))).scalar_one()
    assert alert.alert_type == "generation_failed"
    assert alert.user_id == test_user.id
    assert "model overloaded #2" in alert.message
