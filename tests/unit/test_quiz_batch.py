"""
Unit tests for QuizBatchService.

The worker opens its own sessions through ``async_session_maker``; tests
point that at the in-memory engine and replace both AI services with mocks.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from adapters.ai.replicate_adapter import GeneratedImage
from infrastructure.database.models import (
    BatchStage,
    BatchStatus,
    Quiz,
    QuizBatch,
    QuizStatus,
    ScheduledPost,
)
from services.quiz_batch import (
    RESTART_ERROR_MESSAGE,
    QuizBatchService,
    scheduled_time_for,
)

pytestmark = pytest.mark.asyncio

DISTRIBUTION = [
    {"date": "2030-01-01", "slot_id": "morning", "weight": 1},
    {"date": "2030-01-02", "slot_id": "evening", "weight": 1},
]


def _image_service(fail: bool = False) -> MagicMock:
    service = MagicMock()
    if fail:
        service.generate_quiz_image = AsyncMock(side_effect=RuntimeError("replicate down"))
    else:
        service.generate_quiz_image = AsyncMock(
            return_value=GeneratedImage(
                url="https://replicate.delivery/img.png",
                prompt="p",
                width=1080,
                height=1080,
                model="ideogram",
            )
        )
    return service


def _ai_service() -> MagicMock:
    ai = MagicMock()
    ai.model = "claude-test"
    ai.generate_quiz_content = AsyncMock(return_value=None)
    return ai


@pytest.fixture
def use_test_sessions(session_maker):
    with patch("infrastructure.database.connection.async_session_maker", session_maker):
        yield


class TestScheduledTimeFor:

    def test_round_robin_over_entries(self):
        assert scheduled_time_for(DISTRIBUTION, 0) == datetime(2030, 1, 1, 9, tzinfo=timezone.utc)
        assert scheduled_time_for(DISTRIBUTION, 1) == datetime(2030, 1, 2, 18, tzinfo=timezone.utc)
        assert scheduled_time_for(DISTRIBUTION, 2) == datetime(2030, 1, 1, 9, tzinfo=timezone.utc)

    def test_empty_or_invalid_distribution(self):
        assert scheduled_time_for([], 0) is None
        assert scheduled_time_for([{"date": "not-a-date", "slot_id": "morning"}], 0) is None


async def test_create_batch_starts_processing(db_session, test_user, template):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service())
    batch = await service.create_batch(
        db_session, test_user.id, [template.id], 3, DISTRIBUTION, theme="space"
    )
    assert batch.status == BatchStatus.PROCESSING.value
    assert batch.current_stage == BatchStage.PREPARING.value
    assert batch.completed_count == 0


async def test_process_batch_generates_quizzes_posts_and_images(
    db_session, session_maker, use_test_sessions, test_user, template
):
    images = _image_service()
    service = QuizBatchService(image_service=images, ai_service=_ai_service(), image_delay_ms=0)
    batch = await service.create_batch(
        db_session, test_user.id, [template.id], 3, DISTRIBUTION, difficulty="progressive"
    )

    await service.process_batch(batch.id)

    async with session_maker() as db:
        stored = await db.get(QuizBatch, batch.id)
        assert stored.status == BatchStatus.COMPLETE.value
        assert stored.completed_count == 3
        assert stored.images_completed == 3

        quizzes = (await db.execute(select(Quiz).where(Quiz.batch_id == batch.id))).scalars().unique().all()
        assert len(quizzes) == 3
        assert all(q.status == QuizStatus.DRAFT.value for q in quizzes)
        assert all(q.image_url == "https://replicate.delivery/img.png" for q in quizzes)

        posts = (await db.execute(select(ScheduledPost))).scalars().unique().all()
        assert len(posts) == 3
    assert images.generate_quiz_image.await_count == 3


async def test_images_paced_between_calls(
    db_session, session_maker, use_test_sessions, test_user, template
):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service())
    assert service.image_delay_ms == 500
    batch = await service.create_batch(db_session, test_user.id, [template.id], 3, DISTRIBUTION)

    with patch("services.quiz_batch.asyncio.sleep", new_callable=AsyncMock) as sleep:
        await service.process_batch(batch.id)

    assert [c.args for c in sleep.await_args_list] == [(0.5,), (0.5,)]


async def test_slot_already_passed_is_left_unscheduled(
    db_session, session_maker, use_test_sessions, test_user, template
):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service(), image_delay_ms=0)
    passed = [{"date": "2020-01-01", "slot_id": "morning"}, DISTRIBUTION[0]]
    batch = await service.create_batch(db_session, test_user.id, [template.id], 2, passed)

    await service.process_batch(batch.id)

    async with session_maker() as db:
        stored = await db.get(QuizBatch, batch.id)
        assert stored.status == BatchStatus.COMPLETE.value
        posts = (await db.execute(select(ScheduledPost))).scalars().unique().all()
        assert [p.scheduled_at.replace(tzinfo=timezone.utc) for p in posts] == [
            datetime(2030, 1, 1, 9, tzinfo=timezone.utc)
        ]


async def test_image_failures_do_not_fail_batch(
    db_session, session_maker, use_test_sessions, test_user, template
):
    service = QuizBatchService(
        image_service=_image_service(fail=True), ai_service=_ai_service(), image_delay_ms=0
    )
    batch = await service.create_batch(db_session, test_user.id, [template.id], 2, [])

    await service.process_batch(batch.id)

    async with session_maker() as db:
        stored = await db.get(QuizBatch, batch.id)
        assert stored.status == BatchStatus.COMPLETE.value
        assert stored.images_completed == 2


async def test_missing_template_marks_batch_failed(
    db_session, session_maker, use_test_sessions, test_user
):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service())
    batch = await service.create_batch(db_session, test_user.id, ["missing-template"], 1, [])

    await service.process_batch(batch.id)

    async with session_maker() as db:
        stored = await db.get(QuizBatch, batch.id)
        assert stored.status == BatchStatus.FAILED.value
        assert "missing-template" in stored.error_message


async def test_finalize_sets_scheduled_or_ready(
    db_session, session_maker, use_test_sessions, test_user, template
):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service(), image_delay_ms=0)
    batch = await service.create_batch(
        db_session, test_user.id, [template.id], 2, DISTRIBUTION[:1]
    )
    await service.process_batch(batch.id)

    async with session_maker() as db:
        # Drop one post so that quiz should become READY
        post = (await db.execute(select(ScheduledPost))).scalars().unique().first()
        await db.delete(post)
        await db.commit()

        stored = await db.get(QuizBatch, batch.id)
        await service.finalize(db, stored)

        statuses = sorted(
            q.status
            for q in (await db.execute(select(Quiz).where(Quiz.batch_id == batch.id))).scalars().unique().all()
        )
        assert statuses == [QuizStatus.READY.value, QuizStatus.SCHEDULED.value]


async def test_recover_stale_batches(db_session, use_test_sessions, test_user, template):
    service = QuizBatchService(image_service=_image_service(), ai_service=_ai_service())
    batch = await service.create_batch(db_session, test_user.id, [template.id], 1, [])

    recovered = await QuizBatchService.recover_stale_batches()

    assert recovered == 1
    await db_session.refresh(batch)
    assert batch.status == BatchStatus.FAILED.value
    assert batch.error_message == RESTART_ERROR_MESSAGE
