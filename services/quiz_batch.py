"""
Batch quiz generation.

A batch generates ``total_count`` quizzes from one or more templates in two
passes: content first (one DRAFT quiz per item, plus a PENDING scheduled
post when the time-slot distribution yields a time), then images, one at a
time with a fixed pause between calls. The worker runs on the task queue and
opens its own database sessions.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai import image_ai_service
from infrastructure.config.settings import settings
from infrastructure.database.models.quiz import (
    BatchStage,
    BatchStatus,
    Quiz,
    QuizBatch,
    QuizStatus,
    Template,
)
from infrastructure.database.models.scheduling import PostStatus, ScheduledPost
from services.generation_tracker import GenerationTracker
from services.quiz_generator import (
    QuizGenerator,
    difficulty_for_index,
    theme_for_index,
    time_for_slot,
)

logger = logging.getLogger(__name__)

RESTART_ERROR_MESSAGE = "Server restarted during generation"


def scheduled_time_for(distribution: list, index: int) -> Optional[datetime]:
    """
    Publish time for quiz *index*, taken round-robin from the distribution.

    Each entry is ``{"date": "YYYY-MM-DD", "slot_id": "morning", "weight": 1}``.
    Returns None when the distribution is empty or the entry has no usable date.
    """
    if not distribution:
        return None
    entry = distribution[index % len(distribution)]
    try:
        day = datetime.strptime(str(entry.get("date", ""))[:10], "%Y-%m-%d")
    except ValueError:
        logger.warning("Ignoring time slot entry with invalid date: %s", entry)
        return None
    return day.replace(hour=time_for_slot(entry.get("slot_id")), tzinfo=timezone.utc)


class QuizBatchService:
    """Creates, runs, finalizes and recovers quiz generation batches."""

    def __init__(self, image_service=None, ai_service=None, image_delay_ms: Optional[int] = None):
        self.image_service = image_service or image_ai_service
        self.ai_service = ai_service
        self.image_delay_ms = (
            settings.batch_image_delay_ms if image_delay_ms is None else image_delay_ms
        )

    async def create_batch(
        self,
        db: AsyncSession,
        user_id: str,
        template_ids: list,
        count: int,
        time_slot_distribution: list,
        theme: Optional[str] = None,
        difficulty: str = "medium",
        variety: int = 50,
        language: str = "en",
    ) -> QuizBatch:
        batch = QuizBatch(
            user_id=user_id,
            status=BatchStatus.PROCESSING.value,
            current_stage=BatchStage.PREPARING.value,
            template_ids=list(template_ids),
            total_count=count,
            completed_count=0,
            images_completed=0,
            theme=theme,
            difficulty=difficulty,
            language=language,
            variety=variety,
            time_slot_distribution=list(time_slot_distribution),
        )
        db.add(batch)
        await db.commit()
        await db.refresh(batch)
        logger.info("Created quiz batch %s (%d quizzes)", batch.id, count)
        return batch

    async def process_batch(self, batch_id: str) -> None:
        """Run the whole batch. Any unhandled error marks it FAILED."""
        from infrastructure.database.connection import async_session_maker

        try:
            async with async_session_maker() as db:
                batch = await db.get(QuizBatch, batch_id)
                if batch is None:
                    logger.error("Quiz batch %s not found", batch_id)
                    return
                quiz_ids = await self._generate_content(db, batch)
                await self._generate_images(db, batch, quiz_ids)

                batch.status = BatchStatus.COMPLETE.value
                batch.current_stage = BatchStage.COMPLETE.value
                batch.completed_at = datetime.now(timezone.utc)
                await db.commit()
                logger.info("Quiz batch %s complete: %d quizzes", batch_id, len(quiz_ids))
        except asyncio.CancelledError:
            await self._mark_failed(batch_id, RESTART_ERROR_MESSAGE)
            raise
        except Exception as e:
            logger.error("Quiz batch %s failed: %s", batch_id, e, exc_info=True)
            await self._mark_failed(batch_id, str(e) or e.__class__.__name__)

    async def _generate_content(self, db: AsyncSession, batch: QuizBatch) -> list:
        batch.current_stage = BatchStage.GENERATING.value
        await db.commit()

        template_ids = batch.template_ids
        templates = {}
        result = await db.execute(select(Template).where(Template.id.in_(template_ids)))
        for template in result.scalars().all():
            templates[template.id] = template

        generator = QuizGenerator(db, ai_service=self.ai_service)
        quiz_ids = []
        count = batch.total_count

        for i in range(count):
            template_id = template_ids[i % len(template_ids)]
            template = templates.get(template_id)
            if template is None:
                raise ValueError(f"Template {template_id} not found")

            difficulty = difficulty_for_index(batch.difficulty, i, count)
            content = await generator.generate(
                template,
                theme=theme_for_index(batch.theme, i),
                difficulty=difficulty,
                language=batch.language,
                user_id=batch.user_id,
            )

            variables = dict(content.variables)
            variables.setdefault("description", content.subtitle)
            quiz = Quiz(
                user_id=batch.user_id,
                organization_id=template.organization_id,
                template_id=template.id,
                batch_id=batch.id,
                title=content.title,
                quiz_type=template.quiz_type,
                variables=variables,
                answer=content.answer or "Generated answer",
                solution=content.solution,
                language=batch.language,
                status=QuizStatus.DRAFT.value,
            )
            db.add(quiz)
            await db.flush()

            scheduled_at = scheduled_time_for(batch.time_slot_distribution, i)
            if scheduled_at is not None and scheduled_at <= datetime.now(timezone.utc):
                # The slot passed while the batch waited; leave the quiz unscheduled
                logger.warning("Batch %s: slot %s already passed", batch.id, scheduled_at.isoformat())
                scheduled_at = None
            if scheduled_at is not None:
                db.add(
                    ScheduledPost(
                        user_id=batch.user_id,
                        quiz_id=quiz.id,
                        scheduled_at=scheduled_at,
                        status=PostStatus.PENDING.value,
                    )
                )

            batch.completed_count = i + 1
            batch.current_template_id = template.id
            await db.commit()
            quiz_ids.append(quiz.id)
            logger.info("Batch %s: generated quiz %d/%d", batch.id, i + 1, count)

        return quiz_ids

    async def _generate_images(self, db: AsyncSession, batch: QuizBatch, quiz_ids: list) -> None:
        batch.current_stage = BatchStage.PROCESSING_IMAGES.value
        await db.commit()

        tracker = GenerationTracker(db)
        for index, quiz_id in enumerate(quiz_ids):
            quiz = await db.get(Quiz, quiz_id)
            log = await tracker.log_start(
                user_id=batch.user_id,
                resource_type="quiz_image",
                resource_id=quiz_id,
                input_metadata={"batch_id": batch.id},
            )
            started = time.monotonic()
            try:
                image = await self.image_service.generate_quiz_image(
                    quiz.title, quiz.quiz_type, batch.theme
                )
                quiz.image_url = image.url
                await tracker.log_success(
                    log.id,
                    ai_model=image.model,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    fallback=image.model == "mock",
                )
            except Exception as e:
                logger.warning("Batch %s: image failed for quiz %s: %s", batch.id, quiz_id, e)
                await tracker.log_failure(
                    log.id, str(e), duration_ms=int((time.monotonic() - started) * 1000)
                )

            batch.images_completed = index + 1
            await db.commit()

            if index < len(quiz_ids) - 1 and self.image_delay_ms > 0:
                await asyncio.sleep(self.image_delay_ms / 1000)

    async def _mark_failed(self, batch_id: str, message: str) -> None:
        """Record the failure in a fresh session; the worker's session may be unusable."""
        from infrastructure.database.connection import async_session_maker

        try:
            async with async_session_maker() as db:
                await db.execute(
                    update(QuizBatch)
                    .where(QuizBatch.id == batch_id)
                    .values(status=BatchStatus.FAILED.value, error_message=message[:2000])
                )
                await db.commit()
        except Exception as e:
            logger.error("Could not mark batch %s as failed: %s", batch_id, e)

    async def finalize(self, db: AsyncSession, batch: QuizBatch) -> QuizBatch:
        """
        Close a batch: DRAFT quizzes with a scheduled post become SCHEDULED,
        the others READY.
        """
        result = await db.execute(
            select(Quiz).where(Quiz.batch_id == batch.id, Quiz.status == QuizStatus.DRAFT.value)
        )
        quizzes = result.scalars().unique().all()

        scheduled_ids = set()
        if quizzes:
            posts = await db.execute(
                select(ScheduledPost.quiz_id).where(
                    ScheduledPost.quiz_id.in_([q.id for q in quizzes])
                )
            )
            scheduled_ids = set(posts.scalars().all())

        for quiz in quizzes:
            quiz.status = (
                QuizStatus.SCHEDULED.value if quiz.id in scheduled_ids else QuizStatus.READY.value
            )

        batch.status = BatchStatus.COMPLETE.value
        batch.current_stage = BatchStage.COMPLETE.value
        if batch.completed_at is None:
            batch.completed_at = datetime.now(timezone.utc)
        await db.commit()
        logger.info("Finalized batch %s (%d quizzes)", batch.id, len(quizzes))
        return batch

    @staticmethod
    async def recover_stale_batches() -> int:
        """Mark batches left PROCESSING by a previous process as FAILED."""
        from infrastructure.database.connection import async_session_maker

        async with async_session_maker() as db:
            result = await db.execute(
                update(QuizBatch)
                .where(QuizBatch.status == BatchStatus.PROCESSING.value)
                .values(status=BatchStatus.FAILED.value, error_message=RESTART_ERROR_MESSAGE)
            )
            await db.commit()
            recovered = result.rowcount or 0
        if recovered:
            logger.warning("Recovered %d stale quiz batches", recovered)
        return recovered


quiz_batch_service = QuizBatchService()
