"""
Quiz generation API routes: single content generation and background batches.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.routes.scheduled_posts import validate_schedule_time
from api.routes.templates import get_user_template
from api.schemas.generation import (
    BATCH_REQUIRED_FIELDS,
    BatchCreateRequest,
    BatchCreateResponse,
    BatchResponse,
    BatchStatusResponse,
    ContentGenerateRequest,
    GeneratedContentResponse,
    GeneratedQuizSummary,
    TimeSlotEntry,
)
from api.utils import limit_exceeded_error
from core.plans import AI_GENERATION, QUIZZES
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import Quiz, QuizBatch, ScheduledPost, Template, User
from services.quiz_batch import quiz_batch_service, scheduled_time_for
from services.quiz_generator import QuizGenerator
from services.task_queue import task_queue
from services.usage_limits import UsageLimitExceeded, enforce_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quiz-generation", tags=["quiz-generation"])


async def get_user_batch(db: AsyncSession, user: User, batch_id: str) -> QuizBatch:
    result = await db.execute(
        select(QuizBatch).where(QuizBatch.id == batch_id, QuizBatch.user_id == user.id)
    )
    batch = result.scalar_one_or_none()
    if not batch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Batch not found",
        )
    return batch


def _versioned_image_url(quiz: Quiz) -> str | None:
    """Append the last update time so clients refetch regenerated images."""
    if not quiz.image_url:
        return None
    stamp = int(quiz.updated_at.timestamp()) if quiz.updated_at else 0
    separator = "&" if "?" in quiz.image_url else "?"
    return f"{quiz.image_url}{separator}v={stamp}"


@router.post("/content", response_model=GeneratedContentResponse)
@limiter.limit(get_rate_limit("ai_generation"))
async def generate_content(
    request: Request,
    body: ContentGenerateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate content for one quiz from a template.

    The generation tracker increments the aiGeneration counter for real model
    output; fallback content is free.
    """
    template = await get_user_template(db, current_user, body.template_id)

    try:
        await enforce_limit(db, current_user.id, AI_GENERATION)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    generator = QuizGenerator(db)
    content = await generator.generate(
        template,
        theme=body.theme,
        difficulty=body.difficulty,
        language=body.language,
        user_id=current_user.id,
    )
    await db.commit()
    return GeneratedContentResponse(**content.to_dict())


def validate_distribution(entries: List[TimeSlotEntry]) -> None:
    """
    Every slot must resolve to a time inside the normal scheduling window.

    Raises:
        HTTPException: 400 naming the first bad entry
    """
    for entry in entries:
        scheduled_at = scheduled_time_for([entry.model_dump()], 0)
        if scheduled_at is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid time slot date: {entry.date}",
            )
        try:
            validate_schedule_time(scheduled_at)
        except HTTPException as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Time slot {entry.date} {entry.slot_id}: {e.detail}",
            )


@router.post("/batch", response_model=BatchCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("ai_generation"))
async def create_batch(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Start a background batch generating ``count`` quizzes.

    Returns immediately; poll ``/batch/{id}/status`` for progress.
    """
    missing = [key for key in BATCH_REQUIRED_FIELDS if payload.get(key) in (None, "", [])]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required parameters: {', '.join(missing)}",
        )

    try:
        body = BatchCreateRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid batch parameters", "errors": e.errors(include_url=False, include_context=False)},
        )

    if body.count > settings.batch_max_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"count must be at most {settings.batch_max_count}",
        )

    validate_distribution(body.time_slot_distribution)

    template_ids = list(dict.fromkeys(body.template_ids))
    result = await db.execute(
        select(Template.id).where(Template.id.in_(template_ids), Template.user_id == current_user.id)
    )
    found = set(result.scalars().all())
    unknown = [t for t in template_ids if t not in found]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Templates not found: {', '.join(unknown)}",
        )

    try:
        await enforce_limit(db, current_user.id, QUIZZES, amount=body.count)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    batch = await quiz_batch_service.create_batch(
        db,
        user_id=current_user.id,
        template_ids=body.template_ids,
        count=body.count,
        time_slot_distribution=[entry.model_dump() for entry in body.time_slot_distribution],
        theme=body.theme,
        difficulty=body.difficulty,
        variety=body.variety,
        language=body.language,
    )
    task_queue.enqueue(f"batch-{batch.id}", quiz_batch_service.process_batch, batch.id)

    return BatchCreateResponse(batch_id=batch.id, status=batch.status)


@router.get("/batch/{batch_id}/status", response_model=BatchStatusResponse)
async def get_batch_status(
    batch_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    batch = await get_user_batch(db, current_user, batch_id)

    result = await db.execute(
        select(Quiz, ScheduledPost.scheduled_at)
        .outerjoin(ScheduledPost, ScheduledPost.quiz_id == Quiz.id)
        .where(Quiz.batch_id == batch.id)
        .order_by(Quiz.created_at.asc())
    )
    generated = [
        GeneratedQuizSummary(
            id=quiz.id,
            title=quiz.title,
            type=quiz.quiz_type,
            scheduled_at=scheduled_at,
            image_url=_versioned_image_url(quiz),
            created_at=quiz.created_at,
        )
        for quiz, scheduled_at in result.unique().all()
    ]

    current_template = None
    if batch.current_template_id:
        template = await db.get(Template, batch.current_template_id)
        current_template = template.name if template else None

    return BatchStatusResponse(
        batch_id=batch.id,
        is_complete=batch.is_complete,
        status=batch.status,
        completed_count=batch.completed_count,
        total_count=batch.total_count,
        current_template=current_template,
        stage=batch.current_stage,
        generated_quizzes=generated,
        images_completed=batch.images_completed,
        error_message=batch.error_message,
    )


@router.post("/batch/{batch_id}/finalize")
async def finalize_batch(
    batch_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark the batch complete and move its drafts to SCHEDULED or READY.
    """
    batch = await get_user_batch(db, current_user, batch_id)
    await quiz_batch_service.finalize(db, batch)
    return {
        "batch_id": batch.id,
        "message": "Batch finalized successfully",
        "status": "completed",
    }


@router.get("/batches", response_model=List[BatchResponse])
async def list_batches(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(QuizBatch)
        .where(QuizBatch.user_id == current_user.id)
        .order_by(QuizBatch.created_at.desc())
        .limit(20)
    )
    return result.scalars().all()
