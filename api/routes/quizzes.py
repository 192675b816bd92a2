"""
Quiz API routes.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai import image_ai_service
from adapters.social import SocialAdapterError
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.routes.templates import get_user_template
from api.schemas.quiz import (
    Pagination,
    QuizCreateRequest,
    QuizDetailResponse,
    QuizImageResponse,
    QuizListResponse,
    QuizResponse,
    QuizSearchResult,
    QuizUpdateRequest,
)
from api.utils import connection_error, escape_like, limit_exceeded_error, total_pages
from core.plans import QUIZZES
from core.retry import ConnectionRetryError, with_connection_retry
from infrastructure.database.connection import get_db
from infrastructure.database.models import PostStatus, Quiz, QuizStatus, ScheduledPost, User
from services.generation_tracker import GenerationTracker
from services.post_publisher import caption_for, post_publisher, resolve_credentials
from services.usage_limits import UsageLimitExceeded, enforce_limit, increment_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


async def get_user_quiz(db: AsyncSession, user: User, quiz_id: str) -> Quiz:
    """
    Raises:
        HTTPException: 404 if the quiz does not exist or belongs to someone else
    """
    result = await db.execute(select(Quiz).where(Quiz.id == quiz_id, Quiz.user_id == user.id))
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quiz not found",
        )
    return quiz


@router.get("", response_model=QuizListResponse)
async def list_quizzes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    quiz_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the user's quizzes with pagination and filtering.
    """
    query = select(Quiz).where(Quiz.user_id == current_user.id)
    if search:
        query = query.where(Quiz.title.ilike(f"%{escape_like(search)}%", escape="\\"))
    if quiz_type:
        query = query.where(Quiz.quiz_type == quiz_type)
    if status_filter:
        query = query.where(Quiz.status == status_filter)

    async def _fetch():
        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0
        page_query = (
            query.order_by(Quiz.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        result = await db.execute(page_query)
        return total, result.scalars().unique().all()

    try:
        total, quizzes = await with_connection_retry(_fetch)
    except ConnectionRetryError as e:
        raise connection_error(e)

    return QuizListResponse(
        data=quizzes,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
        ),
    )


@router.post("", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    body: QuizCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    template = await get_user_template(db, current_user, body.template_id)

    try:
        await enforce_limit(db, current_user.id, QUIZZES)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    quiz = Quiz(
        user_id=current_user.id,
        organization_id=template.organization_id,
        template_id=template.id,
        title=body.title,
        quiz_type=body.quiz_type,
        variables=body.variables,
        answer=body.answer,
        solution=body.solution,
        language=body.language,
        image_url=body.image_url,
        status=QuizStatus.DRAFT.value,
    )
    db.add(quiz)
    await increment_usage(db, current_user.id, QUIZZES)
    await db.commit()
    await db.refresh(quiz)
    return quiz


@router.get("/search", response_model=List[QuizSearchResult])
async def search_quizzes(
    query: str = Query(..., min_length=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Match title or answer, case-insensitively. At most 10 results.
    """
    pattern = f"%{escape_like(query)}%"
    stmt = select(Quiz).where(
        Quiz.user_id == current_user.id,
        or_(Quiz.title.ilike(pattern, escape="\\"), Quiz.answer.ilike(pattern, escape="\\")),
    )
    if status_filter:
        stmt = stmt.where(Quiz.status == status_filter)
    stmt = stmt.order_by(Quiz.created_at.desc()).limit(10)

    result = await db.execute(stmt)
    return result.scalars().unique().all()


@router.get("/{quiz_id}", response_model=QuizDetailResponse)
async def get_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_quiz(db, current_user, quiz_id)


@router.put("/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: str,
    body: QuizUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    quiz = await get_user_quiz(db, current_user, quiz_id)
    update_data = body.model_dump(exclude_unset=True)

    if update_data.get("template_id"):
        template = await get_user_template(db, current_user, update_data["template_id"])
        quiz.quiz_type = template.quiz_type

    for field, value in update_data.items():
        if value is None and field in ("title", "variables", "template_id", "answer", "status"):
            continue
        setattr(quiz, field, value)

    await db.commit()
    await db.refresh(quiz)
    return quiz


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a quiz and its scheduled posts in one transaction.
    """
    quiz = await get_user_quiz(db, current_user, quiz_id)
    await db.execute(delete(ScheduledPost).where(ScheduledPost.quiz_id == quiz.id))
    await db.delete(quiz)
    await db.commit()
    return {"success": True}


@router.post("/{quiz_id}/image", response_model=QuizImageResponse)
@limiter.limit(get_rate_limit("publish"))
async def generate_quiz_image(
    request: Request,
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    (Re)generate the quiz image.
    """
    quiz = await get_user_quiz(db, current_user, quiz_id)

    tracker = GenerationTracker(db)
    log = await tracker.log_start(
        user_id=current_user.id,
        resource_type="quiz_image",
        resource_id=quiz.id,
        input_metadata={"quiz_type": quiz.quiz_type},
    )
    started = time.monotonic()
    try:
        image = await image_ai_service.generate_quiz_image(quiz.title, quiz.quiz_type)
    except Exception as e:
        logger.error("Image generation failed for quiz %s: %s", quiz.id, e)
        await tracker.log_failure(log.id, str(e), duration_ms=int((time.monotonic() - started) * 1000))
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Image generation failed",
        )

    await tracker.log_success(
        log.id,
        ai_model=image.model,
        duration_ms=int((time.monotonic() - started) * 1000),
        fallback=image.model == "mock",
    )
    quiz.image_url = image.url
    await db.commit()
    return QuizImageResponse(id=quiz.id, image_url=image.url)


@router.post("/{quiz_id}/publish")
async def publish_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Publish a quiz to Facebook right away.
    """
    quiz = await get_user_quiz(db, current_user, quiz_id)
    if not quiz.image_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Quiz image is required for Facebook posting",
        )

    result = await db.execute(
        select(ScheduledPost)
        .where(ScheduledPost.quiz_id == quiz.id)
        .order_by(ScheduledPost.scheduled_at.desc())
        .limit(1)
    )
    post = result.scalar_one_or_none()

    try:
        credentials = await resolve_credentials(db, current_user.id)
        outcome = await post_publisher.publish_quiz(quiz, credentials, caption_for(post, quiz))
    except SocialAdapterError as e:
        logger.warning("Immediate publish of quiz %s failed: %s", quiz.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if not outcome.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=outcome.error_message or "Facebook post failed",
        )

    now = datetime.now(timezone.utc)
    if post is None:
        post = ScheduledPost(user_id=current_user.id, quiz_id=quiz.id, scheduled_at=now)
        db.add(post)
    post.status = PostStatus.PUBLISHED.value
    post.fb_post_id = outcome.post_id
    post.published_at = now
    post.error_message = None
    quiz.status = QuizStatus.PUBLISHED.value
    await db.commit()

    logger.info("Published quiz %s to Facebook as %s", quiz.id, outcome.post_id)
    return {
        "success": True,
        "quiz_id": quiz.id,
        "fb_post_id": outcome.post_id,
        "post_url": outcome.post_url,
        "published_at": now.isoformat(),
    }
