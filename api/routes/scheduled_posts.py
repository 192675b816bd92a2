"""
Scheduled post API routes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.routes.quizzes import get_user_quiz
from api.schemas.scheduling import (
    ScheduledPostCreateRequest,
    ScheduledPostResponse,
    ScheduledPostUpdateRequest,
)
from api.utils import limit_exceeded_error
from core.plans import SCHEDULED_POSTS
from infrastructure.database.connection import get_db
from infrastructure.database.models import PostStatus, QuizStatus, ScheduledPost, User
from infrastructure.database.models.scheduling import MAX_FUTURE_DAYS, MAX_RETRY_ATTEMPTS
from services.post_queue import post_queue
from services.usage_limits import UsageLimitExceeded, enforce_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduled-posts", tags=["scheduled-posts"])


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_schedule_time(scheduled_at: datetime) -> datetime:
    """
    Raises:
        HTTPException: 400 if the time is in the past or too far ahead
    """
    scheduled_at = as_utc(scheduled_at)
    now = datetime.now(timezone.utc)
    if scheduled_at <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Scheduled time must be in the future",
        )
    if scheduled_at > now + timedelta(days=MAX_FUTURE_DAYS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Scheduled time cannot be more than {MAX_FUTURE_DAYS} days in the future",
        )
    return scheduled_at


async def _raise_on_conflict(
    db: AsyncSession,
    quiz_id: str,
    scheduled_at: datetime,
    exclude_id: Optional[str] = None,
) -> None:
    stmt = select(ScheduledPost).where(
        ScheduledPost.quiz_id == quiz_id,
        ScheduledPost.scheduled_at == scheduled_at,
        ScheduledPost.status == PostStatus.PENDING.value,
    )
    if exclude_id:
        stmt = stmt.where(ScheduledPost.id != exclude_id)
    existing = (await db.execute(stmt)).scalars().first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Scheduling conflict",
                "conflicting_post_id": existing.id,
                "quiz_id": quiz_id,
                "scheduled_at": scheduled_at.isoformat(),
            },
        )


async def get_user_post(db: AsyncSession, user: User, post_id: str) -> ScheduledPost:
    result = await db.execute(
        select(ScheduledPost).where(ScheduledPost.id == post_id, ScheduledPost.user_id == user.id)
    )
    post = result.scalar_one_or_none()
    if not post:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scheduled post not found",
        )
    return post


@router.get("", response_model=List[ScheduledPostResponse])
async def list_scheduled_posts(
    status_filter: Optional[str] = Query(None, alias="status"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(ScheduledPost).where(ScheduledPost.user_id == current_user.id)
    if status_filter:
        query = query.where(ScheduledPost.status == status_filter)
    if start:
        query = query.where(ScheduledPost.scheduled_at >= as_utc(start))
    if end:
        query = query.where(ScheduledPost.scheduled_at <= as_utc(end))
    query = query.order_by(ScheduledPost.scheduled_at.asc())

    result = await db.execute(query)
    return result.scalars().unique().all()


@router.post("", response_model=ScheduledPostResponse, status_code=status.HTTP_201_CREATED)
async def create_scheduled_post(
    body: ScheduledPostCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Schedule a quiz for publication. The quiz becomes SCHEDULED.
    """
    scheduled_at = validate_schedule_time(body.scheduled_at)
    quiz = await get_user_quiz(db, current_user, body.quiz_id)
    await _raise_on_conflict(db, quiz.id, scheduled_at)

    try:
        await enforce_limit(db, current_user.id, SCHEDULED_POSTS)
    except UsageLimitExceeded as e:
        raise limit_exceeded_error(e)

    post = ScheduledPost(
        user_id=current_user.id,
        quiz_id=quiz.id,
        scheduled_at=scheduled_at,
        caption=body.caption,
        status=PostStatus.PENDING.value,
    )
    db.add(post)
    quiz.status = QuizStatus.SCHEDULED.value
    await db.commit()
    await db.refresh(post)

    await post_queue.enqueue(post.id, scheduled_at)
    logger.info("Scheduled quiz %s for %s", quiz.id, scheduled_at.isoformat())
    return post


@router.get("/{post_id}", response_model=ScheduledPostResponse)
async def get_scheduled_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_post(db, current_user, post_id)


@router.patch("/{post_id}", response_model=ScheduledPostResponse)
async def reschedule_post(
    post_id: str,
    body: ScheduledPostUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change the time and/or caption of a pending post.
    """
    post = await get_user_post(db, current_user, post_id)
    if post.status != PostStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending posts can be rescheduled",
        )

    if body.scheduled_at is not None:
        scheduled_at = validate_schedule_time(body.scheduled_at)
        await _raise_on_conflict(db, post.quiz_id, scheduled_at, exclude_id=post.id)
        post.scheduled_at = scheduled_at
    if "caption" in body.model_fields_set:
        post.caption = body.caption

    await db.commit()
    await db.refresh(post)

    if body.scheduled_at is not None:
        await post_queue.enqueue(post.id, post.scheduled_at)
    return post


@router.delete("/{post_id}")
async def delete_scheduled_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a post. A quiz left without posts goes back to READY.
    """
    post = await get_user_post(db, current_user, post_id)
    quiz = post.quiz
    await db.delete(post)
    await db.flush()

    remaining = (
        await db.execute(
            select(func.count(ScheduledPost.id)).where(ScheduledPost.quiz_id == post.quiz_id)
        )
    ).scalar() or 0
    if remaining == 0 and quiz is not None and quiz.status == QuizStatus.SCHEDULED.value:
        quiz.status = QuizStatus.READY.value
    await db.commit()

    await post_queue.remove(post_id)
    return {"success": True}


@router.post("/{post_id}/retry", response_model=ScheduledPostResponse)
async def retry_scheduled_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Put a failed post back in the queue.
    """
    post = await get_user_post(db, current_user, post_id)
    if post.status != PostStatus.FAILED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only failed posts can be retried",
        )
    if post.retry_count >= MAX_RETRY_ATTEMPTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Maximum retry attempts exceeded",
        )

    post.status = PostStatus.PENDING.value
    post.error_message = None
    post.retry_count += 1
    post.last_retry_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(post)

    await post_queue.enqueue(post.id, post.scheduled_at)
    return post
