"""
Content library routes.

Users keep a library of answer material (words, sequences, concepts and so
on) flagged as used or still available.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.schemas.content import (
    ContentCreateRequest,
    ContentListResponse,
    ContentResponse,
    ContentStats,
    ContentTypeCount,
    ContentUpdateRequest,
)
from api.schemas.quiz import Pagination
from api.utils import escape_like, total_pages
from infrastructure.database.connection import get_db
from infrastructure.database.models import ContentType, ContentUsage, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content-usage", tags=["content"])

DUPLICATE_CONTENT_MESSAGE = "This content already exists"


async def get_user_content(db: AsyncSession, user: User, content_id: str) -> ContentUsage:
    """
    Raises:
        HTTPException: 404 if the item does not exist or belongs to someone else
    """
    result = await db.execute(
        select(ContentUsage).where(ContentUsage.id == content_id, ContentUsage.user_id == user.id)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Content usage not found",
        )
    return item


async def content_stats(db: AsyncSession, user_id: str) -> ContentStats:
    """Totals over the whole library, ignoring any list filters."""
    result = await db.execute(
        select(ContentUsage.content_type, ContentUsage.is_used, func.count())
        .where(ContentUsage.user_id == user_id)
        .group_by(ContentUsage.content_type, ContentUsage.is_used)
    )
    used = unused = 0
    by_type: dict = {}
    for content_type, is_used, count in result.all():
        if is_used:
            used += count
        else:
            unused += count
        by_type[content_type] = by_type.get(content_type, 0) + count

    ranked = sorted(by_type.items(), key=lambda pair: (-pair[1], pair[0]))
    return ContentStats(
        total=used + unused,
        used=used,
        unused=unused,
        by_type=[ContentTypeCount(content_type=t, count=c) for t, c in ranked],
    )


@router.get("", response_model=ContentListResponse)
async def list_content(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    content_type: Optional[ContentType] = None,
    is_used: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the user's content, newest first.

    ``search`` matches the value or the format, case-insensitively.
    """
    query = select(ContentUsage).where(ContentUsage.user_id == current_user.id)
    if content_type:
        query = query.where(ContentUsage.content_type == content_type.value)
    if is_used is not None:
        query = query.where(ContentUsage.is_used.is_(is_used))
    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.where(
            or_(
                ContentUsage.value.ilike(pattern, escape="\\"),
                ContentUsage.format.ilike(pattern, escape="\\"),
            )
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(ContentUsage.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )

    return ContentListResponse(
        items=[ContentResponse.model_validate(item) for item in result.scalars().all()],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=total_pages(total, limit)),
        stats=await content_stats(db, current_user.id),
    )


@router.post("", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
async def create_content(
    body: ContentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    # A NULL format never trips the unique index, so look first
    existing = await db.execute(
        select(ContentUsage.id).where(
            ContentUsage.user_id == current_user.id,
            ContentUsage.content_type == body.content_type.value,
            ContentUsage.value == body.value,
            ContentUsage.format.is_(None) if body.format is None else ContentUsage.format == body.format,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_CONTENT_MESSAGE)

    item = ContentUsage(
        user_id=current_user.id,
        content_type=body.content_type.value,
        value=body.value,
        format=body.format,
        content_metadata=body.metadata,
        is_used=body.is_used,
        used_at=datetime.now(timezone.utc) if body.is_used else None,
    )
    db.add(item)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_CONTENT_MESSAGE)
    await db.refresh(item)

    logger.info("User %s added %s content %s", current_user.id, item.content_type, item.id)
    return item


@router.get("/{content_id}", response_model=ContentResponse)
async def get_content(
    content_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_content(db, current_user, content_id)


@router.put("/{content_id}", response_model=ContentResponse)
async def update_content(
    content_id: str,
    body: ContentUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the used flag and/or metadata. Marking an item used stamps
    ``used_at``; marking it unused keeps the last stamp.
    """
    item = await get_user_content(db, current_user, content_id)
    if body.is_used is not None:
        item.is_used = body.is_used
        if body.is_used:
            item.used_at = datetime.now(timezone.utc)
    if body.metadata is not None:
        item.content_metadata = body.metadata
    await db.commit()
    await db.refresh(item)
    return item


@router.delete("/{content_id}")
async def delete_content(
    content_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await get_user_content(db, current_user, content_id)
    await db.delete(item)
    await db.commit()
    return {"message": "Content usage deleted successfully"}
