"""
Dictionary word usage routes.

Marks which answer words a user has already published, per language, so the
quiz generator can avoid repeating them.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.schemas.usage import WordListResponse, WordResetRequest, WordUsageRequest
from core.cache import word_usage_cache
from infrastructure.database.connection import get_db
from infrastructure.database.models import User, WordUsage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dictionary", tags=["dictionary"])


def _require_word(body: WordUsageRequest) -> str:
    word = (body.word or "").strip().lower()
    if not word:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Word is required",
        )
    return word


async def _find(db: AsyncSession, user_id: str, word: str, language: str) -> Optional[WordUsage]:
    result = await db.execute(
        select(WordUsage).where(
            WordUsage.user_id == user_id,
            WordUsage.word == word,
            WordUsage.language == language,
        )
    )
    return result.scalar_one_or_none()


@router.get("/word-usage")
async def get_word_usage(
    language: str = Query("fr", min_length=2, max_length=10),
    word: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if word:
        normalized = word.strip().lower()
        usage = await _find(db, current_user.id, normalized, language)
        return {"word": normalized, "is_used": bool(usage and usage.is_used)}

    result = await db.execute(
        select(WordUsage)
        .where(
            WordUsage.user_id == current_user.id,
            WordUsage.language == language,
            WordUsage.is_used.is_(True),
        )
        .order_by(WordUsage.used_at.desc())
    )
    return WordListResponse(words=result.scalars().all())


@router.post("/word-usage")
async def mark_word_used(
    body: WordUsageRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    word = _require_word(body)
    usage = await _find(db, current_user.id, word, body.language)
    now = datetime.now(timezone.utc)
    if usage is None:
        usage = WordUsage(
            user_id=current_user.id, word=word, language=body.language, is_used=True, used_at=now
        )
        db.add(usage)
    else:
        usage.is_used = True
        usage.used_at = now
    await db.commit()

    word_usage_cache.delete(f"{current_user.id}:{body.language}")
    return {"word": word, "language": body.language, "is_used": True, "used_at": now.isoformat()}


@router.put("/word-usage")
async def toggle_word_usage(
    body: WordUsageRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Flip a word between used and available.
    """
    word = _require_word(body)
    usage = await _find(db, current_user.id, word, body.language)
    if usage is not None and usage.is_used:
        await db.delete(usage)
        is_used = False
    else:
        if usage is None:
            db.add(
                WordUsage(
                    user_id=current_user.id,
                    word=word,
                    language=body.language,
                    is_used=True,
                    used_at=datetime.now(timezone.utc),
                )
            )
        else:
            usage.is_used = True
            usage.used_at = datetime.now(timezone.utc)
        is_used = True
    await db.commit()

    word_usage_cache.delete(f"{current_user.id}:{body.language}")
    return {"word": word, "language": body.language, "is_used": is_used}


@router.post("/word-usage/reset")
async def reset_word_usage(
    body: WordResetRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        delete(WordUsage).where(
            WordUsage.user_id == current_user.id,
            WordUsage.language == body.language,
        )
    )
    await db.commit()
    count = result.rowcount or 0

    word_usage_cache.delete(f"{current_user.id}:{body.language}")
    logger.info("User %s reset %d %s words", current_user.id, count, body.language)
    return {"message": f"Reset {count} words to available status", "count": count}
