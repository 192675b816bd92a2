"""
Daily publishing availability.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from infrastructure.database.connection import get_db
from infrastructure.database.models import PostStatus, ScheduledPost, User
from infrastructure.database.models.base import ensure_utc

router = APIRouter(prefix="/slots", tags=["scheduling"])

FIRST_HOUR = 9
LAST_HOUR = 21


@router.get("/available")
async def get_available_slots(
    date: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Hourly slots from 09:00 to 21:00 UTC on *date* not used by an open post.
    """
    try:
        day = datetime.strptime(date or "", "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A valid date (YYYY-MM-DD) is required",
        )

    result = await db.execute(
        select(ScheduledPost.scheduled_at).where(
            ScheduledPost.user_id == current_user.id,
            ScheduledPost.status.in_((PostStatus.PENDING.value, PostStatus.PROCESSING.value)),
            ScheduledPost.scheduled_at >= day,
            ScheduledPost.scheduled_at < day + timedelta(days=1),
        )
    )
    taken = {
        ensure_utc(scheduled_at).strftime("%H:%M") for scheduled_at in result.scalars().all()
    }

    slots = []
    for hour in range(FIRST_HOUR, LAST_HOUR + 1):
        slot_time = day.replace(hour=hour)
        label = slot_time.strftime("%H:%M")
        if label in taken:
            continue
        slots.append({"time": label, "datetime": slot_time.isoformat()})

    return {"date": day.strftime("%Y-%m-%d"), "slots": slots}
