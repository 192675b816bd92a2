"""
Recurring auto-schedule slot routes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from api.schemas.scheduling import (
    SlotBulkCreateRequest,
    SlotBulkOperationRequest,
    SlotCreateRequest,
    SlotResponse,
    SlotUpdateRequest,
)
from infrastructure.database.connection import get_db
from infrastructure.database.models import AutoScheduleSlot, PostStatus, ScheduledPost, User
from infrastructure.database.models.base import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auto-schedule-slots", tags=["scheduling"])

LOOKAHEAD_DAYS = 30


def day_of_week(day: datetime) -> int:
    """Sunday-based weekday (0 = Sunday)."""
    return (day.weekday() + 1) % 7


def next_available_time(
    slots: List[AutoScheduleSlot],
    taken: set,
    now: datetime,
    days: int = LOOKAHEAD_DAYS,
) -> datetime | None:
    """
    First active slot time after *now* not already taken by a pending post.

    *taken* holds UTC datetimes truncated to the minute.
    """
    by_day: Dict[int, List[str]] = {}
    for slot in slots:
        if slot.is_active:
            by_day.setdefault(slot.day_of_week, []).append(slot.time_of_day)

    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    for offset in range(days + 1):
        day = start + timedelta(days=offset)
        for time_of_day in sorted(by_day.get(day_of_week(day), [])):
            hour, minute = (int(part) for part in time_of_day.split(":"))
            candidate = day.replace(hour=hour, minute=minute)
            if candidate <= now or candidate in taken:
                continue
            return candidate
    return None


async def _get_user_slot(db: AsyncSession, user: User, slot_id: str) -> AutoScheduleSlot:
    result = await db.execute(
        select(AutoScheduleSlot).where(
            AutoScheduleSlot.id == slot_id, AutoScheduleSlot.user_id == user.id
        )
    )
    slot = result.scalar_one_or_none()
    if not slot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Time slot not found",
        )
    return slot


async def _slot_exists(db: AsyncSession, user_id: str, day: int, time_of_day: str) -> bool:
    result = await db.execute(
        select(AutoScheduleSlot.id).where(
            AutoScheduleSlot.user_id == user_id,
            AutoScheduleSlot.day_of_week == day,
            AutoScheduleSlot.time_of_day == time_of_day,
        )
    )
    return result.scalar_one_or_none() is not None


@router.get("", response_model=List[SlotResponse])
async def list_slots(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(AutoScheduleSlot)
        .where(AutoScheduleSlot.user_id == current_user.id)
        .order_by(AutoScheduleSlot.day_of_week.asc(), AutoScheduleSlot.time_of_day.asc())
    )
    return result.scalars().all()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_slots(
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create one slot, or several with ``{"slots": [...]}``.

    A single duplicate is a conflict; duplicates in a bulk request are skipped.
    """
    try:
        request: Union[SlotBulkCreateRequest, SlotCreateRequest]
        if "slots" in payload:
            request = SlotBulkCreateRequest.model_validate(payload)
        else:
            request = SlotCreateRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid time slot", "errors": e.errors(include_url=False, include_context=False)},
        )

    if isinstance(request, SlotCreateRequest):
        if await _slot_exists(db, current_user.id, request.day_of_week, request.time_of_day):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time slot already exists for this day and time",
            )
        slot = AutoScheduleSlot(user_id=current_user.id, **request.model_dump())
        db.add(slot)
        await db.commit()
        await db.refresh(slot)
        return SlotResponse.model_validate(slot)

    created = []
    seen = set()
    for item in request.slots:
        key = (item.day_of_week, item.time_of_day)
        if key in seen or await _slot_exists(db, current_user.id, *key):
            continue
        seen.add(key)
        slot = AutoScheduleSlot(user_id=current_user.id, **item.model_dump())
        db.add(slot)
        created.append(slot)
    await db.commit()
    for slot in created:
        await db.refresh(slot)

    return {
        "message": f"Created {len(created)} time slots",
        "slots": [SlotResponse.model_validate(slot) for slot in created],
    }


@router.get("/next-available")
async def get_next_available(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Next free slot time within the coming 30 days.
    """
    result = await db.execute(
        select(AutoScheduleSlot).where(
            AutoScheduleSlot.user_id == current_user.id,
            AutoScheduleSlot.is_active.is_(True),
        )
    )
    slots = result.scalars().all()
    if not slots:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No auto-schedule slots configured",
        )

    now = datetime.now(timezone.utc)
    posts = await db.execute(
        select(ScheduledPost.scheduled_at).where(
            ScheduledPost.user_id == current_user.id,
            ScheduledPost.status == PostStatus.PENDING.value,
            ScheduledPost.scheduled_at >= now,
        )
    )
    taken = {
        ensure_utc(scheduled_at).replace(second=0, microsecond=0)
        for scheduled_at in posts.scalars().all()
    }

    scheduled_at = next_available_time(slots, taken, now)
    if scheduled_at is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No available slots found in the next 30 days",
        )
    return {"scheduled_at": scheduled_at.isoformat()}


@router.post("/bulk")
async def bulk_slot_operation(
    body: SlotBulkOperationRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    base = AutoScheduleSlot.user_id == current_user.id

    if body.operation == "toggleByDay":
        if body.day_of_week is None or body.is_active is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Day of week and is_active are required for this operation",
            )
        result = await db.execute(
            update(AutoScheduleSlot)
            .where(base, AutoScheduleSlot.day_of_week == body.day_of_week)
            .values(is_active=body.is_active)
        )
        await db.commit()
        state = "activated" if body.is_active else "deactivated"
        return {
            "message": f"Successfully {state} all slots for the selected day",
            "count": result.rowcount or 0,
        }

    if body.operation == "deleteByDay":
        if body.day_of_week is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Day of week is required for this operation",
            )
        condition = AutoScheduleSlot.day_of_week == body.day_of_week
    elif body.operation == "deleteByTime":
        if not body.time_of_day:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Time of day is required for this operation",
            )
        condition = AutoScheduleSlot.time_of_day == body.time_of_day
    else:
        condition = AutoScheduleSlot.is_active.is_(False)

    result = await db.execute(delete(AutoScheduleSlot).where(base, condition))
    await db.commit()
    count = result.rowcount or 0
    return {"message": f"Deleted {count} time slots", "count": count}


@router.put("/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: str,
    body: SlotUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    slot = await _get_user_slot(db, current_user, slot_id)

    if body.time_of_day is not None and body.time_of_day != slot.time_of_day:
        if await _slot_exists(db, current_user.id, slot.day_of_week, body.time_of_day):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time slot already exists for this day and time",
            )
        slot.time_of_day = body.time_of_day
    if body.is_active is not None:
        slot.is_active = body.is_active

    await db.commit()
    await db.refresh(slot)
    return slot


@router.delete("/{slot_id}")
async def delete_slot(
    slot_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    slot = await _get_user_slot(db, current_user, slot_id)
    await db.delete(slot)
    await db.commit()
    return {"success": True}
