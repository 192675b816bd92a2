"""
Admin analytics API routes: platform overview, generation logs, alerts
and in-process metrics.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.schemas.admin import (
    AdminAlertListResponse,
    AdminAlertResponse,
    AdminAlertUpdateRequest,
    GenerationLogListResponse,
    GenerationLogResponse,
)
from api.utils import total_pages
from core.cache import all_cache_stats
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    AdminAlert,
    GenerationLog,
    Organization,
    Plan,
    Quiz,
    QuizBatch,
    ScheduledPost,
    Subscription,
    Template,
    User,
)
from infrastructure.database.models.subscription import LIVE_SUBSCRIPTION_STATUSES
from services.request_metrics import request_metrics
from services.task_queue import task_queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin - Analytics"])

OVERVIEW_WINDOW = timedelta(days=30)


async def _count(db: AsyncSession, column, *conditions) -> int:
    result = await db.execute(select(func.count(column)).where(*conditions))
    return result.scalar() or 0


async def _grouped(db: AsyncSession, column, id_column) -> dict:
    result = await db.execute(select(column, func.count(id_column)).group_by(column))
    return {key: count for key, count in result.all()}


@router.get("/analytics/overview")
async def analytics_overview(
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Platform totals and 30-day AI generation success rate."""
    since = datetime.now(timezone.utc) - OVERVIEW_WINDOW

    plan_rows = await db.execute(
        select(Plan.name, func.count(Subscription.id))
        .join(Subscription, Subscription.plan_id == Plan.id)
        .where(Subscription.status.in_(LIVE_SUBSCRIPTION_STATUSES))
        .group_by(Plan.name)
    )

    generations = await _grouped_since(db, since)
    attempted = sum(
        count for key, count in generations.items() if key in ("success", "fallback", "failed")
    )
    succeeded = generations.get("success", 0) + generations.get("fallback", 0)

    return {
        "users": {
            "total": await _count(db, User.id),
            "new_last_30_days": await _count(db, User.id, User.created_at >= since),
        },
        "organizations": await _count(db, Organization.id),
        "templates": await _count(db, Template.id),
        "quizzes": {
            "total": await _count(db, Quiz.id),
            "by_status": await _grouped(db, Quiz.status, Quiz.id),
        },
        "scheduled_posts": {
            "total": await _count(db, ScheduledPost.id),
            "by_status": await _grouped(db, ScheduledPost.status, ScheduledPost.id),
        },
        "batches": await _grouped(db, QuizBatch.status, QuizBatch.id),
        "subscriptions": {
            "active": await _count(
                db, Subscription.id, Subscription.status.in_(LIVE_SUBSCRIPTION_STATUSES)
            ),
            "by_plan": {name: count for name, count in plan_rows.all()},
        },
        "ai_generations": {
            "total": attempted,
            "by_status": generations,
            "success_rate": round(succeeded / attempted * 100, 1) if attempted else None,
        },
    }


async def _grouped_since(db: AsyncSession, since: datetime) -> dict:
    result = await db.execute(
        select(GenerationLog.status, func.count(GenerationLog.id))
        .where(GenerationLog.created_at >= since)
        .group_by(GenerationLog.status)
    )
    return {key: count for key, count in result.all()}


@router.get("/analytics/generations", response_model=GenerationLogListResponse)
async def list_generation_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    resource_type: str | None = Query(None, description="Filter: quiz_content, quiz_image, field"),
    status_filter: str | None = Query(
        None, alias="status", description="Filter: started, success, fallback, failed"
    ),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if resource_type:
        conditions.append(GenerationLog.resource_type == resource_type)
    if status_filter:
        conditions.append(GenerationLog.status == status_filter)

    total = await _count(db, GenerationLog.id, *conditions)

    result = await db.execute(
        select(GenerationLog)
        .where(*conditions)
        .order_by(desc(GenerationLog.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return GenerationLogListResponse(
        items=[GenerationLogResponse.model_validate(log) for log in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/analytics/alerts", response_model=AdminAlertListResponse)
async def list_alerts(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    is_read: bool | None = Query(None, description="Filter by read status"),
    is_resolved: bool | None = Query(None, description="Filter by resolved status"),
    severity: str | None = Query(None, description="Filter: info, warning, critical"),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if is_read is not None:
        conditions.append(AdminAlert.is_read == is_read)
    if is_resolved is not None:
        conditions.append(AdminAlert.is_resolved == is_resolved)
    if severity:
        conditions.append(AdminAlert.severity == severity)

    total = await _count(db, AdminAlert.id, *conditions)

    result = await db.execute(
        select(AdminAlert)
        .where(*conditions)
        .order_by(desc(AdminAlert.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return AdminAlertListResponse(
        items=[AdminAlertResponse.model_validate(alert) for alert in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.patch("/analytics/alerts/{alert_id}", response_model=AdminAlertResponse)
async def update_alert(
    alert_id: str,
    body: AdminAlertUpdateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark an alert as read or resolved."""
    alert = await db.get(AdminAlert, alert_id)
    if not alert:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found",
        )

    if body.is_read is not None:
        alert.is_read = body.is_read
    if body.is_resolved is not None:
        alert.is_resolved = body.is_resolved
        # resolving implies read
        if body.is_resolved:
            alert.is_read = True

    await db.commit()
    await db.refresh(alert)
    return alert


@router.get("/metrics")
async def process_metrics(
    admin_user: User = Depends(get_current_admin_user),
):
    """In-process metrics: background tasks, caches and request timings."""
    return {
        "task_queue": task_queue.stats(),
        "caches": all_cache_stats(),
        "requests": request_metrics.snapshot(),
    }
