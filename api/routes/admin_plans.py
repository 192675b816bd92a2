"""
Admin plan and subscription management.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.schemas.admin import (
    PlanCreateRequest,
    PlanResponse,
    PlanUpdateRequest,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)
from infrastructure.database.connection import get_db
from infrastructure.database.models import Organization, Plan, Subscription, SubscriptionStatus, User
from infrastructure.database.models.subscription import IN_USE_SUBSCRIPTION_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin - Plans"])

SUBSCRIPTION_PERIOD = timedelta(days=30)


async def _get_plan(db: AsyncSession, plan_id: str) -> Plan:
    plan = await db.get(Plan, plan_id)
    if not plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found",
        )
    return plan


async def _plan_name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
    stmt = select(Plan.id).where(Plan.name == name)
    if exclude_id:
        stmt = stmt.where(Plan.id != exclude_id)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def _get_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    subscription = await db.get(Subscription, subscription_id)
    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return subscription


# ============================================================================
# Plans
# ============================================================================


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(
    include_inactive: bool = Query(False),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Plan).order_by(Plan.price_monthly.asc(), Plan.name.asc())
    if not include_inactive:
        query = query.where(Plan.is_active.is_(True))
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    body: PlanCreateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    if await _plan_name_taken(db, body.name):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A plan with this name already exists",
        )

    plan = Plan(**body.model_dump())
    db.add(plan)
    await db.commit()
    await db.refresh(plan)

    logger.info("Admin %s created plan %s", admin_user.id, plan.name)
    return plan


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: str,
    body: PlanUpdateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    plan = await _get_plan(db, plan_id)
    update_data = body.model_dump(exclude_unset=True)

    if update_data.get("name") and await _plan_name_taken(db, update_data["name"], plan.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A plan with this name already exists",
        )

    for field, value in update_data.items():
        if value is not None:
            setattr(plan, field, value)

    await db.commit()
    await db.refresh(plan)
    return plan


@router.delete("/plans/{plan_id}")
async def delete_plan(
    plan_id: str,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a plan. Plans still referenced by cancelled subscriptions are
    deactivated instead; plans with live subscriptions cannot be removed.
    """
    plan = await _get_plan(db, plan_id)

    live = await db.execute(
        select(func.count(Subscription.id)).where(
            Subscription.plan_id == plan.id,
            Subscription.status.in_(IN_USE_SUBSCRIPTION_STATUSES),
        )
    )
    if (live.scalar() or 0) > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Plan is in use by active subscriptions",
        )

    referenced = await db.execute(
        select(func.count(Subscription.id)).where(Subscription.plan_id == plan.id)
    )
    if (referenced.scalar() or 0) > 0:
        plan.is_active = False
        await db.commit()
        return {"success": True, "deactivated": True}

    await db.delete(plan)
    await db.commit()
    logger.info("Admin %s deleted plan %s", admin_user.id, plan_id)
    return {"success": True, "deactivated": False}


# ============================================================================
# Subscriptions
# ============================================================================


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    status_filter: Optional[str] = Query(None, alias="status"),
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Subscription).order_by(Subscription.created_at.desc())
    if status_filter:
        query = query.where(Subscription.status == status_filter.upper())
    result = await db.execute(query)
    return result.scalars().unique().all()


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_subscription(
    body: SubscriptionCreateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Put an organization on a plan for a 30-day period, replacing any
    existing subscription.
    """
    plan = await _get_plan(db, body.plan_id)
    if not await db.get(Organization, body.organization_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )

    result = await db.execute(
        select(Subscription).where(Subscription.organization_id == body.organization_id)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        await db.delete(existing)
        await db.flush()

    now = datetime.now(timezone.utc)
    subscription = Subscription(
        organization_id=body.organization_id,
        plan_id=plan.id,
        status=body.status,
        current_period_start=now,
        current_period_end=now + SUBSCRIPTION_PERIOD,
        cancel_at_period_end=False,
        max_members=body.max_members,
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)

    logger.info(
        "Admin %s assigned plan %s to organization %s",
        admin_user.id, plan.name, body.organization_id,
    )
    return subscription


@router.patch("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: str,
    body: SubscriptionUpdateRequest,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, subscription_id)

    if body.plan_id is not None:
        plan = await _get_plan(db, body.plan_id)
        subscription.plan_id = plan.id
    if body.status is not None:
        subscription.status = body.status
    if body.cancel_at_period_end is not None:
        subscription.cancel_at_period_end = body.cancel_at_period_end
    if body.max_members is not None:
        subscription.max_members = body.max_members

    await db.commit()
    await db.refresh(subscription)
    return subscription


@router.delete("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    admin_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, subscription_id)
    subscription.status = SubscriptionStatus.CANCELED.value
    subscription.cancel_at_period_end = True
    await db.commit()
    await db.refresh(subscription)
    return subscription
