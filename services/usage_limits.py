"""
Usage limit service.

Resolves the limits that apply to a user (defaults merged with the plans of
every organization they belong to), measures current usage and records
consumption per billing period.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import (
    DEFAULT_LIMITS,
    LIVE_COUNTED_RESOURCES,
    QUIZZES,
    RESOURCE_TYPES,
    SCHEDULED_POSTS,
    TEAM_MEMBERS,
    TEMPLATES,
    UNLIMITED,
    merge_limits,
    remaining,
)
from infrastructure.database.models.organization import (
    DEFAULT_MAX_MEMBERS,
    MembershipStatus,
    OrganizationMember,
)
from infrastructure.database.models.quiz import Quiz, Template
from infrastructure.database.models.scheduling import PostStatus, ScheduledPost
from infrastructure.database.models.subscription import (
    LIVE_SUBSCRIPTION_STATUSES,
    Plan,
    Subscription,
)
from infrastructure.database.models.usage import UsageRecord

logger = logging.getLogger(__name__)

_OPEN_POST_STATUSES = (PostStatus.PENDING.value, PostStatus.PROCESSING.value)


@dataclass
class LimitCheck:
    allowed: bool
    limit: int
    current: int
    remaining: int


class UsageLimitExceeded(Exception):
    """Raised when an operation would push a resource past its plan limit."""

    def __init__(self, resource: str, limit: int, current: int):
        self.resource = resource
        self.limit = limit
        self.current = current
        super().__init__(f"Usage limit exceeded for {resource} ({current}/{limit})")

    def to_detail(self) -> dict:
        return {
            "code": "LIMIT_EXCEEDED",
            "message": f"You have reached your {self.resource} limit",
            "resource": self.resource,
            "limit": self.limit,
            "current": self.current,
        }


def current_period(now: Optional[datetime] = None) -> str:
    """Billing period key, e.g. "2025-3" (month not zero-padded)."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.month}"


async def _count(db: AsyncSession, stmt) -> int:
    result = await db.execute(stmt)
    return result.scalar_one() or 0


async def get_user_limits(db: AsyncSession, user_id: str) -> Dict[str, int]:
    """Default limits merged with every live subscription the user can draw on."""
    stmt = (
        select(Plan.limits)
        .join(Subscription, Subscription.plan_id == Plan.id)
        .join(
            OrganizationMember,
            OrganizationMember.organization_id == Subscription.organization_id,
        )
        .where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.status == MembershipStatus.ACCEPTED.value,
            Subscription.status.in_(LIVE_SUBSCRIPTION_STATUSES),
            Plan.is_active.is_(True),
        )
    )
    result = await db.execute(stmt)
    limits = dict(DEFAULT_LIMITS)
    for plan_limits in result.scalars().all():
        limits = merge_limits(limits, plan_limits)
    return limits


async def get_user_usage(db: AsyncSession, user_id: str) -> Dict[str, int]:
    usage = {resource: 0 for resource in RESOURCE_TYPES}
    usage[QUIZZES] = await _count(
        db, select(func.count(Quiz.id)).where(Quiz.user_id == user_id)
    )
    usage[TEMPLATES] = await _count(
        db, select(func.count(Template.id)).where(Template.user_id == user_id)
    )
    usage[SCHEDULED_POSTS] = await _count(
        db,
        select(func.count(ScheduledPost.id)).where(
            ScheduledPost.user_id == user_id,
            ScheduledPost.status.in_(_OPEN_POST_STATUSES),
        ),
    )

    result = await db.execute(
        select(UsageRecord.resource_type, UsageRecord.count).where(
            UsageRecord.user_id == user_id,
            UsageRecord.period == current_period(),
        )
    )
    for resource_type, count in result.all():
        if resource_type in usage and resource_type not in LIVE_COUNTED_RESOURCES:
            usage[resource_type] = count
    return usage


async def check_limit(
    db: AsyncSession, user_id: str, resource: str, amount: int = 1
) -> LimitCheck:
    """Whether *amount* more units of *resource* fit in the user's limit."""
    limits = await get_user_limits(db, user_id)
    usage = await get_user_usage(db, user_id)
    limit = limits.get(resource, UNLIMITED)
    current = usage.get(resource, 0)
    allowed = limit == UNLIMITED or current + amount <= limit
    return LimitCheck(
        allowed=allowed,
        limit=limit,
        current=current,
        remaining=remaining(limit, current),
    )


async def enforce_limit(
    db: AsyncSession, user_id: str, resource: str, amount: int = 1
) -> LimitCheck:
    """
    Raise UsageLimitExceeded when the user cannot consume *amount* more units.

    Returns the LimitCheck otherwise.
    """
    check = await check_limit(db, user_id, resource, amount)
    if not check.allowed:
        logger.info(
            "Usage limit reached for user %s: %s %d/%d",
            user_id, resource, check.current, check.limit,
        )
        raise UsageLimitExceeded(resource, check.limit, check.current)
    return check


async def increment_usage(
    db: AsyncSession, user_id: str, resource: str, amount: int = 1
) -> UsageRecord:
    """Add *amount* to the user's counter for the current period, creating it if needed."""
    period = current_period()
    result = await db.execute(
        select(UsageRecord).where(
            UsageRecord.user_id == user_id,
            UsageRecord.resource_type == resource,
            UsageRecord.period == period,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = UsageRecord(
            user_id=user_id,
            resource_type=resource,
            period=period,
            count=amount,
        )
        db.add(record)
    else:
        record.count += amount
    await db.flush()
    return record


async def get_organization_limits(db: AsyncSession, organization_id: str) -> Dict[str, int]:
    """Plan limits of the organization's live subscription, else the defaults."""
    result = await db.execute(
        select(Subscription).where(Subscription.organization_id == organization_id)
    )
    subscription = result.scalar_one_or_none()
    limits = dict(DEFAULT_LIMITS)
    limits[TEAM_MEMBERS] = DEFAULT_MAX_MEMBERS
    if subscription and subscription.is_live and subscription.plan and subscription.plan.is_active:
        for resource, value in (subscription.plan.limits or {}).items():
            if resource in limits and isinstance(value, int):
                limits[resource] = value
        limits[TEAM_MEMBERS] = subscription.member_limit
    return limits


async def get_organization_usage(db: AsyncSession, organization_id: str) -> Dict[str, int]:
    return {
        QUIZZES: await _count(
            db, select(func.count(Quiz.id)).where(Quiz.organization_id == organization_id)
        ),
        TEMPLATES: await _count(
            db,
            select(func.count(Template.id)).where(Template.organization_id == organization_id),
        ),
        TEAM_MEMBERS: await _count(
            db,
            select(func.count(OrganizationMember.id)).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.status == MembershipStatus.ACCEPTED.value,
            ),
        ),
    }


async def check_organization_limits(db: AsyncSession, organization_id: str) -> Dict[str, dict]:
    """Per-resource ``{limit, current, allowed}`` for the organization."""
    limits = await get_organization_limits(db, organization_id)
    usage = await get_organization_usage(db, organization_id)
    report = {}
    for resource, current in usage.items():
        limit = limits.get(resource, UNLIMITED)
        report[resource] = {
            "limit": limit,
            "current": current,
            "allowed": limit == UNLIMITED or current < limit,
        }
    return report
