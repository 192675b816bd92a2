"""
Plan and subscription database models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


# Statuses under which plan limits apply
LIVE_SUBSCRIPTION_STATUSES = (
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.TRIALING.value,
)

# Statuses that keep a plan from being deleted
IN_USE_SUBSCRIPTION_STATUSES = LIVE_SUBSCRIPTION_STATUSES + (SubscriptionStatus.PAST_DUE.value,)


class Plan(Base, TimestampMixin):
    """Admin-managed plan with per-resource limits."""

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_monthly: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """Price in cents."""

    limits: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    """
    Structure (resource type -> limit, -1 for unlimited):
    {
        "quizzes": 100,
        "templates": 20,
        "scheduledPosts": -1,
        ...
    }
    """

    max_members: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, name={self.name}, is_active={self.is_active})>"


class Subscription(Base, TimestampMixin):
    """Binds one organization to one plan."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    organization_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    plan_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(50), default=SubscriptionStatus.ACTIVE.value, nullable=False
    )
    current_period_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    current_period_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    max_members: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    plan = relationship("Plan", lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, organization_id={self.organization_id}, "
            f"plan_id={self.plan_id}, status={self.status})>"
        )

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_SUBSCRIPTION_STATUSES

    @property
    def member_limit(self) -> int:
        if self.max_members is not None:
            return self.max_members
        if self.plan is not None:
            return self.plan.max_members
        return 5
