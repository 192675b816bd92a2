"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .content import Collection, CollectionItem, ContentType, ContentUsage
from .facebook import FacebookSettings
from .generation import AdminAlert, GenerationLog
from .organization import (
    InvitationStatus,
    MemberRole,
    MembershipStatus,
    Organization,
    OrganizationInvitation,
    OrganizationMember,
)
from .quiz import BatchStage, BatchStatus, Quiz, QuizBatch, QuizStatus, QuizType, Template
from .scheduling import AutoScheduleSlot, PostStatus, ScheduledPost
from .subscription import Plan, Subscription, SubscriptionStatus
from .usage import UsageRecord, WordUsage
from .user import User, UserRole, UserStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
    "Organization",
    "OrganizationMember",
    "OrganizationInvitation",
    "MemberRole",
    "MembershipStatus",
    "InvitationStatus",
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "Template",
    "Quiz",
    "QuizBatch",
    "QuizType",
    "QuizStatus",
    "BatchStatus",
    "BatchStage",
    "ScheduledPost",
    "AutoScheduleSlot",
    "PostStatus",
    "FacebookSettings",
    "UsageRecord",
    "WordUsage",
    "ContentUsage",
    "ContentType",
    "Collection",
    "CollectionItem",
    "GenerationLog",
    "AdminAlert",
]
