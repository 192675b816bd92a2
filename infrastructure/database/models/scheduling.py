"""
Social post scheduling database models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

MAX_RETRY_ATTEMPTS = 3
MAX_FUTURE_DAYS = 365


class PostStatus(str, Enum):
    """Status of a scheduled post."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ScheduledPost(Base, TimestampMixin):
    """
    A quiz queued for publication on the connected Facebook page.
    """

    __tablename__ = "scheduled_posts"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=PostStatus.PENDING.value
    )
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Publishing metadata
    fb_post_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_retry_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    quiz = relationship("Quiz", lazy="joined")

    __table_args__ = (
        Index("ix_scheduled_posts_quiz_time", "quiz_id", "scheduled_at", unique=True),
        Index("ix_scheduled_posts_status_time", "status", "scheduled_at"),
        Index("ix_scheduled_posts_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledPost(id={self.id}, status={self.status}, scheduled_at={self.scheduled_at})>"

    @property
    def can_retry(self) -> bool:
        return self.status == PostStatus.FAILED.value and self.retry_count < MAX_RETRY_ATTEMPTS


class AutoScheduleSlot(Base, TimestampMixin):
    """Recurring weekly publishing slot (day_of_week 0 = Sunday)."""

    __tablename__ = "auto_schedule_slots"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:mm
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index(
            "ix_auto_schedule_slots_user_day_time",
            "user_id",
            "day_of_week",
            "time_of_day",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<AutoScheduleSlot(day={self.day_of_week}, time={self.time_of_day}, active={self.is_active})>"
