"""
Usage counters and dictionary word tracking.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UsageRecord(Base, TimestampMixin):
    """Per-user counter for one resource type in one billing period."""

    __tablename__ = "usage_records"

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
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    """Billing period key "YYYY-M", month not zero-padded."""
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index(
            "ix_usage_records_user_resource_period",
            "user_id",
            "resource_type",
            "period",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<UsageRecord(resource={self.resource_type}, period={self.period}, count={self.count})>"


class WordUsage(Base, TimestampMixin):
    """Marks a dictionary word as already used for a user and language."""

    __tablename__ = "word_usages"

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
    word: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="fr")
    is_used: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_word_usages_user_word_lang", "user_id", "word", "language", unique=True),
    )

    def __repr__(self) -> str:
        return f"<WordUsage(word={self.word}, language={self.language}, used={self.is_used})>"
