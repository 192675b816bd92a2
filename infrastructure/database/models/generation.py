"""
Generation tracking and admin alert database models.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Index, Integer, String, Text, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class GenerationLog(Base, TimestampMixin):
    """Tracks each AI generation attempt (quiz content, quiz image, single field)."""

    __tablename__ = "generation_logs"

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

    resource_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    """Values: 'quiz_content', 'quiz_image', 'field'"""

    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Template or quiz the generation was made for."""

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    """Values: 'started', 'success', 'fallback', 'failed'"""

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ai_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    input_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "quiz_type": "WORDLE",
        "theme": "...",
        "difficulty": "medium",
        "language": "en"
    }
    """

    __table_args__ = (
        Index("ix_generation_logs_user_resource", "user_id", "resource_type"),
        Index("ix_generation_logs_created", "created_at"),
        Index("ix_generation_logs_status_type", "status", "resource_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<GenerationLog(id={self.id}, resource_type={self.resource_type}, "
            f"status={self.status}, user_id={self.user_id})>"
        )


class AdminAlert(Base, TimestampMixin):
    """Admin-facing alerts for notable system events."""

    __tablename__ = "admin_alerts"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    alert_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    """Currently only 'generation_failed', raised by the generation tracker"""

    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="warning",
    )
    """Values: 'info', 'warning', 'critical'"""

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    resource_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_admin_alerts_unread", "is_read", "created_at"),
        Index("ix_admin_alerts_type_severity", "alert_type", "severity"),
    )

    def __repr__(self) -> str:
        return (
            f"<AdminAlert(id={self.id}, alert_type={self.alert_type}, "
            f"severity={self.severity}, is_resolved={self.is_resolved})>"
        )
