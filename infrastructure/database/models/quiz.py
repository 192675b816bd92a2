"""
Quiz, template and batch generation database models.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class QuizType(str, Enum):
    WORDLE = "WORDLE"
    NUMBER_SEQUENCE = "NUMBER_SEQUENCE"
    RHYME_TIME = "RHYME_TIME"
    CONCEPT_CONNECTION = "CONCEPT_CONNECTION"

    @property
    def display_name(self) -> str:
        """Human readable name, e.g. "Number Sequence"."""
        return self.value.replace("_", " ").title()


class QuizStatus(str, Enum):
    DRAFT = "DRAFT"
    READY = "READY"
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class BatchStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class BatchStage(str, Enum):
    PREPARING = "preparing"
    GENERATING = "generating"
    PROCESSING_IMAGES = "processing-images"
    COMPLETE = "complete"


class Template(Base, TimestampMixin):
    """HTML/CSS quiz layout with a declared set of variables."""

    __tablename__ = "templates"

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
    organization_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    html: Mapped[str] = mapped_column(Text, nullable=False)
    css: Mapped[str | None] = mapped_column(Text, nullable=True)
    quiz_type: Mapped[str] = mapped_column(String(50), nullable=False)
    variables: Mapped[dict] = mapped_column(JSON, nullable=False)
    # variables schema: {"title": "string", "subtitle": "string", ...}
    preview_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    __table_args__ = (Index("ix_templates_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Template(name={self.name}, quiz_type={self.quiz_type})>"


class Quiz(Base, TimestampMixin):
    """A single generated or hand-written quiz."""

    __tablename__ = "quizzes"

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
    organization_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    template_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    batch_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("quiz_batches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    quiz_type: Mapped[str] = mapped_column(String(50), nullable=False)
    variables: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    answer: Mapped[str] = mapped_column(String(500), nullable=False)
    solution: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=QuizStatus.DRAFT.value
    )

    template = relationship("Template", lazy="joined")

    __table_args__ = (
        Index("ix_quizzes_user_status", "user_id", "status"),
        Index("ix_quizzes_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Quiz(title={self.title}, status={self.status})>"


class QuizBatch(Base, TimestampMixin):
    """Tracks one background batch-generation run."""

    __tablename__ = "quiz_batches"

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

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=BatchStatus.PROCESSING.value
    )
    current_stage: Mapped[str] = mapped_column(
        String(50), nullable=False, default=BatchStage.PREPARING.value
    )
    template_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    current_template_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), nullable=True
    )

    total_count: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    images_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    theme: Mapped[str | None] = mapped_column(String(255), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    variety: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    time_slot_distribution: Mapped[list] = mapped_column(JSON, nullable=False)
    # time_slot_distribution schema:
    # [{"date": "2025-01-15", "slot_id": "morning", "weight": 2}, ...]

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_quiz_batches_user_status", "user_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<QuizBatch(status={self.status}, stage={self.current_stage}, "
            f"progress={self.completed_count}/{self.total_count})>"
        )

    @property
    def is_complete(self) -> bool:
        return self.status == BatchStatus.COMPLETE.value
