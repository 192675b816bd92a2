"""
Content library: answer material a user has collected, and named
collections grouping it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class ContentType(str, Enum):
    WORD = "WORD"
    NUMBER = "NUMBER"
    SEQUENCE = "SEQUENCE"
    CONCEPT = "CONCEPT"
    RHYME = "RHYME"
    CUSTOM = "CUSTOM"


class ContentUsage(Base, TimestampMixin):
    """One piece of quiz content and whether it has been used yet."""

    __tablename__ = "content_usages"

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
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    format: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Free-form qualifier, e.g. the sequence rule or the rhyme pattern."""
    content_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "ix_content_usages_user_type_value_format",
            "user_id",
            "content_type",
            "value",
            "format",
            unique=True,
        ),
        Index("ix_content_usages_user_used", "user_id", "is_used"),
    )

    def __repr__(self) -> str:
        return f"<ContentUsage(type={self.content_type}, value={self.value[:30]}, used={self.is_used})>"


class Collection(Base, TimestampMixin):
    __tablename__ = "collections"

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
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items = relationship(
        "CollectionItem",
        back_populates="collection",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, name={self.name})>"


class CollectionItem(Base, TimestampMixin):
    """Membership of one content item in one collection."""

    __tablename__ = "collection_items"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    collection_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("content_usages.id", ondelete="CASCADE"),
        nullable=False,
    )

    collection = relationship("Collection", back_populates="items")
    content = relationship("ContentUsage", lazy="joined")

    __table_args__ = (
        Index("ix_collection_items_collection_content", "collection_id", "content_id", unique=True),
    )
