"""
Facebook page connection model.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class FacebookSettings(Base, TimestampMixin):
    """Facebook page a user publishes quizzes to. The page token is Fernet-encrypted."""

    __tablename__ = "facebook_settings"

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

    page_id: Mapped[str] = mapped_column(String(255), nullable=False)
    page_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    page_access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    is_connected: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<FacebookSettings(page_id={self.page_id}, connected={self.is_connected})>"
