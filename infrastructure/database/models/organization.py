"""
Organization and membership database models.
"""

import secrets
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, ensure_utc

MAX_OWNED_ORGANIZATIONS = 10
DEFAULT_MAX_MEMBERS = 5
INVITATION_TTL_DAYS = 7


class MemberRole(str, Enum):
    """Organization member role enumeration."""

    OWNER = "OWNER"  # Full control, can delete the organization
    ADMIN = "ADMIN"  # Manage members and settings
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class InvitationStatus(str, Enum):
    """Organization invitation status enumeration."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class Organization(Base, TimestampMixin):
    """Tenant that groups users, plans and content."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    owner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    members = relationship(
        "OrganizationMember",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="noload",
    )
    invitations = relationship(
        "OrganizationInvitation",
        back_populates="organization",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, slug={self.slug})>"


class OrganizationMember(Base, TimestampMixin):
    """Junction between users and organizations."""

    __tablename__ = "organization_members"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    organization_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[str] = mapped_column(
        String(50), default=MemberRole.MEMBER.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), default=MembershipStatus.ACCEPTED.value, nullable=False
    )

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", foreign_keys=[user_id], lazy="joined")

    __table_args__ = (
        Index(
            "ix_organization_members_org_user",
            "organization_id",
            "user_id",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationMember(id={self.id}, organization_id={self.organization_id}, "
            f"user_id={self.user_id}, role={self.role})>"
        )

    @property
    def is_manager(self) -> bool:
        """OWNER and ADMIN members may manage members and settings."""
        return self.role in (MemberRole.OWNER.value, MemberRole.ADMIN.value)

    @property
    def is_owner(self) -> bool:
        return self.role == MemberRole.OWNER.value


class OrganizationInvitation(Base, TimestampMixin):
    """Email invitation to join an organization."""

    __tablename__ = "organization_invitations"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    organization_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invited_by: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(
        String(50), default=MemberRole.MEMBER.value, nullable=False
    )

    token: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        default=lambda: secrets.token_urlsafe(32),
    )

    status: Mapped[str] = mapped_column(
        String(50), default=InvitationStatus.PENDING.value, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC) + timedelta(days=INVITATION_TTL_DAYS),
        nullable=False,
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    organization = relationship("Organization", back_populates="invitations", lazy="joined")

    __table_args__ = (
        Index("ix_organization_invitations_status", "organization_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationInvitation(id={self.id}, email={self.email}, "
            f"organization_id={self.organization_id}, status={self.status})>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING.value

    @property
    def is_expired(self) -> bool:
        return datetime.now(UTC) > ensure_utc(self.expires_at)
