"""
Organization, membership and invitation schemas.
"""

import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def validate_slug(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Slug must be at least 3 characters")
    if not SLUG_PATTERN.match(value):
        raise ValueError("Slug may only contain lowercase letters, numbers and hyphens")
    return value


# ============================================================================
# Organizations
# ============================================================================


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    slug: str = Field(..., max_length=255)
    description: Optional[str] = None
    website: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str) -> str:
        return validate_slug(v)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    website: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime
    role: Optional[str] = None
    member_count: int = 0
    template_count: int = 0
    quiz_count: int = 0

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Members
# ============================================================================


class MemberAddRequest(BaseModel):
    email: Optional[str] = None
    user_id: Optional[str] = None
    role: Literal["ADMIN", "MEMBER"] = "MEMBER"


class MemberUpdateRequest(BaseModel):
    role: str


class MemberResponse(BaseModel):
    id: str
    organization_id: str
    user_id: str
    role: str
    status: str
    created_at: datetime
    email: Optional[str] = None
    name: Optional[str] = None


# ============================================================================
# Invitations
# ============================================================================


class InvitationCreateRequest(BaseModel):
    email: str = Field(..., max_length=255)
    role: Literal["ADMIN", "MEMBER"] = "MEMBER"

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("A valid email address is required")
        return v.strip().lower()


class InvitationResponse(BaseModel):
    id: str
    organization_id: str
    email: str
    role: str
    status: str
    token: str
    invited_by: Optional[str] = None
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationPublicResponse(BaseModel):
    organization_id: str
    organization_name: str
    email: str
    role: str
    status: str
    expires_at: datetime


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]
