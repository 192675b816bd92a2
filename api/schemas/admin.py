"""
Admin dashboard schemas: plans, subscriptions, organizations and analytics.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from api.schemas.organization import validate_slug
from core.plans import RESOURCE_TYPES

SubscriptionStatusValue = Literal["ACTIVE", "TRIALING", "PAST_DUE", "CANCELED"]


def _validate_limits(value: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
    if value is None:
        return value
    unknown = set(value) - set(RESOURCE_TYPES)
    if unknown:
        raise ValueError(f"Unknown resource types: {', '.join(sorted(unknown))}")
    for resource, limit in value.items():
        if limit < -1:
            raise ValueError(f"Limit for {resource} must be -1 (unlimited) or greater")
    return value


# ============================================================================
# Plans
# ============================================================================


class PlanCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price_monthly: int = Field(default=0, ge=0)
    limits: Dict[str, int] = Field(default_factory=dict)
    max_members: int = Field(default=5, ge=1)
    is_active: bool = True

    @field_validator("limits")
    @classmethod
    def check_limits(cls, v: Dict[str, int]) -> Dict[str, int]:
        return _validate_limits(v)


class PlanUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price_monthly: Optional[int] = Field(None, ge=0)
    limits: Optional[Dict[str, int]] = None
    max_members: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("limits")
    @classmethod
    def check_limits(cls, v: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
        return _validate_limits(v)


class PlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price_monthly: int
    limits: Dict[str, int]
    max_members: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Subscriptions
# ============================================================================


class SubscriptionCreateRequest(BaseModel):
    organization_id: str
    plan_id: str
    status: SubscriptionStatusValue = "ACTIVE"
    max_members: Optional[int] = Field(None, ge=1)


class SubscriptionUpdateRequest(BaseModel):
    plan_id: Optional[str] = None
    status: Optional[SubscriptionStatusValue] = None
    cancel_at_period_end: Optional[bool] = None
    max_members: Optional[int] = Field(None, ge=1)


class SubscriptionResponse(BaseModel):
    id: str
    organization_id: str
    plan_id: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    max_members: Optional[int] = None
    plan: Optional[PlanResponse] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Organizations
# ============================================================================


class AdminOrganizationCreateRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    slug: str = Field(..., max_length=255)
    description: Optional[str] = None
    owner_id: Optional[str] = None

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str) -> str:
        return validate_slug(v)


class AdminOrganizationItem(BaseModel):
    id: str
    name: str
    slug: str
    owner_id: str
    created_at: datetime
    member_count: int = 0
    template_count: int = 0
    quiz_count: int = 0
    subscription: Optional[SubscriptionResponse] = None


class AdminPagination(BaseModel):
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_more: bool


class AdminOrganizationListResponse(BaseModel):
    organizations: List[AdminOrganizationItem]
    pagination: AdminPagination


# ============================================================================
# Analytics
# ============================================================================


class GenerationLogResponse(BaseModel):
    id: str
    user_id: str
    resource_type: str
    resource_id: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    ai_model: Optional[str] = None
    duration_ms: Optional[int] = None
    input_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GenerationLogListResponse(BaseModel):
    items: List[GenerationLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AdminAlertResponse(BaseModel):
    id: str
    alert_type: str
    severity: str
    title: str
    message: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    is_read: bool
    is_resolved: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminAlertListResponse(BaseModel):
    items: List[AdminAlertResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AdminAlertUpdateRequest(BaseModel):
    is_read: Optional[bool] = None
    is_resolved: Optional[bool] = None
