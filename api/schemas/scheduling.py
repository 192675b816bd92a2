"""
Scheduled post and auto-schedule slot schemas.
"""

import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIME_OF_DAY_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


# ============================================================================
# Scheduled posts
# ============================================================================


class ScheduledPostCreateRequest(BaseModel):
    quiz_id: str
    scheduled_at: datetime
    caption: Optional[str] = Field(None, max_length=63206)


class ScheduledPostUpdateRequest(BaseModel):
    scheduled_at: Optional[datetime] = None
    caption: Optional[str] = Field(None, max_length=63206)


class QuizSummary(BaseModel):
    id: str
    title: str
    quiz_type: str
    image_url: Optional[str] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class ScheduledPostResponse(BaseModel):
    id: str
    user_id: str
    quiz_id: str
    scheduled_at: datetime
    status: str
    caption: Optional[str] = None
    fb_post_id: Optional[str] = None
    published_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int
    last_retry_at: Optional[datetime] = None
    created_at: datetime
    quiz: Optional[QuizSummary] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Auto-schedule slots
# ============================================================================


class SlotCreateRequest(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    time_of_day: str
    is_active: bool = True

    @field_validator("time_of_day")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not TIME_OF_DAY_PATTERN.match(v):
            raise ValueError("time_of_day must be HH:mm (24-hour)")
        return v


class SlotBulkCreateRequest(BaseModel):
    slots: List[SlotCreateRequest] = Field(..., min_length=1)


class SlotUpdateRequest(BaseModel):
    time_of_day: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("time_of_day")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not TIME_OF_DAY_PATTERN.match(v):
            raise ValueError("time_of_day must be HH:mm (24-hour)")
        return v


class SlotBulkOperationRequest(BaseModel):
    operation: Literal["toggleByDay", "deleteByDay", "deleteByTime", "deleteInactive"]
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    time_of_day: Optional[str] = None
    is_active: Optional[bool] = None


class SlotResponse(BaseModel):
    id: str
    day_of_week: int
    time_of_day: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
