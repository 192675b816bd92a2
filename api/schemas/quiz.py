"""
Template and quiz request/response schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from infrastructure.database.models.quiz import QuizStatus, QuizType


def _validate_quiz_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    valid = {t.value for t in QuizType}
    if value not in valid:
        raise ValueError(f"quiz_type must be one of: {', '.join(sorted(valid))}")
    return value


# ============================================================================
# Templates
# ============================================================================


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    html: str = Field(..., min_length=1)
    css: Optional[str] = None
    quiz_type: str
    variables: Dict[str, Any]
    description: Optional[str] = None
    organization_id: Optional[str] = None

    @field_validator("quiz_type")
    @classmethod
    def validate_quiz_type(cls, v: str) -> str:
        return _validate_quiz_type(v)

    @field_validator("variables")
    @classmethod
    def variables_not_empty(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("variables must be a non-empty object")
        return v


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    html: Optional[str] = Field(None, min_length=1)
    css: Optional[str] = None
    variables: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


class TemplateResponse(BaseModel):
    id: str
    user_id: str
    organization_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    html: str
    css: Optional[str] = None
    quiz_type: str
    variables: Dict[str, Any]
    preview_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TemplateSummary(BaseModel):
    """Template fields embedded in a quiz detail response."""

    id: str
    name: str
    quiz_type: str
    html: str
    css: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Quizzes
# ============================================================================


class QuizCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    quiz_type: str
    template_id: str
    variables: Dict[str, Any]
    answer: str = Field(..., min_length=1, max_length=500)
    solution: Optional[str] = None
    language: str = Field(default="en", min_length=2, max_length=10)
    image_url: Optional[str] = Field(None, max_length=2048)

    @field_validator("quiz_type")
    @classmethod
    def validate_quiz_type(cls, v: str) -> str:
        return _validate_quiz_type(v)


class QuizUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    variables: Optional[Dict[str, Any]] = None
    template_id: Optional[str] = None
    answer: Optional[str] = Field(None, min_length=1, max_length=500)
    solution: Optional[str] = None
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        valid = {s.value for s in QuizStatus}
        if v not in valid:
            raise ValueError(f"status must be one of: {', '.join(sorted(valid))}")
        return v


class QuizResponse(BaseModel):
    id: str
    user_id: str
    organization_id: Optional[str] = None
    template_id: str
    batch_id: Optional[str] = None
    title: str
    quiz_type: str
    variables: Dict[str, Any]
    answer: str
    solution: Optional[str] = None
    language: str
    image_url: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QuizDetailResponse(QuizResponse):
    template: Optional[TemplateSummary] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class QuizListResponse(BaseModel):
    data: List[QuizResponse]
    pagination: Pagination


class QuizSearchResult(BaseModel):
    id: str
    title: str
    image_url: Optional[str] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class QuizImageResponse(BaseModel):
    id: str
    image_url: str
