"""
Quiz generation and AI request/response schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Difficulty = Literal["easy", "medium", "hard"]
BatchDifficulty = Literal["easy", "medium", "hard", "progressive"]
AILanguage = Literal["en", "es", "fr", "de", "it", "pt", "nl"]

BATCH_REQUIRED_FIELDS = ("template_ids", "count", "time_slot_distribution")


class ContentGenerateRequest(BaseModel):
    template_id: str
    language: str = Field(default="en", min_length=2, max_length=10)
    theme: Optional[str] = Field(None, max_length=255)
    difficulty: Difficulty = "medium"


class GeneratedContentResponse(BaseModel):
    title: str
    subtitle: str
    branding_text: str
    hint: str
    answer: str
    solution: str
    variables: Dict[str, Any]


class TimeSlotEntry(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}")
    slot_id: str
    weight: float = Field(default=1, gt=0)


class BatchCreateRequest(BaseModel):
    """
    Batch generation request.

    ``count`` is capped by ``batch_max_count`` in the route since the cap is
    configurable.
    """

    template_ids: List[str] = Field(..., min_length=1)
    count: int = Field(..., gt=0)
    time_slot_distribution: List[TimeSlotEntry] = Field(..., min_length=1)
    theme: Optional[str] = Field(None, max_length=255)
    difficulty: BatchDifficulty = "medium"
    variety: int = Field(default=50, ge=0, le=100)
    language: str = Field(default="en", min_length=2, max_length=10)


class BatchCreateResponse(BaseModel):
    batch_id: str
    status: str


class GeneratedQuizSummary(BaseModel):
    id: str
    title: str
    type: str
    scheduled_at: Optional[datetime] = None
    image_url: Optional[str] = None
    created_at: datetime


class BatchStatusResponse(BaseModel):
    batch_id: str
    is_complete: bool
    status: str
    completed_count: int
    total_count: int
    current_template: Optional[str] = None
    stage: str
    generated_quizzes: List[GeneratedQuizSummary]
    images_completed: int
    error_message: Optional[str] = None


class BatchResponse(BaseModel):
    id: str
    status: str
    current_stage: str
    template_ids: List[str]
    total_count: int
    completed_count: int
    images_completed: int
    theme: Optional[str] = None
    difficulty: str
    language: str
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FieldGenerateRequest(BaseModel):
    field: str = Field(..., min_length=1, max_length=100)
    context: str = Field(default="", max_length=1000)
    template_type: str = Field(..., min_length=1, max_length=50)
    language: AILanguage = "en"
    word_only: bool = False


class AIConfigResponse(BaseModel):
    anthropic_configured: bool
    replicate_configured: bool
    model: str
