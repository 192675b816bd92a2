"""
Content library and collection schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.schemas.quiz import Pagination
from infrastructure.database.models.content import ContentType


class ContentCreateRequest(BaseModel):
    content_type: ContentType
    value: str = Field(..., min_length=1, max_length=5000)
    format: Optional[str] = Field(None, max_length=100)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_used: bool = True


class ContentUpdateRequest(BaseModel):
    is_used: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class ContentResponse(BaseModel):
    id: str
    content_type: str
    value: str
    format: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="content_metadata")
    is_used: bool
    used_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContentTypeCount(BaseModel):
    content_type: str
    count: int


class ContentStats(BaseModel):
    total: int
    used: int
    unused: int
    by_type: List[ContentTypeCount]


class ContentListResponse(BaseModel):
    items: List[ContentResponse]
    pagination: Pagination
    stats: ContentStats


class CollectionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)


class CollectionResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    item_count: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CollectionItemRequest(BaseModel):
    content_id: str


class CollectionItemResponse(BaseModel):
    id: str
    collection_id: str
    content: ContentResponse
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CollectionDetailResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    items: List[CollectionItemResponse]
