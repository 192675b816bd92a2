"""
Usage and dictionary word schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageResponse(BaseModel):
    period: str
    limits: Dict[str, int]
    usage: Dict[str, int]
    remaining: Dict[str, int]


class OrganizationUsageResponse(BaseModel):
    organization_id: str
    limits: Dict[str, int]
    usage: Dict[str, int]
    checks: Dict[str, dict]


class WordUsageRequest(BaseModel):
    word: Optional[str] = Field(None, max_length=100)
    language: str = Field(default="fr", min_length=2, max_length=10)


class WordResetRequest(BaseModel):
    language: str = Field(default="fr", min_length=2, max_length=10)


class WordUsageResponse(BaseModel):
    word: str
    language: str
    is_used: bool
    used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WordListResponse(BaseModel):
    words: List[WordUsageResponse]
