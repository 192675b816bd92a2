"""
Facebook page settings schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class FacebookSettingsRequest(BaseModel):
    # Optional so a missing field gets the explicit 400 message from the route
    page_id: Optional[str] = Field(None, max_length=255)
    page_access_token: Optional[str] = None
    page_name: Optional[str] = Field(None, max_length=255)


class FacebookTokenTestRequest(BaseModel):
    page_access_token: str = Field(..., min_length=1)


class FacebookSettingsResponse(BaseModel):
    is_connected: bool
    page_id: Optional[str] = None
    page_name: Optional[str] = None
