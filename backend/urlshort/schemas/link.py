from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ShortenRequest(BaseModel):
    """Schema for creating a new short link"""
    url: str = Field(..., description="Original URL to shorten")


class ShortenResponse(BaseModel):
    """Schema for a created (or existing) short link"""
    short_code: str
    short_url: str
    original_url: str
    created_at: Optional[datetime] = None


class LinkStats(BaseModel):
    """Read-only statistics view of a short link"""
    short_code: str
    original_url: str
    created_at: Optional[datetime] = None
    total_clicks: int
    last_clicked_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True
