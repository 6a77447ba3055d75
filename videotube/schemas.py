from typing import Optional
from pydantic import BaseModel, Field


# Response Models
class DateTimeResponse(BaseModel):
    """Schema for datetime responses with timezone information"""
    iso: str  # ISO 8601 format with timezone
    timestamp: float  # Unix timestamp in seconds
    timezone: str  # UTC offset string

class APIResponse(BaseModel):
    status: str
    message: str
    data: Optional[dict] = None


# Comment Schemas
class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


# Playlist Schemas
class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
