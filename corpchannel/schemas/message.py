"""
Pydantic schemas for request/response validation.
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_REACTION_EMOJI = "❤️"
ANONYMOUS_USER_ID = "anonymous"


class MessageType(str, Enum):
    """Kinds of content a channel message can carry."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


# Field names are snake_case in Python and camelCase on the wire
CAMEL_CASE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class MessageCreate(BaseModel):
    """Request schema for POST /api/messages."""

    content: str = Field(..., description="Message text, may be empty for media-only posts")
    message_type: MessageType = Field(default=MessageType.TEXT)
    media_url: Optional[str] = Field(default=None, description="Servable path of an uploaded file")
    media_filename: Optional[str] = Field(default=None, description="Original upload filename")

    model_config = {
        **CAMEL_CASE_CONFIG,
        "json_schema_extra": {
            "example": {
                "content": "Quarterly all-hands starts at 10:00",
                "messageType": "text",
            }
        }
    }


class Message(BaseModel):
    """A single posted item in the channel."""

    id: str
    content: str = ""
    message_type: MessageType = MessageType.TEXT
    media_url: Optional[str] = None
    media_filename: Optional[str] = None
    view_count: int = Field(default=0, ge=0)
    is_pinned: int = Field(default=0, ge=0, le=1)
    reaction_count: int = Field(default=0, ge=0)
    reactions: Dict[str, List[str]] = Field(default_factory=dict)
    created_at: datetime

    model_config = {
        **CAMEL_CASE_CONFIG,
        "from_attributes": True,
        "extra": "ignore",
    }

    @field_validator("reactions", mode="before")
    @classmethod
    def decode_reactions(cls, v):
        """Accept reactions stored as JSON-encoded text by older data files."""
        if v is None:
            return {}
        if isinstance(v, str):
            return json.loads(v) if v.strip() else {}
        return v

    @field_validator("is_pinned", mode="before")
    @classmethod
    def normalize_pinned(cls, v):
        if isinstance(v, bool):
            return int(v)
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps (e.g. read back from SQLite) as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ReactionRequest(BaseModel):
    """Request schema for POST /api/messages/{id}/reaction."""
    user_id: Optional[str] = Field(default=None, description="Opaque caller identity")
    emoji: Optional[str] = Field(default=None)

    model_config = CAMEL_CASE_CONFIG


class SuccessResponse(BaseModel):
    """Response schema for per-message mutations."""
    success: bool = True


class HealthResponse(BaseModel):
    """Response schema for health endpoints."""
    status: str
    checks: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Standard error response schema."""
    detail: str
