"""Event data model for fieldsync."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


def ensure_not_blank(value: str, field_name: str) -> str:
    """Reject empty or whitespace-only text."""
    if not value or not value.strip():
        raise ValueError(f"{field_name} must not be empty")
    return value


class EventStatus(str, Enum):
    """Sync status enumeration."""
    PENDING = "PENDING"  # Created or modified locally, not yet confirmed
    SENT = "SENT"
    FAILED = "FAILED"  # Last attempt rejected, or retries exhausted


class EventType(str, Enum):
    """Event type enumeration."""
    ACCIDENT = "ACCIDENT"
    SERVICE = "SERVICE"
    TRANSFER = "TRANSFER"


class Event(BaseModel):
    """Field-recorded event against a physical object."""

    id: str = Field(..., description="Client-generated unique identifier (UUID v4)")
    object_id: str = Field(..., min_length=1, description="Reference to the external object")
    type: EventType = Field(..., description="Event type")
    comment: str = Field(..., description="Free-text description")
    occurred_at: datetime = Field(..., description="When the event happened in the real world")
    photo_uri: Optional[str] = Field(None, description="Opaque photo reference")
    status: EventStatus = Field(EventStatus.PENDING, description="Sync status")
    sync_attempts: int = Field(0, ge=0, description="Failed reconciliation attempts since last success")
    last_sync_error: Optional[str] = Field(None, description="Reason of the last failed sync")
    created_at: datetime = Field(..., description="Local creation timestamp")
    updated_at: datetime = Field(..., description="Last persisted mutation timestamp")
    server_id: Optional[str] = Field(None, description="Identifier assigned by the server on first sync")

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, value: str) -> str:
        return ensure_not_blank(value, "comment")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
