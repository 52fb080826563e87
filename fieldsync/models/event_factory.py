"""Event creation factory for fieldsync.

This module centralizes event creation so that every new event starts
with the same bookkeeping: a fresh id, PENDING status and zero attempts.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from fieldsync.models.event import Event, EventStatus, EventType


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_event_id() -> str:
    return str(uuid.uuid4())


def create_event_base(
    object_id: str,
    type: EventType,
    comment: str,
    occurred_at: datetime,
    photo_uri: Optional[str] = None,
) -> Event:
    """Create an event for a user intent, before any persistence decision.

    Args:
        object_id: Reference to the external object (not validated here)
        type: Event type
        comment: Free-text description (non-empty)
        occurred_at: Real-world occurrence timestamp
        photo_uri: Optional opaque photo reference

    Returns:
        Event in PENDING status with zero sync attempts
    """
    now = utc_now()
    return Event(
        id=new_event_id(),
        object_id=object_id,
        type=type,
        comment=comment,
        occurred_at=occurred_at,
        photo_uri=photo_uri,
        status=EventStatus.PENDING,
        sync_attempts=0,
        last_sync_error=None,
        created_at=now,
        updated_at=now,
        server_id=None,
    )
