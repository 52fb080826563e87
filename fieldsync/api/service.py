"""Client-facing façade over the sync engine.

Reads go through a short-lived cache; every mutation refreshes or drops
the cached entries it affects so the next read is fresh.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from fieldsync.api.cache import QueryCache
from fieldsync.engine.sync_engine import SyncEngine
from fieldsync.models.constants import EVENT_DETAIL_STALE_SEC, EVENT_LIST_STALE_SEC
from fieldsync.models.event import Event, EventStatus, EventType, ensure_not_blank
from fieldsync.models.event_factory import create_event_base
from fieldsync.models.sync_report import SyncReport

logger = logging.getLogger(__name__)

EVENT_LIST_KEY = ("events", "list")


def event_detail_key(event_id: str) -> tuple:
    return ("events", "detail", event_id)


class EventCreate(BaseModel):
    """Create intent coming from presentation code."""
    object_id: str = Field(..., min_length=1)
    type: EventType
    comment: str
    occurred_at: datetime
    photo_uri: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, value: str) -> str:
        return ensure_not_blank(value, "comment")


class EventUpdate(BaseModel):
    """Partial edit of an event's descriptive fields."""
    object_id: Optional[str] = Field(None, min_length=1)
    type: Optional[EventType] = None
    comment: Optional[str] = None
    occurred_at: Optional[datetime] = None
    photo_uri: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return ensure_not_blank(value, "comment")


class CreateOutcome(BaseModel):
    """Created event plus a user-facing message."""
    event: Event
    message: str


def describe_outcome(event: Event) -> str:
    """User-facing message for the state a create/update left the event in."""
    if event.status == EventStatus.SENT:
        return "Event saved and synced."
    if event.status == EventStatus.PENDING:
        return "Event saved on this device. It will sync automatically when the connection is restored."
    return f"Event saved on this device, but sync failed: {event.last_sync_error}. It will be retried."


class EventService:
    """Create/update/delete/list/sync operations for presentation code."""

    def __init__(
        self,
        engine: SyncEngine,
        cache: Optional[QueryCache] = None,
        list_ttl: float = EVENT_LIST_STALE_SEC,
        detail_ttl: float = EVENT_DETAIL_STALE_SEC,
    ):
        self.engine = engine
        self.cache = cache or QueryCache()
        self.list_ttl = list_ttl
        self.detail_ttl = detail_ttl

    # Reads

    async def list_events(self, status: Optional[EventStatus] = None) -> List[Event]:
        """All events (possibly up to list_ttl stale), optionally filtered by status."""
        events = self.cache.get(EVENT_LIST_KEY)
        if events is None:
            events = await self.engine.get_all_events()
            self.cache.set(EVENT_LIST_KEY, events, self.list_ttl)
        if status is not None:
            events = [event for event in events if event.status == status]
        return list(events)

    async def get_event(self, event_id: str) -> Optional[Event]:
        key = event_detail_key(event_id)
        event = self.cache.get(key)
        if event is None:
            event = await self.engine.get_event(event_id)
            if event is not None:
                self.cache.set(key, event, self.detail_ttl)
        return event

    async def status_counts(self) -> Dict[str, int]:
        """Number of events per sync status (always fresh)."""
        counts = {status.value: 0 for status in EventStatus}
        for event in await self.engine.get_all_events():
            counts[EventStatus(event.status).value] += 1
        return counts

    # Mutations

    def _remember(self, event: Event) -> None:
        self.cache.invalidate(EVENT_LIST_KEY)
        self.cache.set(event_detail_key(event.id), event, self.detail_ttl)

    async def create_event(self, data: EventCreate) -> CreateOutcome:
        """Create an event. Succeeds whenever the local save succeeds, online or not."""
        event = create_event_base(
            object_id=data.object_id,
            type=data.type,
            comment=data.comment,
            occurred_at=data.occurred_at,
            photo_uri=data.photo_uri,
        )
        created = await self.engine.create_event(event)
        self._remember(created)
        return CreateOutcome(event=created, message=describe_outcome(created))

    async def update_event(self, event_id: str, changes: EventUpdate) -> Optional[Event]:
        """Apply a partial edit. Returns None if the event does not exist."""
        stored = await self.engine.get_event(event_id)
        if stored is None:
            return None
        updates = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field == "photo_uri"
        }
        edited = Event(**{**stored.model_dump(), **updates})
        try:
            updated = await self.engine.update_event(edited)
        except ValueError as e:
            # Deleted between the read and the write
            logger.warning(f"Update of event {event_id} dropped: {str(e)}")
            self.cache.invalidate(event_detail_key(event_id))
            self.cache.invalidate(EVENT_LIST_KEY)
            return None
        self._remember(updated)
        return updated

    async def delete_event(self, event_id: str) -> bool:
        deleted = await self.engine.delete_event(event_id)
        self.cache.invalidate(event_detail_key(event_id))
        self.cache.invalidate(EVENT_LIST_KEY)
        return deleted

    async def retry_event(self, event_id: str) -> Optional[Event]:
        event = await self.engine.retry_event(event_id)
        if event is not None:
            self._remember(event)
        return event

    async def sync_events(self) -> SyncReport:
        report = await self.engine.sync_events()
        self.cache.invalidate()
        return report
