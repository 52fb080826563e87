"""Event persistence over a KeyValueStore.

The whole collection is serialized as one JSON array under EVENTS_KEY, so
every write is a read-modify-write of the full collection. Concurrent
writers are not serialized: the last write wins.
"""

import json
import logging
from typing import List, Optional
from pydantic import ValidationError

from fieldsync.models.constants import EVENTS_KEY
from fieldsync.models.event import Event
from fieldsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


def serialize_events(events: List[Event]) -> str:
    """Serialize events to the persisted JSON form (ISO-8601 timestamps)."""
    return json.dumps([event.model_dump(mode="json") for event in events])


def deserialize_events(data: str) -> List[Event]:
    """Parse the persisted JSON form.

    Raises:
        ValueError: If the payload is not a JSON array of events
    """
    raw = json.loads(data)
    if not isinstance(raw, list):
        raise ValueError(f"Expected a JSON array, got {type(raw).__name__}")
    return [Event(**item) for item in raw]


class EventStore:
    """Per-event CRUD over the serialized collection."""

    def __init__(self, storage: KeyValueStore, key: str = EVENTS_KEY):
        self.storage = storage
        self.key = key

    async def save_all(self, events: List[Event]) -> None:
        """Replace the whole collection."""
        await self.storage.set_item(self.key, serialize_events(events))

    async def get_all(self) -> List[Event]:
        """Get every stored event in insertion order.

        An absent or corrupt payload reads as an empty collection.
        """
        data = await self.storage.get_item(self.key)
        if not data:
            return []
        try:
            return deserialize_events(data)
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding corrupt event payload under '{self.key}': {type(e).__name__}: {str(e)}")
            return []

    async def get_by_id(self, event_id: str) -> Optional[Event]:
        events = await self.get_all()
        for event in events:
            if event.id == event_id:
                return event
        return None

    async def save(self, event: Event) -> Event:
        """Upsert by id and rewrite the collection."""
        events = await self.get_all()
        for index, existing in enumerate(events):
            if existing.id == event.id:
                events[index] = event
                break
        else:
            events.append(event)
        await self.save_all(events)
        logger.debug(f"Saved event {event.id} (status={event.status}, attempts={event.sync_attempts})")
        return event

    async def delete(self, event_id: str) -> bool:
        """Remove an event by id.

        Returns:
            True if an event was removed
        """
        events = await self.get_all()
        remaining = [event for event in events if event.id != event_id]
        if len(remaining) == len(events):
            return False
        await self.save_all(remaining)
        logger.debug(f"Deleted event {event_id}")
        return True

    async def clear(self) -> None:
        """Remove the underlying key entirely."""
        await self.storage.remove_item(self.key)
        logger.debug(f"Cleared event collection '{self.key}'")
