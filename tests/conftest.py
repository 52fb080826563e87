"""Pytest fixtures and configuration for fieldsync tests."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from fieldsync.api.service import EventService
from fieldsync.bootstrap import build_app_context
from fieldsync.database.event_store import EventStore
from fieldsync.engine.sync_engine import SyncEngine
from fieldsync.integrations.remote_events import EventGateway, RemoteResult
from fieldsync.models.event import Event, EventStatus, EventType
from fieldsync.network.connectivity import StaticConnectivity
from fieldsync.storage.memory import MemoryStorage


class FakeGateway(EventGateway):
    """Scripted remote authority.

    Succeeds by default. `fail_all` rejects every push with that reason,
    `fail_ids` rejects specific events and `raise_for` raises instead of
    returning a result.
    """

    def __init__(self):
        self.fail_all: Optional[str] = None
        self.fail_ids: Dict[str, str] = {}
        self.raise_for: Dict[str, Exception] = {}
        self.calls: List[Event] = []
        self._next_server_id = 1

    def kinds_for(self, event_id: str) -> List[str]:
        """'create' or 'update' for every push of this event, in order."""
        return ["update" if e.server_id else "create" for e in self.calls if e.id == event_id]

    async def push(self, event: Event) -> RemoteResult:
        self.calls.append(event.model_copy())
        if event.id in self.raise_for:
            raise self.raise_for[event.id]
        if self.fail_all is not None:
            return RemoteResult.failed(self.fail_all)
        if event.id in self.fail_ids:
            return RemoteResult.failed(self.fail_ids[event.id])
        server_id = event.server_id
        if server_id is None:
            server_id = f"srv-{self._next_server_id}"
            self._next_server_id += 1
        return RemoteResult.ok(server_id)


@pytest.fixture
def storage():
    """Volatile key-value backend, fresh for each test."""
    return MemoryStorage()


@pytest.fixture
def event_store(storage):
    return EventStore(storage)


@pytest.fixture
def connectivity():
    """Settable connectivity oracle (online by default)."""
    return StaticConnectivity(connected=True)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def sync_engine(event_store, connectivity, gateway):
    return SyncEngine(event_store, connectivity, gateway)


@pytest.fixture
def event_service(sync_engine):
    return EventService(sync_engine)


@pytest.fixture
def sample_event_base():
    """Base event data for creating test events.

    Returns a dict with default event attributes that can be overridden.
    """
    now = datetime.now(timezone.utc)
    return {
        "id": str(uuid.uuid4()),
        "object_id": "obj_001",
        "type": EventType.SERVICE,
        "comment": "Replaced front brake pads",
        "occurred_at": now - timedelta(hours=2),
        "photo_uri": None,
        "status": EventStatus.PENDING,
        "sync_attempts": 0,
        "last_sync_error": None,
        "created_at": now,
        "updated_at": now,
        "server_id": None,
    }


@pytest.fixture
def sample_event(sample_event_base):
    """Create a sample Event object for testing."""
    return Event(**sample_event_base)


@pytest.fixture
def make_event(sample_event_base):
    """Factory for events with a fresh id and optional overrides."""
    def _make(**overrides) -> Event:
        return Event(**{**sample_event_base, "id": str(uuid.uuid4()), **overrides})
    return _make


@pytest.fixture
def app_context(storage, connectivity, gateway):
    return build_app_context(storage=storage, connectivity=connectivity, gateway=gateway)


@pytest.fixture
def test_client(app_context):
    """FastAPI test client over an in-memory app context."""
    from fieldsync.api.app import create_app

    app = create_app(app_context)
    with TestClient(app) as client:
        yield client
