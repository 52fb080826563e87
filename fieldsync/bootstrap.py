"""Application wiring for fieldsync.

Everything is constructed once at startup and handed to consumers
explicitly; no module holds a mutable reference to the engine.
"""

import logging
import os
from dataclasses import dataclass
from typing import MutableMapping, Optional
from dotenv import load_dotenv

from fieldsync.api.service import EventService
from fieldsync.database.event_store import EventStore
from fieldsync.engine.auto_sync import AutoSyncListener
from fieldsync.engine.sync_engine import SyncEngine
from fieldsync.integrations.remote_events import EventGateway, HttpEventGateway, LocalAckGateway
from fieldsync.models.constants import CONNECTIVITY_POLL_INTERVAL_SEC
from fieldsync.network.connectivity import ConnectivityOracle, HttpConnectivity, StaticConnectivity
from fieldsync.storage.base import KeyValueStore
from fieldsync.storage.factory import build_storage

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """The wired object graph for one application session."""
    storage: KeyValueStore
    event_store: EventStore
    connectivity: ConnectivityOracle
    gateway: EventGateway
    engine: SyncEngine
    service: EventService
    auto_sync: AutoSyncListener


def build_connectivity() -> ConnectivityOracle:
    probe_url = os.getenv("CONNECTIVITY_PROBE_URL")
    if not probe_url:
        logger.info("CONNECTIVITY_PROBE_URL not set; assuming always online")
        return StaticConnectivity(connected=True)
    interval = float(os.getenv("CONNECTIVITY_POLL_INTERVAL_SEC", str(CONNECTIVITY_POLL_INTERVAL_SEC)))
    return HttpConnectivity(probe_url, poll_interval=interval)


def build_gateway() -> EventGateway:
    if not os.getenv("REMOTE_API_URL"):
        logger.info("REMOTE_API_URL not set; events are acknowledged locally")
        return LocalAckGateway()
    return HttpEventGateway()


def build_app_context(
    *,
    storage: Optional[KeyValueStore] = None,
    connectivity: Optional[ConnectivityOracle] = None,
    gateway: Optional[EventGateway] = None,
    state: Optional[MutableMapping] = None,
) -> AppContext:
    """Build the object graph, using configuration for anything not supplied."""
    storage = storage or build_storage(state=state)
    connectivity = connectivity or build_connectivity()
    gateway = gateway or build_gateway()

    event_store = EventStore(storage)
    engine = SyncEngine(event_store, connectivity, gateway)
    service = EventService(engine)
    auto_sync = AutoSyncListener(connectivity, service.sync_events)
    return AppContext(
        storage=storage,
        event_store=event_store,
        connectivity=connectivity,
        gateway=gateway,
        engine=engine,
        service=service,
        auto_sync=auto_sync,
    )
