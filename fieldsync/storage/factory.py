"""Storage backend selection.

The backend is chosen once at startup from `STORAGE_BACKEND`; nothing
downstream of the EventStore knows which one is in use.
"""

import logging
import os
from typing import MutableMapping, Optional
from dotenv import load_dotenv

from fieldsync.storage.base import KeyValueStore
from fieldsync.storage.memory import MemoryStorage
from fieldsync.storage.sqlite import SQLiteStorage
from fieldsync.storage.state import StateStorage

load_dotenv()

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "memory", "state")


def build_storage(
    backend: Optional[str] = None,
    *,
    database_url: Optional[str] = None,
    state: Optional[MutableMapping] = None,
) -> KeyValueStore:
    """Construct the configured KeyValueStore.

    Args:
        backend: One of BACKENDS. If None, reads STORAGE_BACKEND (defaults to 'sqlite').
        database_url: Passed to SQLiteStorage.
        state: Mapping owned by the application, used by StateStorage.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (backend or os.getenv("STORAGE_BACKEND", "sqlite")).strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown storage backend '{backend}'. Expected one of: {', '.join(BACKENDS)}")

    logger.info(f"Using {backend} storage backend")
    if backend == "memory":
        return MemoryStorage()
    if backend == "state":
        return StateStorage(state)
    return SQLiteStorage(database_url=database_url)
