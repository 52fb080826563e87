"""Interchangeable key-value storage backends."""

from fieldsync.storage.base import KeyValueStore
from fieldsync.storage.memory import MemoryStorage
from fieldsync.storage.sqlite import SQLiteStorage
from fieldsync.storage.state import StateStorage
from fieldsync.storage.factory import build_storage

__all__ = [
    "KeyValueStore",
    "MemoryStorage",
    "SQLiteStorage",
    "StateStorage",
    "build_storage",
]
