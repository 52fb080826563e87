"""Sync engine for fieldsync."""

from fieldsync.engine.sync_engine import SyncEngine
from fieldsync.engine.auto_sync import AutoSyncListener

__all__ = ["SyncEngine", "AutoSyncListener"]
