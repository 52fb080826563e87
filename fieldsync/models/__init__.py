"""Data models for fieldsync."""

from fieldsync.models.event import Event, EventStatus, EventType
from fieldsync.models.sync_report import SyncReport, SyncStatus

__all__ = [
    "Event",
    "EventStatus",
    "EventType",
    "SyncReport",
    "SyncStatus",
]
