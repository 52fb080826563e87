"""Reconciliation pass result model."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Outcome of a reconciliation pass."""
    IDLE = "IDLE"  # Nothing attempted (offline)
    SYNCING = "SYNCING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class SyncReport(BaseModel):
    """Summary of one sync_events() pass.

    `failed` lists events whose attempt was rejected in this pass; `skipped`
    lists events left untouched because their retries are exhausted.
    """

    status: SyncStatus = Field(SyncStatus.IDLE, description="Pass outcome")
    synced: List[str] = Field(default_factory=list, description="Event ids confirmed in this pass")
    failed: List[str] = Field(default_factory=list, description="Event ids rejected in this pass")
    skipped: List[str] = Field(default_factory=list, description="Event ids skipped (retries exhausted)")
    error: Optional[str] = Field(None, description="Pass-level failure, if any")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
