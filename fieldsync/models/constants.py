"""Constants for fieldsync.

This module centralizes the magic numbers and default values used throughout the application.
"""

# Sync lifecycle
MAX_RETRY_ATTEMPTS = 3
DEFAULT_SYNC_ERROR = "Sync failed"

# Persistence
EVENTS_KEY = "events"  # Single key holding the whole serialized collection

# Facade query cache staleness (seconds)
EVENT_LIST_STALE_SEC = 30
EVENT_DETAIL_STALE_SEC = 60

# Remote authority / connectivity
REMOTE_TIMEOUT_SEC = 10
CONNECTIVITY_PROBE_TIMEOUT_SEC = 3
CONNECTIVITY_POLL_INTERVAL_SEC = 5
