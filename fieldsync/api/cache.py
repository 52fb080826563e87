"""Keyed read cache with per-entry staleness windows."""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

_MISSING = object()


class QueryCache:
    """Small TTL cache for façade reads.

    Entries are served until their staleness window passes or they are
    invalidated. Not thread-safe; used from a single event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def contains(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        self._entries[key] = (self.clock() + ttl, value)

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
