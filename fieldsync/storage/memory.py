"""In-memory storage backend.

Data lives in a dict and is lost when the process exits. Used for tests,
development and as the fallback of the durable backend.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from fieldsync.storage.base import KeyValueStore


class MemoryStorage(KeyValueStore):
    """Volatile KeyValueStore."""

    def __init__(self):
        self._store: Dict[str, str] = {}

    async def set_item(self, key: str, value: str) -> None:
        self._store[key] = value

    async def get_item(self, key: str) -> Optional[str]:
        return self._store.get(key)

    async def remove_item(self, key: str) -> None:
        self._store.pop(key, None)

    async def clear(self) -> None:
        self._store.clear()

    async def multi_set(self, items: Sequence[Tuple[str, str]]) -> None:
        for key, value in items:
            self._store[key] = value

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        return [self._store.get(key) for key in keys]
