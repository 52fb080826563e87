"""Key-value storage contract shared by every backend."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple


class KeyValueStore(ABC):
    """Async string-to-string store.

    Implementations must not propagate backend failures to callers: they log
    them and degrade (see SQLiteStorage for the in-memory fallback).
    """

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    @abstractmethod
    async def multi_set(self, items: Sequence[Tuple[str, str]]) -> None:
        ...

    @abstractmethod
    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Values for `keys`, in the same order (None where absent)."""
        ...
