"""Application-state-backed storage backend.

Keeps values inside a mapping owned by the application (for example the
FastAPI `app.state`), so other parts of the app can inspect what is stored.
"""

import logging
from typing import List, MutableMapping, Optional, Sequence, Tuple

from fieldsync.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

STATE_NAMESPACE = "storage"


class StateStorage(KeyValueStore):
    """KeyValueStore over `state[STATE_NAMESPACE]`."""

    def __init__(self, state: Optional[MutableMapping] = None):
        self.state = state if state is not None else {}
        self.state.setdefault(STATE_NAMESPACE, {})

    @property
    def _bucket(self) -> MutableMapping:
        return self.state[STATE_NAMESPACE]

    async def set_item(self, key: str, value: str) -> None:
        try:
            self._bucket[key] = value
        except Exception as e:
            logger.error(f"Failed to set {key} in app state: {type(e).__name__}: {str(e)}")

    async def get_item(self, key: str) -> Optional[str]:
        try:
            return self._bucket.get(key)
        except Exception as e:
            logger.error(f"Failed to read {key} from app state: {type(e).__name__}: {str(e)}")
            return None

    async def remove_item(self, key: str) -> None:
        try:
            self._bucket.pop(key, None)
        except Exception as e:
            logger.error(f"Failed to remove {key} from app state: {type(e).__name__}: {str(e)}")

    async def clear(self) -> None:
        try:
            self.state[STATE_NAMESPACE] = {}
        except Exception as e:
            logger.error(f"Failed to clear app state storage: {type(e).__name__}: {str(e)}")

    async def multi_set(self, items: Sequence[Tuple[str, str]]) -> None:
        for key, value in items:
            await self.set_item(key, value)

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        return [await self.get_item(key) for key in keys]
