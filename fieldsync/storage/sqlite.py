"""Durable SQLite storage backend (SQLAlchemy).

Values are rows of the `kv_store` table. Any backend failure switches the
instance to an in-memory fallback for the remainder of the session: callers
keep working but are not told that durability was lost.
"""

import asyncio
import logging
import threading
from typing import List, Optional, Sequence, Tuple
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fieldsync.database.database import Base, build_engine
from fieldsync.database.models import KeyValueDB
from fieldsync.storage.base import KeyValueStore
from fieldsync.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


class SQLiteStorage(KeyValueStore):
    """KeyValueStore persisted through SQLAlchemy."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """Initialize the backend.

        Args:
            database_url: SQLAlchemy URL. If None, uses DATABASE_URL.
            engine: Prebuilt engine (takes precedence over database_url).
        """
        self.engine = engine
        self.database_url = database_url
        self.SessionLocal = None
        self.fallback = MemoryStorage()
        self.use_fallback = False
        self._initialized = False
        self._init_lock = threading.Lock()

    def _ensure_db(self) -> None:
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            if self.engine is None:
                self.engine = build_engine(self.database_url)
            Base.metadata.create_all(bind=self.engine)
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
            self._initialized = True
        logger.info(f"SQLite storage initialized at {self.engine.url}")

    def _switch_to_fallback(self, operation: str, error: Exception) -> None:
        if not self.use_fallback:
            logger.error(
                f"Storage {operation} failed, using in-memory fallback for this session: "
                f"{type(error).__name__}: {str(error)}"
            )
        self.use_fallback = True

    # Blocking operations, executed in a worker thread

    def _set_items(self, items: Sequence[Tuple[str, str]]) -> None:
        self._ensure_db()
        with self.SessionLocal() as db:
            try:
                for key, value in items:
                    db.merge(KeyValueDB(key=key, value=value))
                db.commit()
            except Exception:
                db.rollback()
                raise

    def _get_items(self, keys: Sequence[str]) -> List[Optional[str]]:
        self._ensure_db()
        with self.SessionLocal() as db:
            rows = db.query(KeyValueDB).filter(KeyValueDB.key.in_(list(keys))).all()
            found = {row.key: row.value for row in rows}
        return [found.get(key) for key in keys]

    def _remove_item(self, key: str) -> None:
        self._ensure_db()
        with self.SessionLocal() as db:
            try:
                db.query(KeyValueDB).filter(KeyValueDB.key == key).delete()
                db.commit()
            except Exception:
                db.rollback()
                raise

    def _clear(self) -> None:
        self._ensure_db()
        with self.SessionLocal() as db:
            try:
                db.query(KeyValueDB).delete()
                db.commit()
            except Exception:
                db.rollback()
                raise

    # KeyValueStore

    async def set_item(self, key: str, value: str) -> None:
        await self.multi_set([(key, value)])

    async def get_item(self, key: str) -> Optional[str]:
        values = await self.multi_get([key])
        return values[0]

    async def remove_item(self, key: str) -> None:
        if not self.use_fallback:
            try:
                await asyncio.to_thread(self._remove_item, key)
                return
            except Exception as e:
                self._switch_to_fallback("removeItem", e)
        await self.fallback.remove_item(key)

    async def clear(self) -> None:
        if not self.use_fallback:
            try:
                await asyncio.to_thread(self._clear)
                return
            except Exception as e:
                self._switch_to_fallback("clear", e)
        await self.fallback.clear()

    async def multi_set(self, items: Sequence[Tuple[str, str]]) -> None:
        items = list(items)
        if not self.use_fallback:
            try:
                await asyncio.to_thread(self._set_items, items)
                return
            except Exception as e:
                self._switch_to_fallback("setItem", e)
        await self.fallback.multi_set(items)

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        keys = list(keys)
        if not keys:
            return []
        if not self.use_fallback:
            try:
                return await asyncio.to_thread(self._get_items, keys)
            except Exception as e:
                self._switch_to_fallback("getItem", e)
        return await self.fallback.multi_get(keys)
