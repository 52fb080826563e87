"""Automatic sync on reconnect."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from fieldsync.network.connectivity import ConnectivityOracle, Unsubscribe

logger = logging.getLogger(__name__)


class AutoSyncListener:
    """Runs a sync once per offline-to-online transition.

    The listener starts out assuming it is offline and reacts only to
    observations delivered by the oracle, so nothing runs before the first
    one arrives. Repeated "online" observations do not trigger again.
    """

    def __init__(self, connectivity: ConnectivityOracle, sync: Callable[[], Awaitable[Any]]):
        self.connectivity = connectivity
        self.sync = sync
        self.is_online = False
        self._unsubscribe: Optional[Unsubscribe] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to the oracle. Calling it again is a no-op."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.connectivity.observe(self._on_connectivity_change)
        logger.debug("Auto-sync listener started")

    def stop(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        logger.debug("Auto-sync listener stopped")

    def _on_connectivity_change(self, connected: bool) -> None:
        was_online = self.is_online
        self.is_online = bool(connected)
        if was_online or not self.is_online:
            return

        logger.info("Network connected - syncing events")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Reconnect observed outside an event loop; sync not scheduled")
            return
        task = loop.create_task(self._run_sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_sync(self) -> None:
        try:
            await self.sync()
        except Exception as e:
            logger.error(f"Automatic sync failed: {type(e).__name__}: {str(e)}")

    async def wait_idle(self) -> None:
        """Wait for any sync started by the listener to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def shutdown(self) -> None:
        """Stop listening and let an in-flight sync finish."""
        self.stop()
        await self.wait_idle()
