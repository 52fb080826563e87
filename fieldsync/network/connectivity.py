"""Network reachability oracles.

An oracle answers point-in-time `is_connected()` checks and lets callers
subscribe to reachability changes with `observe(callback)`, which returns an
unsubscribe handle. Callbacks receive the new reachability as a bool.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import requests

from fieldsync.models.constants import CONNECTIVITY_POLL_INTERVAL_SEC, CONNECTIVITY_PROBE_TIMEOUT_SEC

logger = logging.getLogger(__name__)

ConnectivityCallback = Callable[[bool], None]
Unsubscribe = Callable[[], None]


class ConnectivityOracle(ABC):
    """Reachability contract consumed by the sync engine."""

    def __init__(self):
        self._callbacks: List[ConnectivityCallback] = []

    @abstractmethod
    async def is_connected(self) -> bool:
        ...

    def observe(self, callback: ConnectivityCallback) -> Unsubscribe:
        """Register a callback fired on every reachability change."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
                self._on_unsubscribe()

        return unsubscribe

    def _on_unsubscribe(self) -> None:
        pass

    def _notify(self, connected: bool) -> None:
        for callback in list(self._callbacks):
            try:
                callback(connected)
            except Exception as e:
                logger.error(f"Connectivity callback failed: {type(e).__name__}: {str(e)}")


class StaticConnectivity(ConnectivityOracle):
    """Oracle whose state is set explicitly.

    Used when no probe URL is configured, and in tests to simulate going
    offline and back online.
    """

    def __init__(self, connected: bool = True):
        super().__init__()
        self.connected = connected

    async def is_connected(self) -> bool:
        return self.connected

    def set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        logger.info(f"Connectivity set to {'online' if connected else 'offline'}")
        self._notify(connected)


class HttpConnectivity(ConnectivityOracle):
    """Oracle that probes a URL over HTTP.

    Any response (even an error status) counts as reachable; transport
    errors and timeouts count as unreachable. While at least one observer is
    registered, a background task polls every `poll_interval` seconds and
    notifies on changes. The first probe is always reported.
    """

    def __init__(
        self,
        probe_url: str,
        poll_interval: float = CONNECTIVITY_POLL_INTERVAL_SEC,
        timeout: float = CONNECTIVITY_PROBE_TIMEOUT_SEC,
    ):
        super().__init__()
        self.probe_url = probe_url
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.last_state: Optional[bool] = None
        self._poll_task: Optional[asyncio.Task] = None

    def _probe(self) -> bool:
        try:
            requests.head(self.probe_url, timeout=self.timeout, allow_redirects=False)
            return True
        except requests.RequestException as e:
            logger.debug(f"Connectivity probe to {self.probe_url} failed: {type(e).__name__}")
            return False

    async def is_connected(self) -> bool:
        return await asyncio.to_thread(self._probe)

    async def poll_once(self) -> bool:
        """Probe once and notify observers if reachability changed."""
        connected = await self.is_connected()
        if connected != self.last_state:
            self.last_state = connected
            self._notify(connected)
        return connected

    async def _poll_loop(self) -> None:
        while self._callbacks:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    def observe(self, callback: ConnectivityCallback) -> Unsubscribe:
        unsubscribe = super().observe(callback)
        if self._poll_task is None or self._poll_task.done():
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("No running event loop; connectivity polling not started")
            else:
                self._poll_task = loop.create_task(self._poll_loop())
        return unsubscribe

    def _on_unsubscribe(self) -> None:
        if not self._callbacks and self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
