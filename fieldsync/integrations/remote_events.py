"""Remote authority integration for fieldsync.

A gateway confirms one event at a time. Events without a `server_id` are
created remotely; events that already carry one are updated in place, so a
re-sync never produces a duplicate on the server.
"""

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional
import requests
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from fieldsync.models.constants import REMOTE_TIMEOUT_SEC
from fieldsync.models.event import Event

load_dotenv()

logger = logging.getLogger(__name__)


class RemoteResult(BaseModel):
    """Outcome of one confirmation attempt."""

    success: bool = Field(..., description="Whether the server accepted the event")
    server_id: Optional[str] = Field(None, description="Server-side id, when assigned")
    error: Optional[str] = Field(None, description="Failure reason when not successful")

    @classmethod
    def ok(cls, server_id: Optional[str] = None) -> "RemoteResult":
        return cls(success=True, server_id=server_id)

    @classmethod
    def failed(cls, error: str) -> "RemoteResult":
        return cls(success=False, error=error)


class EventGateway(ABC):
    """Remote confirmation contract."""

    @abstractmethod
    async def push(self, event: Event) -> RemoteResult:
        """Create (no server_id) or update (server_id present) the event remotely."""
        ...


class LocalAckGateway(EventGateway):
    """Gateway that acknowledges every event without a network call.

    Assigns a server id on first sync. Used when no remote API is configured.
    """

    async def push(self, event: Event) -> RemoteResult:
        server_id = event.server_id or f"srv-{uuid.uuid4()}"
        return RemoteResult.ok(server_id)


class HttpEventGateway(EventGateway):
    """Client for the remote events REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL. If None, reads from REMOTE_API_URL env var.
            api_token: Bearer token. If None, reads from REMOTE_API_TOKEN env var (optional).
            timeout: Request timeout in seconds. If None, reads REMOTE_API_TIMEOUT_SEC.
        """
        self.base_url = (base_url or os.getenv("REMOTE_API_URL") or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Remote API URL is required. Set REMOTE_API_URL env var.")
        self.api_token = api_token or os.getenv("REMOTE_API_TOKEN")
        self.timeout = timeout or float(os.getenv("REMOTE_API_TIMEOUT_SEC", str(REMOTE_TIMEOUT_SEC)))

        self.headers = {"Content-Type": "application/json"}
        if self.api_token:
            self.headers["Authorization"] = f"Bearer {self.api_token}"

    def build_payload(self, event: Event) -> dict:
        """Event body sent to the server (local bookkeeping excluded)."""
        data = event.model_dump(mode="json")
        return {
            "client_id": data["id"],
            "object_id": data["object_id"],
            "type": data["type"],
            "comment": data["comment"],
            "occurred_at": data["occurred_at"],
            "photo_uri": data["photo_uri"],
        }

    def _send(self, event: Event) -> RemoteResult:
        payload = self.build_payload(event)
        try:
            if event.server_id:
                url = f"{self.base_url}/events/{event.server_id}"
                response = requests.put(url, json=payload, headers=self.headers, timeout=self.timeout)
            else:
                url = f"{self.base_url}/events"
                response = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            return RemoteResult.failed(f"Failed to sync event: {e}")

        server_id = event.server_id
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("id") is not None:
            server_id = str(body["id"])
        return RemoteResult.ok(server_id)

    async def push(self, event: Event) -> RemoteResult:
        result = await asyncio.to_thread(self._send, event)
        if not result.success:
            logger.debug(f"Remote rejected event {event.id}: {result.error}")
        return result
