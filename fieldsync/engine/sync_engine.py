"""Offline-first sync engine for fieldsync.

Owns the event lifecycle:

- PENDING: created or modified locally, not yet confirmed by the server
- SENT: confirmed by the server
- FAILED: last attempt rejected; terminal once sync_attempts reaches the
  retry limit, until retry_event() resets it

Status, sync_attempts and last_sync_error are always changed together on a
copy of the event and written with a single EventStore.save() call.
"""

import asyncio
import logging
from typing import List, Optional

from fieldsync.database.event_store import EventStore
from fieldsync.integrations.remote_events import EventGateway, RemoteResult
from fieldsync.models.constants import DEFAULT_SYNC_ERROR, MAX_RETRY_ATTEMPTS
from fieldsync.models.event import Event, EventStatus
from fieldsync.models.event_factory import utc_now
from fieldsync.models.sync_report import SyncReport, SyncStatus
from fieldsync.network.connectivity import ConnectivityOracle

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (EventStatus.PENDING, EventStatus.FAILED)


class SyncEngine:
    """Decides and persists sync state transitions for events."""

    def __init__(
        self,
        event_store: EventStore,
        connectivity: ConnectivityOracle,
        gateway: EventGateway,
        max_retry_attempts: int = MAX_RETRY_ATTEMPTS,
    ):
        self.event_store = event_store
        self.connectivity = connectivity
        self.gateway = gateway
        self.max_retry_attempts = max_retry_attempts
        # Serializes remote confirmation so an event is never pushed twice at once
        self._sync_lock = asyncio.Lock()

    async def get_all_events(self) -> List[Event]:
        return await self.event_store.get_all()

    async def get_event(self, event_id: str) -> Optional[Event]:
        return await self.event_store.get_by_id(event_id)

    async def _confirm(self, event: Event) -> RemoteResult:
        """Push to the remote authority; exceptions become failed results."""
        try:
            return await self.gateway.push(event)
        except Exception as e:
            logger.warning(f"Gateway raised for event {event.id}: {type(e).__name__}: {str(e)}")
            return RemoteResult.failed(str(e) or DEFAULT_SYNC_ERROR)

    def _confirmed(self, event: Event, result: RemoteResult) -> Event:
        return event.model_copy(update={
            "status": EventStatus.SENT,
            "sync_attempts": 0,
            "last_sync_error": None,
            "server_id": result.server_id or event.server_id,
            "updated_at": utc_now(),
        })

    def _transition(self, event: Event, status: EventStatus, sync_attempts: int, last_sync_error: Optional[str]) -> Event:
        return event.model_copy(update={
            "status": status,
            "sync_attempts": sync_attempts,
            "last_sync_error": last_sync_error,
            "updated_at": utc_now(),
        })

    async def create_event(self, event: Event) -> Event:
        """Persist a new event, confirming it right away when online.

        The event is stored locally as PENDING before the remote call, so it
        survives a failed or cancelled push.
        """
        pending = self._transition(event, EventStatus.PENDING, 0, event.last_sync_error)
        await self.event_store.save(pending)

        if not await self.connectivity.is_connected():
            logger.info(f"Event {event.id} saved offline; sync deferred")
            return pending

        async with self._sync_lock:
            current = await self.event_store.get_by_id(event.id) or pending
            if current.status == EventStatus.SENT:
                # Confirmed by a reconciliation pass while waiting for the lock
                return current
            result = await self._confirm(current)
            if result.success:
                created = self._confirmed(current, result)
                logger.info(f"Event {event.id} created and synced")
            else:
                created = self._transition(current, EventStatus.FAILED, 1, result.error or DEFAULT_SYNC_ERROR)
                logger.warning(f"Event {event.id} created but sync failed: {created.last_sync_error}")
            return await self.event_store.save(created)

    async def update_event(self, event: Event) -> Event:
        """Persist edits to an existing event.

        Only the descriptive fields are taken from `event`; id, created_at,
        server_id and the sync bookkeeping come from the stored copy. The edit
        is stored as PENDING before the remote call.

        Raises:
            ValueError: If no event with this id is stored
        """
        stored = await self.event_store.get_by_id(event.id)
        if stored is None:
            raise ValueError(f"Event {event.id} not found")

        edited = stored.model_copy(update={
            "object_id": event.object_id,
            "type": event.type,
            "comment": event.comment,
            "occurred_at": event.occurred_at,
            "photo_uri": event.photo_uri,
            "server_id": stored.server_id or event.server_id,
        })
        pending = self._transition(edited, EventStatus.PENDING, edited.sync_attempts, edited.last_sync_error)
        await self.event_store.save(pending)

        if not await self.connectivity.is_connected():
            logger.info(f"Event {event.id} updated offline; sync deferred")
            return pending

        async with self._sync_lock:
            current = await self.event_store.get_by_id(event.id) or pending
            if current.status == EventStatus.SENT:
                return current
            result = await self._confirm(current)
            if result.success:
                updated = self._confirmed(current, result)
                logger.info(f"Event {event.id} updated and synced")
            else:
                attempts = min(current.sync_attempts + 1, self.max_retry_attempts)
                updated = self._transition(current, EventStatus.FAILED, attempts, result.error or DEFAULT_SYNC_ERROR)
                logger.warning(f"Event {event.id} updated but sync failed: {updated.last_sync_error}")
            return await self.event_store.save(updated)

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event locally. Independent of connectivity and sync state."""
        return await self.event_store.delete(event_id)

    async def retry_event(self, event_id: str) -> Optional[Event]:
        """Make an event eligible for reconciliation again.

        Resets it to PENDING with zero attempts; last_sync_error is kept
        until the next successful confirmation.
        """
        stored = await self.event_store.get_by_id(event_id)
        if stored is None:
            return None
        reset = self._transition(stored, EventStatus.PENDING, 0, stored.last_sync_error)
        logger.info(f"Event {event_id} reset for retry (was {stored.status}, {stored.sync_attempts} attempts)")
        return await self.event_store.save(reset)

    async def sync_events(self) -> SyncReport:
        """Reconcile every PENDING or FAILED event with the remote authority.

        Offline is a no-op. Each event is confirmed and persisted on its own;
        a failure on one event never stops the others. Only a failure to list
        the events is reported as a pass-level FAILURE. Passes never overlap:
        a second caller waits for the running pass and then sees its results.
        """
        if not await self.connectivity.is_connected():
            logger.info("No network connection. Sync will retry when online.")
            return SyncReport(status=SyncStatus.IDLE)

        async with self._sync_lock:
            return await self._run_pass()

    async def _run_pass(self) -> SyncReport:
        report = SyncReport(status=SyncStatus.SYNCING)
        try:
            events = await self.event_store.get_all()
        except Exception as e:
            logger.error(f"Sync process failed: {type(e).__name__}: {str(e)}")
            report.status = SyncStatus.FAILURE
            report.error = str(e) or DEFAULT_SYNC_ERROR
            return report

        for event in events:
            if event.status not in RETRYABLE_STATUSES:
                continue
            if event.sync_attempts >= self.max_retry_attempts:
                logger.warning(f"Event {event.id} exceeded max retry attempts")
                report.skipped.append(event.id)
                continue
            await self._sync_one(event, report)

        report.status = SyncStatus.SUCCESS
        logger.info(
            f"Sync finished: {len(report.synced)} synced, {len(report.failed)} failed, "
            f"{len(report.skipped)} skipped"
        )
        return report

    async def _sync_one(self, event: Event, report: SyncReport) -> None:
        result = await self._confirm(event)
        if result.success:
            updated = self._confirmed(event, result)
        else:
            attempts = event.sync_attempts + 1
            status = EventStatus.FAILED if attempts >= self.max_retry_attempts else EventStatus.PENDING
            updated = self._transition(event, status, attempts, result.error or DEFAULT_SYNC_ERROR)

        try:
            await self.event_store.save(updated)
        except Exception as e:
            logger.error(f"Failed to persist sync result for event {event.id}: {type(e).__name__}: {str(e)}")
            report.failed.append(event.id)
            return

        if result.success:
            logger.info(f"Event {event.id} synced successfully")
            report.synced.append(event.id)
        else:
            logger.warning(f"Failed to sync event {event.id}: {updated.last_sync_error}")
            report.failed.append(event.id)
