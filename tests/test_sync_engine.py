"""Tests for the SyncEngine state machine."""

import asyncio
from datetime import timedelta

import pytest

from fieldsync.engine.sync_engine import SyncEngine
from fieldsync.models.constants import MAX_RETRY_ATTEMPTS
from fieldsync.models.event import EventStatus
from fieldsync.models.event_factory import create_event_base
from fieldsync.models.sync_report import SyncStatus


def _snapshot(event):
    return (event.status, event.sync_attempts, event.last_sync_error, event.server_id)


class TestCreateEvent:
    """create_event transitions."""

    def test_create_offline_is_pending(self, sync_engine, connectivity, gateway, sample_event):
        connectivity.set_connected(False)

        async def scenario():
            created = await sync_engine.create_event(sample_event)
            return created, await sync_engine.get_event(sample_event.id)

        created, stored = asyncio.run(scenario())
        assert created.status == EventStatus.PENDING
        assert created.sync_attempts == 0
        assert stored is not None
        assert stored.status == EventStatus.PENDING
        assert gateway.calls == []

    def test_create_online_success_is_sent(self, sync_engine, gateway, sample_event):
        created = asyncio.run(sync_engine.create_event(sample_event))

        assert created.status == EventStatus.SENT
        assert created.sync_attempts == 0
        assert created.last_sync_error is None
        assert created.server_id == "srv-1"
        assert gateway.kinds_for(sample_event.id) == ["create"]

    def test_create_online_failure_is_failed_with_one_attempt(self, sync_engine, gateway, sample_event):
        gateway.fail_all = "Server unavailable"

        created = asyncio.run(sync_engine.create_event(sample_event))
        stored = asyncio.run(sync_engine.get_event(sample_event.id))

        assert created.status == EventStatus.FAILED
        assert created.sync_attempts == 1
        assert created.last_sync_error == "Server unavailable"
        assert stored.status == EventStatus.FAILED
        assert stored.sync_attempts == 1

    def test_create_gateway_exception_is_a_failure(self, sync_engine, gateway, sample_event):
        gateway.raise_for[sample_event.id] = RuntimeError("connection reset")

        created = asyncio.run(sync_engine.create_event(sample_event))

        assert created.status == EventStatus.FAILED
        assert created.sync_attempts == 1
        assert created.last_sync_error == "connection reset"

    def test_created_ids_are_unique(self, sync_engine, connectivity, sample_event):
        connectivity.set_connected(False)

        async def scenario():
            for i in range(25):
                event = create_event_base("obj_001", "SERVICE", f"Check {i}", occurred_at=sample_event.occurred_at)
                await sync_engine.create_event(event)
            return await sync_engine.get_all_events()

        ids = [e.id for e in asyncio.run(scenario())]
        assert len(ids) == 25
        assert len(set(ids)) == 25

    def test_create_is_stored_before_remote_confirmation(self, sync_engine, event_store, gateway, sample_event, monkeypatch):
        seen = []
        push = gateway.push

        async def recording_push(event):
            seen.append(await event_store.get_by_id(event.id))
            return await push(event)

        monkeypatch.setattr(gateway, "push", recording_push)
        created = asyncio.run(sync_engine.create_event(sample_event))

        assert seen[0] is not None
        assert seen[0].status == EventStatus.PENDING
        assert seen[0].sync_attempts == 0
        assert created.status == EventStatus.SENT

    def test_cancelled_push_keeps_created_event(self, sync_engine, event_store, gateway, sample_event):
        gateway.raise_for[sample_event.id] = asyncio.CancelledError()

        async def scenario():
            try:
                await sync_engine.create_event(sample_event)
            except asyncio.CancelledError:
                pass
            return await event_store.get_by_id(sample_event.id)

        stored = asyncio.run(scenario())

        assert stored is not None
        assert stored.status == EventStatus.PENDING
        assert stored.sync_attempts == 0
        assert stored.comment == sample_event.comment


class TestUpdateEvent:
    """update_event transitions."""

    def test_update_online_success(self, sync_engine, event_store, make_event, gateway):
        stored = make_event(status=EventStatus.FAILED, sync_attempts=2, last_sync_error="boom", server_id="srv-7")
        asyncio.run(event_store.save(stored))

        updated = asyncio.run(sync_engine.update_event(stored.model_copy(update={"comment": "Updated text"})))

        assert updated.status == EventStatus.SENT
        assert updated.sync_attempts == 0
        assert updated.last_sync_error is None
        assert updated.comment == "Updated text"
        assert updated.server_id == "srv-7"
        assert gateway.kinds_for(stored.id) == ["update"]

    def test_update_online_failure_caps_attempts(self, sync_engine, event_store, make_event, gateway):
        stored = make_event(status=EventStatus.FAILED, sync_attempts=MAX_RETRY_ATTEMPTS, last_sync_error="old")
        asyncio.run(event_store.save(stored))
        gateway.fail_all = "Rejected"

        updated = asyncio.run(sync_engine.update_event(stored.model_copy(update={"comment": "Another try"})))

        assert updated.status == EventStatus.FAILED
        assert updated.sync_attempts == MAX_RETRY_ATTEMPTS
        assert updated.last_sync_error == "Rejected"

    def test_update_online_failure_increments_attempts(self, sync_engine, event_store, make_event, gateway):
        stored = make_event(status=EventStatus.SENT, sync_attempts=0)
        asyncio.run(event_store.save(stored))
        gateway.fail_all = "Rejected"

        updated = asyncio.run(sync_engine.update_event(stored.model_copy(update={"comment": "Edited"})))

        assert updated.status == EventStatus.FAILED
        assert updated.sync_attempts == 1

    def test_update_offline_keeps_attempts_and_error(self, sync_engine, event_store, make_event, connectivity, gateway):
        stored = make_event(status=EventStatus.FAILED, sync_attempts=2, last_sync_error="timeout")
        asyncio.run(event_store.save(stored))
        connectivity.set_connected(False)

        updated = asyncio.run(sync_engine.update_event(stored.model_copy(update={"comment": "Offline edit"})))

        assert updated.status == EventStatus.PENDING
        assert updated.sync_attempts == 2
        assert updated.last_sync_error == "timeout"
        assert updated.comment == "Offline edit"
        assert gateway.calls == []

    def test_update_refreshes_updated_at_and_keeps_created_at(self, sync_engine, event_store, make_event):
        sample_event = make_event()
        sample_event = sample_event.model_copy(update={"updated_at": sample_event.updated_at - timedelta(hours=1)})
        asyncio.run(event_store.save(sample_event))

        updated = asyncio.run(sync_engine.update_event(sample_event.model_copy(update={"comment": "Edited"})))

        assert updated.created_at == sample_event.created_at
        assert updated.updated_at > sample_event.updated_at

    def test_update_keeps_stored_bookkeeping(self, sync_engine, event_store, make_event, connectivity):
        stored = make_event(status=EventStatus.SENT, server_id="srv-3")
        asyncio.run(event_store.save(stored))
        connectivity.set_connected(False)

        tampered = stored.model_copy(update={"comment": "Edited", "sync_attempts": 99, "server_id": None})
        updated = asyncio.run(sync_engine.update_event(tampered))

        assert updated.sync_attempts == 0
        assert updated.server_id == "srv-3"

    def test_update_missing_event_raises(self, sync_engine, sample_event):
        with pytest.raises(ValueError):
            asyncio.run(sync_engine.update_event(sample_event))

    def test_update_is_stored_before_remote_confirmation(self, sync_engine, event_store, make_event, gateway, monkeypatch):
        stored = make_event(status=EventStatus.FAILED, sync_attempts=1, last_sync_error="timeout", server_id="srv-4")
        asyncio.run(event_store.save(stored))
        seen = []
        push = gateway.push

        async def recording_push(event):
            seen.append(await event_store.get_by_id(event.id))
            return await push(event)

        monkeypatch.setattr(gateway, "push", recording_push)
        asyncio.run(sync_engine.update_event(stored.model_copy(update={"comment": "Edited"})))

        assert seen[0].comment == "Edited"
        assert seen[0].status == EventStatus.PENDING
        assert seen[0].sync_attempts == 1
        assert seen[0].server_id == "srv-4"

    def test_cancelled_push_keeps_update(self, sync_engine, event_store, make_event, gateway):
        stored = make_event(status=EventStatus.SENT, server_id="srv-5")
        asyncio.run(event_store.save(stored))
        gateway.raise_for[stored.id] = asyncio.CancelledError()

        async def scenario():
            try:
                await sync_engine.update_event(stored.model_copy(update={"comment": "Edited in the field"}))
            except asyncio.CancelledError:
                pass
            return await event_store.get_by_id(stored.id)

        kept = asyncio.run(scenario())

        assert kept.comment == "Edited in the field"
        assert kept.status == EventStatus.PENDING
        assert kept.server_id == "srv-5"


class TestSyncEvents:
    """sync_events reconciliation passes."""

    def test_offline_sync_is_noop(self, sync_engine, event_store, make_event, connectivity, gateway):
        events = [
            make_event(status=EventStatus.PENDING, sync_attempts=1, last_sync_error="x"),
            make_event(status=EventStatus.FAILED, sync_attempts=2, last_sync_error="y"),
        ]
        for event in events:
            asyncio.run(event_store.save(event))
        connectivity.set_connected(False)

        report = asyncio.run(sync_engine.sync_events())

        assert report.status == SyncStatus.IDLE
        assert gateway.calls == []
        for event in events:
            stored = asyncio.run(event_store.get_by_id(event.id))
            assert _snapshot(stored) == _snapshot(event)

    def test_success_resets_attempts_and_error(self, sync_engine, event_store, make_event):
        event = make_event(status=EventStatus.FAILED, sync_attempts=2, last_sync_error="timeout")
        asyncio.run(event_store.save(event))

        report = asyncio.run(sync_engine.sync_events())
        stored = asyncio.run(event_store.get_by_id(event.id))

        assert report.status == SyncStatus.SUCCESS
        assert report.synced == [event.id]
        assert stored.status == EventStatus.SENT
        assert stored.sync_attempts == 0
        assert stored.last_sync_error is None
        assert stored.server_id is not None

    def test_sent_events_are_not_resynced(self, sync_engine, event_store, make_event, gateway):
        asyncio.run(event_store.save(make_event(status=EventStatus.SENT, server_id="srv-1")))

        report = asyncio.run(sync_engine.sync_events())

        assert gateway.calls == []
        assert report.synced == []

    def test_failure_below_limit_stays_pending(self, sync_engine, event_store, make_event, gateway):
        event = make_event(status=EventStatus.PENDING, sync_attempts=0)
        asyncio.run(event_store.save(event))
        gateway.fail_all = "Server error"

        report = asyncio.run(sync_engine.sync_events())
        stored = asyncio.run(event_store.get_by_id(event.id))

        assert report.failed == [event.id]
        assert stored.status == EventStatus.PENDING
        assert stored.sync_attempts == 1
        assert stored.last_sync_error == "Server error"

    def test_last_allowed_failure_marks_failed_then_skips(self, sync_engine, event_store, make_event, gateway):
        event = make_event(status=EventStatus.FAILED, sync_attempts=MAX_RETRY_ATTEMPTS - 1)
        asyncio.run(event_store.save(event))
        gateway.fail_all = "Still failing"

        asyncio.run(sync_engine.sync_events())
        after_failure = asyncio.run(event_store.get_by_id(event.id))

        assert after_failure.status == EventStatus.FAILED
        assert after_failure.sync_attempts == MAX_RETRY_ATTEMPTS

        gateway.calls.clear()
        report = asyncio.run(sync_engine.sync_events())
        after_skip = asyncio.run(event_store.get_by_id(event.id))

        assert report.skipped == [event.id]
        assert gateway.calls == []
        assert after_skip.model_dump() == after_failure.model_dump()

    def test_exhausted_pending_event_is_skipped(self, sync_engine, event_store, make_event, gateway):
        event = make_event(status=EventStatus.PENDING, sync_attempts=MAX_RETRY_ATTEMPTS)
        asyncio.run(event_store.save(event))

        report = asyncio.run(sync_engine.sync_events())

        assert report.skipped == [event.id]
        assert gateway.calls == []

    def test_first_sync_creates_and_resync_updates(self, sync_engine, event_store, make_event, gateway):
        fresh = make_event(status=EventStatus.PENDING)
        known = make_event(status=EventStatus.PENDING, server_id="srv-42")
        asyncio.run(event_store.save(fresh))
        asyncio.run(event_store.save(known))

        asyncio.run(sync_engine.sync_events())

        assert gateway.kinds_for(fresh.id) == ["create"]
        assert gateway.kinds_for(known.id) == ["update"]
        assert asyncio.run(event_store.get_by_id(known.id)).server_id == "srv-42"

    def test_one_event_failure_does_not_stop_others(self, sync_engine, event_store, make_event, gateway):
        bad, good = make_event(), make_event()
        asyncio.run(event_store.save(bad))
        asyncio.run(event_store.save(good))
        gateway.raise_for[bad.id] = RuntimeError("socket closed")

        report = asyncio.run(sync_engine.sync_events())

        assert report.failed == [bad.id]
        assert report.synced == [good.id]
        assert asyncio.run(event_store.get_by_id(good.id)).status == EventStatus.SENT
        assert asyncio.run(event_store.get_by_id(bad.id)).last_sync_error == "socket closed"

    def test_persistence_failure_is_isolated(self, event_store, connectivity, gateway, make_event):
        first, second = make_event(), make_event()
        asyncio.run(event_store.save(first))
        asyncio.run(event_store.save(second))

        class FlakyStore:
            """EventStore whose save fails for one event."""

            def __init__(self, inner, failing_id):
                self.inner = inner
                self.failing_id = failing_id

            async def get_all(self):
                return await self.inner.get_all()

            async def save(self, event):
                if event.id == self.failing_id:
                    raise OSError("disk full")
                return await self.inner.save(event)

        engine = SyncEngine(FlakyStore(event_store, first.id), connectivity, gateway)
        report = asyncio.run(engine.sync_events())

        assert report.status == SyncStatus.SUCCESS
        assert report.failed == [first.id]
        assert report.synced == [second.id]
        assert asyncio.run(event_store.get_by_id(first.id)).status == EventStatus.PENDING
        assert asyncio.run(event_store.get_by_id(second.id)).status == EventStatus.SENT

    def test_enumeration_failure_is_reported(self, connectivity, gateway):
        class BrokenStore:
            async def get_all(self):
                raise OSError("storage unavailable")

        engine = SyncEngine(BrokenStore(), connectivity, gateway)
        report = asyncio.run(engine.sync_events())

        assert report.status == SyncStatus.FAILURE
        assert report.error == "storage unavailable"
        assert gateway.calls == []


class TestRetryEvent:
    """Manual retry of exhausted events."""

    def test_retry_resets_exhausted_event(self, sync_engine, event_store, make_event):
        event = make_event(status=EventStatus.FAILED, sync_attempts=MAX_RETRY_ATTEMPTS, last_sync_error="Rejected")
        asyncio.run(event_store.save(event))

        reset = asyncio.run(sync_engine.retry_event(event.id))

        assert reset.status == EventStatus.PENDING
        assert reset.sync_attempts == 0
        assert reset.last_sync_error == "Rejected"

        report = asyncio.run(sync_engine.sync_events())
        assert report.synced == [event.id]

    def test_retry_missing_event(self, sync_engine):
        assert asyncio.run(sync_engine.retry_event("missing")) is None


class TestDeleteEvent:

    def test_delete_works_offline(self, sync_engine, event_store, sample_event, connectivity):
        asyncio.run(event_store.save(sample_event))
        connectivity.set_connected(False)

        assert asyncio.run(sync_engine.delete_event(sample_event.id)) is True
        assert asyncio.run(event_store.get_by_id(sample_event.id)) is None

    def test_sync_never_deletes(self, sync_engine, event_store, make_event, gateway):
        events = [make_event(), make_event(status=EventStatus.FAILED, sync_attempts=MAX_RETRY_ATTEMPTS)]
        for event in events:
            asyncio.run(event_store.save(event))
        gateway.fail_all = "nope"

        asyncio.run(sync_engine.sync_events())

        assert len(asyncio.run(event_store.get_all())) == 2


class TestConcurrentSync:
    """Overlapping passes and pushes."""

    @pytest.fixture
    def yielding_gateway(self, gateway, monkeypatch):
        push = gateway.push

        async def slow_push(event):
            await asyncio.sleep(0)
            return await push(event)

        monkeypatch.setattr(gateway, "push", slow_push)
        return gateway

    def test_overlapping_passes_push_each_event_once(self, sync_engine, event_store, make_event, yielding_gateway):
        events = [make_event() for _ in range(3)]
        for event in events:
            asyncio.run(event_store.save(event))

        async def scenario():
            return await asyncio.gather(sync_engine.sync_events(), sync_engine.sync_events())

        first, second = asyncio.run(scenario())

        for event in events:
            assert yielding_gateway.kinds_for(event.id) == ["create"]
        assert sorted(first.synced) == sorted(e.id for e in events)
        assert second.synced == []
        assert len(asyncio.run(event_store.get_all())) == 3

    def test_create_during_pass_is_pushed_once(self, sync_engine, event_store, sample_event, yielding_gateway):
        async def scenario():
            created, _ = await asyncio.gather(sync_engine.create_event(sample_event), sync_engine.sync_events())
            return created

        created = asyncio.run(scenario())

        assert created.status == EventStatus.SENT
        assert yielding_gateway.kinds_for(sample_event.id) == ["create"]
