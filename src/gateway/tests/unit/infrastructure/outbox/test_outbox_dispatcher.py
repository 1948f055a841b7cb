"""Unit tests for OutboxDispatcher."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from delivery.infrastructure.in_memory_transport import InMemoryMessageTransport
from infrastructure.outbox.dispatcher import OutboxDispatcher
from infrastructure.outbox.repository import OutboxStore
from shared_kernel.outbox.exceptions import StorageUnavailableError
from shared_kernel.outbox.value_objects import (
    DispatchSummary,
    OutboxEntry,
    OutboxStatus,
    StoreResult,
    TransportErrorKind,
    TransportResult,
)

NOW = datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC)


def _entry(entry_id: str, **overrides) -> OutboxEntry:
    values = {
        "id": entry_id,
        "message_type": "delivery.message",
        "payload": f"payload-{entry_id}",
        "status": OutboxStatus.PENDING,
        "created_at": NOW,
        "correlation_id": f"corr-{entry_id}",
    }
    values.update(overrides)
    return OutboxEntry(**values)


@pytest.fixture
def store():
    store = AsyncMock()
    store.list_pending.return_value = []
    store.mark_dispatched.return_value = StoreResult.OK
    store.mark_failed.return_value = StoreResult.OK
    store.cleanup_dispatched.return_value = 0
    return store


@pytest.fixture
def transport():
    transport = AsyncMock()
    transport.send.return_value = TransportResult.success()
    return transport


@pytest.fixture
def probe():
    return MagicMock()


def _dispatcher(store, transport, probe, **kwargs) -> OutboxDispatcher:
    return OutboxDispatcher(
        store=store,
        transport=transport,
        probe=probe,
        clock=lambda: NOW,
        **kwargs,
    )


class TestOutboxDispatcherRunOnce:
    """Tests for OutboxDispatcher.run_once()."""

    @pytest.mark.asyncio
    async def test_sends_and_marks_pending_entries(self, store, transport, probe):
        """Each pending entry is sent and marked DISPATCHED."""
        # Arrange
        store.list_pending.return_value = [_entry("a"), _entry("b")]
        dispatcher = _dispatcher(store, transport, probe)

        # Act
        summary = await dispatcher.run_once()

        # Assert
        sent = sorted(call.args[0] for call in transport.send.await_args_list)
        assert sent == ["payload-a", "payload-b"]
        marked = sorted(call.args[0] for call in store.mark_dispatched.await_args_list)
        assert marked == ["a", "b"]
        assert summary.candidates == 2
        assert summary.dispatched == 2
        assert summary.failed == 0

    @pytest.mark.asyncio
    async def test_uses_batch_size(self, store, transport, probe):
        """The store is asked for at most one batch."""
        dispatcher = _dispatcher(store, transport, probe, batch_size=25)

        await dispatcher.run_once()

        store.list_pending.assert_awaited_once_with(25)

    @pytest.mark.asyncio
    async def test_failed_send_marks_failed_and_continues(
        self, store, transport, probe
    ):
        """One failing entry does not abort the rest of the batch."""
        store.list_pending.return_value = [_entry("bad"), _entry("good")]
        transport.send.side_effect = [
            TransportResult.failure(TransportErrorKind.TRANSIENT, "throttled"),
            TransportResult.success(),
        ]
        dispatcher = _dispatcher(store, transport, probe, dispatch_concurrency=1)

        summary = await dispatcher.run_once()

        store.mark_failed.assert_awaited_once()
        entry_id, error = store.mark_failed.await_args.args
        assert entry_id == "bad"
        assert "throttled" in error
        store.mark_dispatched.assert_awaited_once_with("good")
        assert summary.dispatched == 1
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_raising_transport_marks_failed(self, store, transport, probe):
        """An exception from the transport is recorded as a failure."""
        store.list_pending.return_value = [_entry("a")]
        transport.send.side_effect = ConnectionError("broker down")
        dispatcher = _dispatcher(store, transport, probe)

        summary = await dispatcher.run_once()

        entry_id, error = store.mark_failed.await_args.args
        assert entry_id == "a"
        assert "ConnectionError" in error
        assert "broker down" in error
        store.mark_dispatched.assert_not_awaited()
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_slow_send_times_out(self, store, probe):
        """A send exceeding the dispatch timeout is a failure, not a success."""

        async def slow_send(body):
            await asyncio.sleep(10)
            return TransportResult.success()

        transport = MagicMock()
        transport.send = slow_send
        store.list_pending.return_value = [_entry("a")]
        dispatcher = _dispatcher(
            store, transport, probe, dispatch_timeout=timedelta(milliseconds=10)
        )

        summary = await dispatcher.run_once()

        store.mark_dispatched.assert_not_awaited()
        _, error = store.mark_failed.await_args.args
        assert "timed out" in error
        assert summary.failed == 1

    @pytest.mark.asyncio
    async def test_skips_failed_entries_not_yet_due(self, store, transport, probe):
        """FAILED entries wait for next_retry_at."""
        store.list_pending.return_value = [
            _entry(
                "later",
                status=OutboxStatus.FAILED,
                retry_count=1,
                next_retry_at=NOW + timedelta(seconds=30),
            ),
            _entry(
                "due",
                status=OutboxStatus.FAILED,
                retry_count=1,
                next_retry_at=NOW - timedelta(seconds=1),
            ),
        ]
        dispatcher = _dispatcher(store, transport, probe)

        summary = await dispatcher.run_once()

        transport.send.assert_awaited_once_with("payload-due")
        assert summary.skipped == 1
        assert summary.dispatched == 1
        probe.entry_skipped.assert_called_once_with(
            "later", NOW + timedelta(seconds=30)
        )

    @pytest.mark.asyncio
    async def test_conflict_is_counted(self, store, transport, probe):
        """A lost compare-and-swap is reported as a conflict."""
        store.list_pending.return_value = [_entry("a")]
        store.mark_dispatched.return_value = StoreResult.CONFLICT
        dispatcher = _dispatcher(store, transport, probe)

        summary = await dispatcher.run_once()

        assert summary.conflicts == 1
        assert summary.dispatched == 0
        probe.entry_conflict.assert_called_once_with("a")

    @pytest.mark.asyncio
    async def test_runs_cleanup_after_batch(self, store, transport, probe):
        """Old dispatched entries are purged with the configured retention."""
        store.cleanup_dispatched.return_value = 7
        dispatcher = _dispatcher(
            store, transport, probe, cleanup_retention=timedelta(days=10)
        )

        summary = await dispatcher.run_once()

        store.cleanup_dispatched.assert_awaited_once_with(timedelta(days=10))
        assert summary.cleaned_up == 7

    @pytest.mark.asyncio
    async def test_storage_unavailable_on_list_propagates(
        self, store, transport, probe
    ):
        """An unreachable store fails the whole sweep."""
        store.list_pending.side_effect = StorageUnavailableError("list_pending")
        dispatcher = _dispatcher(store, transport, probe)

        with pytest.raises(StorageUnavailableError):
            await dispatcher.run_once()

        transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_unavailable_while_marking_propagates(
        self, store, transport, probe
    ):
        """Every send finishes before the storage failure is raised."""
        store.list_pending.return_value = [_entry("a"), _entry("b")]
        store.mark_dispatched.side_effect = StorageUnavailableError("mark_dispatched")
        dispatcher = _dispatcher(store, transport, probe)

        with pytest.raises(StorageUnavailableError):
            await dispatcher.run_once()

        assert transport.send.await_count == 2
        store.cleanup_dispatched.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_store_error_is_counted_and_sweep_completes(
        self, store, transport, probe
    ):
        """A database error recording one entry does not abort the sweep."""
        store.list_pending.return_value = [_entry("bad"), _entry("good")]
        transport.send.side_effect = [
            TransportResult.failure(TransportErrorKind.TRANSIENT, "throttled"),
            TransportResult.success(),
        ]
        store.mark_failed.side_effect = IntegrityError("UPDATE", {}, Exception("x"))
        store.cleanup_dispatched.return_value = 2
        dispatcher = _dispatcher(store, transport, probe, dispatch_concurrency=1)

        summary = await dispatcher.run_once()

        assert summary.errors == 1
        assert summary.dispatched == 1
        assert summary.failed == 0
        assert summary.cleaned_up == 2
        store.mark_dispatched.assert_awaited_once_with("good")
        entry_id, error = probe.entry_record_failed.call_args.args
        assert entry_id == "bad"
        assert error.startswith("IntegrityError")

    @pytest.mark.asyncio
    async def test_unexpected_error_marking_dispatched_is_counted(
        self, store, transport, probe
    ):
        """A generic failure after a successful send is reported, not raised."""
        store.list_pending.return_value = [_entry("a")]
        store.mark_dispatched.side_effect = SQLAlchemyError("constraint")
        dispatcher = _dispatcher(store, transport, probe)

        summary = await dispatcher.run_once()

        assert summary == DispatchSummary(candidates=1, errors=1)
        store.cleanup_dispatched.assert_awaited_once()
        probe.entry_sent.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_is_not_recorded_as_failure(
        self, store, transport, probe
    ):
        """A cancelled send leaves the entry untouched and dispatchable."""
        store.list_pending.return_value = [_entry("a")]
        transport.send.side_effect = asyncio.CancelledError()
        dispatcher = _dispatcher(store, transport, probe)

        with pytest.raises(asyncio.CancelledError):
            await dispatcher.run_once()

        store.mark_failed.assert_not_awaited()
        store.mark_dispatched.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_outbox(self, store, transport, probe):
        """A sweep with nothing to do still reports."""
        dispatcher = _dispatcher(store, transport, probe)

        summary = await dispatcher.run_once()

        assert summary.candidates == 0
        probe.dispatch_completed.assert_called_once_with(0, 0, 0, 0)


class TestOutboxDispatcherWithStore:
    """Dispatcher tests against the SQLite-backed store."""

    @pytest.mark.asyncio
    async def test_entry_moves_onto_queue(self, session_factory, clock):
        """An enqueued entry ends up on the queue and DISPATCHED."""
        store = OutboxStore(session_factory, clock=clock, probe=MagicMock())
        queue = InMemoryMessageTransport("processing", clock=clock)
        dispatcher = OutboxDispatcher(
            store, queue, dispatch_concurrency=1, probe=MagicMock(), clock=clock
        )
        entry_id = await store.enqueue("delivery.message", "hello", "corr-1")

        summary = await dispatcher.run_once()

        assert summary.dispatched == 1
        assert queue.bodies() == ["hello"]
        entry = await store.get(entry_id)
        assert entry.status is OutboxStatus.DISPATCHED
        assert await store.list_pending(limit=10) == []

    @pytest.mark.asyncio
    async def test_backing_off_entries_do_not_starve_new_ones(
        self, session_factory, clock
    ):
        """A batch full of not-yet-due FAILED entries still reaches new work."""
        store = OutboxStore(
            session_factory,
            retry_delay=timedelta(minutes=5),
            clock=clock,
            probe=MagicMock(),
        )
        queue = InMemoryMessageTransport("processing", clock=clock)
        dispatcher = OutboxDispatcher(
            store, queue, batch_size=3, probe=MagicMock(), clock=clock
        )
        for index in range(3):
            entry_id = await store.enqueue("delivery.message", f"old-{index}", "c")
            await store.mark_failed(entry_id, "boom")
            clock.advance(timedelta(seconds=1))
        await store.enqueue("delivery.message", "fresh", "c")

        summary = await dispatcher.run_once()

        assert summary.dispatched == 1
        assert queue.bodies() == ["fresh"]
