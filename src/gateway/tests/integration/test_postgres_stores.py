"""Integration tests for the outbox store and idempotency guard on PostgreSQL."""

import asyncio
from datetime import timedelta

import pytest

from delivery.domain.value_objects import ProcessingOutcome
from delivery.infrastructure.idempotency_repository import SqlAlchemyIdempotencyGuard
from infrastructure.outbox.repository import OutboxStore
from shared_kernel.outbox.value_objects import OutboxStatus, StoreResult

pytestmark = pytest.mark.integration


class TestOutboxStoreOnPostgres:
    """Outbox store behaviour against a real PostgreSQL server."""

    @pytest.mark.asyncio
    async def test_enqueue_and_dispatch(self, pg_session_factory):
        store = OutboxStore(pg_session_factory)

        entry_id = await store.enqueue("delivery.message", "{}", "corr-1")
        [entry] = await store.list_pending(limit=10)

        assert entry.id == entry_id
        assert entry.status is OutboxStatus.PENDING
        assert await store.mark_dispatched(entry_id) is StoreResult.OK
        assert await store.list_pending(limit=10) == []

    @pytest.mark.asyncio
    async def test_concurrent_version_updates_single_winner(self, pg_session_factory):
        """Only one of two updates made against the same version succeeds."""
        store = OutboxStore(pg_session_factory)
        entry_id = await store.enqueue("delivery.message", "{}", "corr-1")
        [entry] = await store.list_pending(limit=1)

        results = await asyncio.gather(
            store.update_if_version(
                entry_id, entry.version, {"status": OutboxStatus.DISPATCHED}
            ),
            store.update_if_version(
                entry_id, entry.version, {"status": OutboxStatus.DISPATCHED}
            ),
        )

        assert sorted(results) == sorted([StoreResult.OK, StoreResult.CONFLICT])


class TestIdempotencyGuardOnPostgres:
    """Idempotency guard behaviour against a real PostgreSQL server."""

    @pytest.mark.asyncio
    async def test_concurrent_marks_leave_one_record(self, pg_session_factory):
        guard = SqlAlchemyIdempotencyGuard(pg_session_factory, ttl=timedelta(hours=1))

        await asyncio.gather(
            *(
                guard.mark_processed("subject", "hash", ProcessingOutcome.SUCCESS)
                for _ in range(5)
            )
        )

        assert await guard.has_been_processed("subject", "hash") is True
        record = await guard.get_record("subject", "hash")
        assert record.outcome is ProcessingOutcome.SUCCESS
