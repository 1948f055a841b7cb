"""Unit tests for DeliveryIntakeService."""

import hashlib
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from delivery.application.services.intake_service import (
    DeliveryIntakeService,
    compute_content_hash,
)
from delivery.domain.events import MessageQueued
from delivery.domain.value_objects import IntakeResult, ProcessingOutcome
from delivery.infrastructure.envelope_serializer import JsonEnvelopeSerializer
from delivery.infrastructure.idempotency_repository import SqlAlchemyIdempotencyGuard
from infrastructure.outbox.repository import OutboxStore
from shared_kernel.outbox.exceptions import StorageUnavailableError

NOW = datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC)
serializer = JsonEnvelopeSerializer()


@pytest.fixture
def outbox():
    outbox = AsyncMock()
    outbox.enqueue.return_value = "entry-1"
    return outbox


@pytest.fixture
def guard():
    guard = AsyncMock()
    guard.has_been_processed.return_value = False
    return guard


@pytest.fixture
def events():
    events = MagicMock()
    events.publish = AsyncMock(return_value=1)
    return events


@pytest.fixture
def probe():
    return MagicMock()


@pytest.fixture
def service(outbox, guard, events, probe):
    return DeliveryIntakeService(
        outbox=outbox,
        guard=guard,
        serializer=serializer,
        events=events,
        probe=probe,
        clock=lambda: NOW,
    )


class TestComputeContentHash:
    """Tests for compute_content_hash()."""

    def test_sha256_hex(self):
        """The fingerprint is the SHA-256 hex digest of the UTF-8 bytes."""
        expected = hashlib.sha256("héllo".encode()).hexdigest()

        assert compute_content_hash("héllo") == expected

    def test_differs_for_different_content(self):
        assert compute_content_hash("a") != compute_content_hash("b")


class TestDeliveryIntakeServiceSubmit:
    """Tests for DeliveryIntakeService.submit()."""

    @pytest.mark.asyncio
    async def test_new_content_is_enqueued(self, service, outbox, guard, events):
        """Fresh content is written to the outbox and marked processed."""
        receipt = await service.submit(
            "documents/report-1.pdf", "report body", correlation_id="corr-1"
        )

        assert receipt.accepted
        assert receipt.entry_id == "entry-1"
        assert receipt.correlation_id == "corr-1"
        message_type, payload, correlation_id = outbox.enqueue.await_args.args
        assert message_type == "delivery.message"
        assert correlation_id == "corr-1"
        envelope = serializer.deserialize(payload)
        assert envelope.payload == "report body"
        assert envelope.retry_count == 0
        assert envelope.subject_key == "documents/report-1.pdf"
        assert envelope.created_at == NOW
        guard.mark_processed.assert_awaited_once_with(
            "documents/report-1.pdf",
            compute_content_hash("report body"),
            ProcessingOutcome.SUCCESS,
        )
        [event] = [c.args[0] for c in events.publish.await_args_list]
        assert isinstance(event, MessageQueued)
        assert event.entry_id == "entry-1"

    @pytest.mark.asyncio
    async def test_generates_correlation_id(self, service):
        """A correlation id is generated when none is supplied."""
        receipt = await service.submit("s", "c")

        assert receipt.correlation_id

    @pytest.mark.asyncio
    async def test_duplicate_is_suppressed(self, service, outbox, guard, probe):
        """Already processed content is not enqueued again."""
        guard.has_been_processed.return_value = True

        receipt = await service.submit("s", "c")

        assert receipt.result is IntakeResult.DUPLICATE
        assert receipt.entry_id is None
        outbox.enqueue.assert_not_awaited()
        guard.mark_processed.assert_not_awaited()
        probe.duplicate_suppressed.assert_called_once_with(
            "s", compute_content_hash("c")
        )

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_marked_processed(
        self, service, outbox, guard, probe
    ):
        """If the outbox write fails the content can be submitted again."""
        outbox.enqueue.side_effect = StorageUnavailableError("enqueue")

        with pytest.raises(StorageUnavailableError):
            await service.submit("s", "c")

        guard.mark_processed.assert_not_awaited()
        probe.submission_failed.assert_called_once()


class TestDeliveryIntakeServiceWithStores:
    """Intake tests against the SQLite-backed outbox and guard."""

    @pytest.mark.asyncio
    async def test_second_submission_within_ttl_is_duplicate(
        self, session_factory, clock
    ):
        """The same content for the same subject is accepted once per TTL."""
        outbox = OutboxStore(session_factory, probe=MagicMock(), clock=clock)
        guard = SqlAlchemyIdempotencyGuard(
            session_factory, ttl=timedelta(hours=24), probe=MagicMock(), clock=clock
        )
        service = DeliveryIntakeService(
            outbox, guard, serializer, probe=MagicMock(), clock=clock
        )

        first = await service.submit("subject-1", "body")
        second = await service.submit("subject-1", "body")
        other_subject = await service.submit("subject-2", "body")
        clock.advance(timedelta(hours=25))
        after_ttl = await service.submit("subject-1", "body")

        assert first.accepted
        assert not second.accepted
        assert other_subject.accepted
        assert after_ttl.accepted
        assert len(await outbox.list_pending(limit=10)) == 3
