"""Unit tests for Delivery domain value objects."""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from delivery.domain.value_objects import (
    DeadLetterRecord,
    DeliveryResult,
    FailureKind,
    IdempotencyRecord,
    IntakeReceipt,
    IntakeResult,
    MessageProcessingResult,
    ProcessingOutcome,
    RetryableMessage,
    RetryContext,
    RetryDecision,
)

NOW = datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC)


def _message(retry_count: int = 0) -> RetryableMessage:
    return RetryableMessage(
        payload="report body",
        correlation_id="corr-1",
        retry_count=retry_count,
        created_at=NOW,
        subject_key="documents/report-1.pdf",
    )


class TestRetryableMessage:
    """Tests for RetryableMessage."""

    def test_is_immutable(self):
        """Envelopes cannot be modified in place."""
        with pytest.raises(FrozenInstanceError):
            _message().retry_count = 5  # type: ignore[misc]

    def test_rejects_negative_retry_count(self):
        """retry_count is never negative."""
        with pytest.raises(ValueError):
            _message(retry_count=-1)

    def test_next_attempt_increments_by_one(self):
        """Each requeue advances the retry count by exactly one."""
        message = _message(retry_count=2)

        advanced = message.next_attempt()

        assert advanced.retry_count == 3
        assert message.retry_count == 2
        assert advanced.payload == message.payload
        assert advanced.correlation_id == message.correlation_id
        assert advanced.created_at == message.created_at

    def test_reset_retries(self):
        """Entering the retry queue starts from zero."""
        assert _message(retry_count=4).reset_retries().retry_count == 0


class TestDeadLetterRecord:
    """Tests for DeadLetterRecord."""

    def test_from_message_copies_envelope(self):
        """The record keeps every envelope field plus the failure details."""
        record = DeadLetterRecord.from_message(_message(3), "gave up", NOW)

        assert record.payload == "report body"
        assert record.correlation_id == "corr-1"
        assert record.retry_count == 3
        assert record.subject_key == "documents/report-1.pdf"
        assert record.failure_reason == "gave up"
        assert record.last_attempt_at == NOW

    def test_from_raw_body_preserves_body(self):
        """Unparseable bodies are kept verbatim for inspection."""
        record = DeadLetterRecord.from_raw_body("not json", "msg-9", "bad", NOW)

        assert record.payload == "not json"
        assert record.correlation_id == "msg-9"
        assert record.retry_count == 0
        assert record.subject_key == ""

    def test_is_a_retryable_message(self):
        """A dead-letter record extends the envelope."""
        record = DeadLetterRecord.from_message(_message(), "r", NOW)

        assert isinstance(record, RetryableMessage)


class TestRetryContext:
    """Tests for RetryContext."""

    def test_for_message(self):
        """The context mirrors the envelope's retry state."""
        context = RetryContext.for_message(_message(2), max_retry_attempts=3)

        assert context == RetryContext("corr-1", 2, 3)


class TestMessageProcessingResult:
    """Tests for MessageProcessingResult factories."""

    def test_success(self):
        """Success carries the message and no failure."""
        result = MessageProcessingResult.success(_message())

        assert result.decision is RetryDecision.SUCCESS
        assert result.failure_kind is None
        assert result.dead_letter is None

    def test_retry_is_transient(self):
        """Retries are classified as transient failures."""
        result = MessageProcessingResult.retry(_message(), "sink down")

        assert result.decision is RetryDecision.RETRY
        assert result.failure_kind is FailureKind.TRANSIENT
        assert result.reason == "sink down"

    def test_dead_lettered_carries_record(self):
        """Dead-letter results carry the record to publish."""
        record = DeadLetterRecord.from_raw_body("x", "m", "bad", NOW)

        result = MessageProcessingResult.dead_lettered(
            record, FailureKind.MALFORMED, "bad"
        )

        assert result.decision is RetryDecision.DEAD_LETTER
        assert result.dead_letter is record
        assert result.message is None


class TestDeliveryResult:
    """Tests for DeliveryResult."""

    def test_ok(self):
        assert DeliveryResult.ok(status_code=204) == DeliveryResult(True, None, 204)

    def test_failed(self):
        result = DeliveryResult.failed("HTTP 503", status_code=503)

        assert not result.delivered
        assert result.error == "HTTP 503"


class TestIdempotencyRecord:
    """Tests for IdempotencyRecord freshness."""

    def test_fresh_within_ttl(self):
        """A record younger than the TTL is a hit."""
        record = IdempotencyRecord("s", "h", NOW, ProcessingOutcome.SUCCESS)

        assert record.is_fresh(NOW + timedelta(hours=23), timedelta(hours=24))

    def test_expires_at_ttl(self):
        """A record exactly TTL old is treated as absent."""
        record = IdempotencyRecord("s", "h", NOW, ProcessingOutcome.SUCCESS)

        assert not record.is_fresh(NOW + timedelta(hours=24), timedelta(hours=24))


class TestIntakeReceipt:
    """Tests for IntakeReceipt."""

    def test_accepted(self):
        receipt = IntakeReceipt(IntakeResult.ACCEPTED, "h", "entry", "corr")

        assert receipt.accepted

    def test_duplicate_is_not_accepted(self):
        assert not IntakeReceipt(IntakeResult.DUPLICATE, "h").accepted
