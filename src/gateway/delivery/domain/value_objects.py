"""Value objects for the Delivery bounded context.

Value objects are immutable and defined by their attributes rather than
identity. They describe messages in flight, queue leases, retry decisions
and the results of delivery attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import StrEnum


@dataclass(frozen=True)
class RetryableMessage:
    """Envelope for a message in flight between queues.

    The envelope travels as the queue body, so the retry count survives
    visibility-timeout redelivery without a separate lookup.

    Attributes:
        payload: The content to deliver to the sink
        correlation_id: Identifier carried across every delivery hop
        retry_count: Number of times the message has been requeued
        created_at: When the logical unit of work started
        subject_key: Identifier of the source the content was built from
    """

    payload: str
    correlation_id: str
    retry_count: int
    created_at: datetime
    subject_key: str

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValueError("retry_count must be >= 0")

    def next_attempt(self) -> RetryableMessage:
        """Return a copy with the retry count advanced by exactly one."""
        return replace(self, retry_count=self.retry_count + 1)

    def reset_retries(self) -> RetryableMessage:
        """Return a copy entering the retry queue for the first time."""
        return replace(self, retry_count=0)


@dataclass(frozen=True)
class DeadLetterRecord(RetryableMessage):
    """A message that permanently failed, with the reason it was given up.

    Attributes:
        failure_reason: Why the message was dead-lettered
        last_attempt_at: When the final decision was made
    """

    failure_reason: str
    last_attempt_at: datetime

    @classmethod
    def from_message(
        cls, message: RetryableMessage, reason: str, at: datetime
    ) -> DeadLetterRecord:
        """Build a record from the envelope that failed."""
        return cls(
            payload=message.payload,
            correlation_id=message.correlation_id,
            retry_count=message.retry_count,
            created_at=message.created_at,
            subject_key=message.subject_key,
            failure_reason=reason,
            last_attempt_at=at,
        )

    @classmethod
    def from_raw_body(
        cls, body: str, message_id: str, reason: str, at: datetime
    ) -> DeadLetterRecord:
        """Build a record for a body that could not be parsed at all.

        The raw body is preserved as payload and the transport message id
        stands in for the unknown correlation id.
        """
        return cls(
            payload=body,
            correlation_id=message_id,
            retry_count=0,
            created_at=at,
            subject_key="",
            failure_reason=reason,
            last_attempt_at=at,
        )


@dataclass(frozen=True)
class QueueLease:
    """A leased, currently invisible queue message.

    The lease is only valid until its visibility timeout expires or it is
    released through delete/update with the receipt token.

    Attributes:
        message_id: Transport identifier of the message
        receipt_token: Token proving ownership of this lease
        body: Raw message body
        dequeue_count: How many times the transport has handed it out
    """

    message_id: str
    receipt_token: str
    body: str
    dequeue_count: int = 1


@dataclass(frozen=True)
class RetryContext:
    """Inputs for a single retry evaluation. Never persisted."""

    correlation_id: str
    current_retry_count: int
    max_retry_attempts: int

    @classmethod
    def for_message(
        cls, message: RetryableMessage, max_retry_attempts: int
    ) -> RetryContext:
        return cls(
            correlation_id=message.correlation_id,
            current_retry_count=message.retry_count,
            max_retry_attempts=max_retry_attempts,
        )


class RetryDecision(StrEnum):
    """Outcome of processing one retry-queue message."""

    SUCCESS = "success"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"


class FailureKind(StrEnum):
    """Why a message did not succeed.

    MALFORMED and RETRY_BUDGET_EXHAUSTED are terminal. TRANSIENT failures
    are retried with backoff. UNCLASSIFIED failures are treated as terminal.
    """

    MALFORMED = "malformed"
    RETRY_BUDGET_EXHAUSTED = "retry_budget_exhausted"
    TRANSIENT = "transient"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class MessageProcessingResult:
    """Exactly one of success, retry or dead-letter for a leased message.

    Attributes:
        decision: What should happen to the lease
        message: The parsed envelope, when the body could be parsed
        failure_kind: Classification of the failure, if any
        reason: Human readable failure description
        dead_letter: Record to publish when the decision is DEAD_LETTER
    """

    decision: RetryDecision
    message: RetryableMessage | None = None
    failure_kind: FailureKind | None = None
    reason: str | None = None
    dead_letter: DeadLetterRecord | None = None

    @classmethod
    def success(cls, message: RetryableMessage) -> MessageProcessingResult:
        return cls(decision=RetryDecision.SUCCESS, message=message)

    @classmethod
    def retry(cls, message: RetryableMessage, reason: str) -> MessageProcessingResult:
        return cls(
            decision=RetryDecision.RETRY,
            message=message,
            failure_kind=FailureKind.TRANSIENT,
            reason=reason,
        )

    @classmethod
    def dead_lettered(
        cls,
        record: DeadLetterRecord,
        kind: FailureKind,
        reason: str,
        message: RetryableMessage | None = None,
    ) -> MessageProcessingResult:
        return cls(
            decision=RetryDecision.DEAD_LETTER,
            message=message,
            failure_kind=kind,
            reason=reason,
            dead_letter=record,
        )


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single delivery sink call. No partial success."""

    delivered: bool
    error: str | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, status_code: int | None = None) -> DeliveryResult:
        return cls(delivered=True, status_code=status_code)

    @classmethod
    def failed(cls, error: str, status_code: int | None = None) -> DeliveryResult:
        return cls(delivered=False, error=error, status_code=status_code)


class ProcessingOutcome(StrEnum):
    """Recorded outcome of a processed subject."""

    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True)
class IdempotencyRecord:
    """Fingerprint of processed content for duplicate suppression.

    Records expire softly: an old record is treated as absent but is not
    deleted when read.
    """

    subject_key: str
    content_hash: str
    processed_at: datetime
    outcome: ProcessingOutcome

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        """Check whether the record still suppresses duplicates at ``now``."""
        return now - self.processed_at < ttl


class IntakeResult(StrEnum):
    """Outcome of submitting content for delivery."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IntakeReceipt:
    """What happened to a submission.

    Attributes:
        result: Whether the content was accepted or suppressed as a duplicate
        content_hash: Fingerprint of the submitted content
        entry_id: Outbox entry id, only set when accepted
        correlation_id: Correlation id assigned to the delivery, when accepted
    """

    result: IntakeResult
    content_hash: str
    entry_id: str | None = None
    correlation_id: str | None = None

    @property
    def accepted(self) -> bool:
        return self.result is IntakeResult.ACCEPTED


@dataclass(frozen=True)
class RetrySweepSummary:
    """Totals for one retry-queue sweep."""

    leased: int = 0
    succeeded: int = 0
    retried: int = 0
    dead_lettered: int = 0
    lease_errors: int = 0


@dataclass(frozen=True)
class ConsumeSummary:
    """Totals for one processing-queue sweep."""

    received: int = 0
    delivered: int = 0
    forwarded_to_retry: int = 0
    dead_lettered: int = 0
    lease_errors: int = 0
