"""Value objects for the outbox pattern.

Value objects are immutable descriptors that provide type safety and
domain semantics for outbox entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class OutboxStatus(StrEnum):
    """Lifecycle status of an outbox entry.

    PENDING and FAILED are dispatchable; DISPATCHED and ABANDONED are terminal.
    """

    PENDING = "Pending"
    DISPATCHED = "Dispatched"
    FAILED = "Failed"
    ABANDONED = "Abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (OutboxStatus.DISPATCHED, OutboxStatus.ABANDONED)


class StoreResult(StrEnum):
    """Outcome of a conditional outbox mutation."""

    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class OutboxEntry:
    """Represents a single entry in the outbox table.

    This is an immutable value object that captures the state of an outbox
    entry as it exists in the database. It contains all the information
    needed to dispatch the entry to the processing queue.

    Attributes:
        id: Unique identifier for the entry, assigned at creation
        message_type: Tag describing the payload (e.g., "delivery.message")
        payload: Opaque serialized message body
        status: Current lifecycle status
        created_at: When the entry was written to the outbox
        correlation_id: Identifier carried across every hop of the delivery
        retry_count: Number of failed dispatch attempts so far
        version: Optimistic concurrency token, bumped on every mutation
        dispatched_at: When the entry was handed to the transport
        last_error: The most recent dispatch error (if any)
        next_retry_at: Earliest time a FAILED entry may be dispatched again
        abandoned_at: When the retry budget was exhausted
    """

    id: str
    message_type: str
    payload: str
    status: OutboxStatus
    created_at: datetime
    correlation_id: str
    retry_count: int = 0
    version: int = 1
    dispatched_at: datetime | None = None
    last_error: str | None = None
    next_retry_at: datetime | None = None
    abandoned_at: datetime | None = None

    @property
    def is_dispatched(self) -> bool:
        """Check if this entry has been handed to the transport."""
        return self.status is OutboxStatus.DISPATCHED

    @property
    def is_abandoned(self) -> bool:
        """Check if this entry exhausted its retry budget."""
        return self.status is OutboxStatus.ABANDONED

    def is_ready(self, now: datetime) -> bool:
        """Check whether the entry may be dispatched at ``now``.

        PENDING entries are always ready. FAILED entries become ready once
        their ``next_retry_at`` has passed.
        """
        if self.status is OutboxStatus.PENDING:
            return True
        if self.status is OutboxStatus.FAILED:
            return self.next_retry_at is None or now >= self.next_retry_at
        return False


class TransportErrorKind(StrEnum):
    """Classification of a failed transport call.

    TRANSIENT failures (network, timeout, throttling) are worth retrying.
    LEASE_LOST means the receipt token no longer identifies a live lease.
    FATAL failures will not succeed on retry.
    """

    TRANSIENT = "transient"
    LEASE_LOST = "lease_lost"
    FATAL = "fatal"


@dataclass(frozen=True)
class TransportResult:
    """Outcome of a single queue operation.

    Transports report ordinary failures through this value instead of
    raising, so callers can classify them without exception handling.
    """

    ok: bool
    error_kind: TransportErrorKind | None = None
    error: str | None = None

    @classmethod
    def success(cls) -> TransportResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, kind: TransportErrorKind, error: str) -> TransportResult:
        return cls(ok=False, error_kind=kind, error=error)


@dataclass(frozen=True)
class DispatchSummary:
    """Totals for one outbox dispatch sweep.

    Attributes:
        candidates: Entries returned by ``list_pending``
        dispatched: Entries sent and marked DISPATCHED
        failed: Entries whose send failed and were marked FAILED/ABANDONED
        skipped: FAILED entries not yet due for another attempt
        conflicts: Entries another dispatcher updated first
        cleaned_up: Old DISPATCHED entries removed after the sweep
        errors: Entries whose outcome could not be recorded in the store
    """

    candidates: int = 0
    dispatched: int = 0
    failed: int = 0
    skipped: int = 0
    conflicts: int = 0
    cleaned_up: int = 0
    errors: int = 0
