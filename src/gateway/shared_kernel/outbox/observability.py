"""Observability probes for the outbox store and dispatcher.

Following Domain Oriented Observability, probes capture domain-significant
events and metrics without cluttering business logic with logging concerns.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class OutboxStoreProbe(Protocol):
    """Protocol for outbox store observability.

    Implementations can log, emit metrics, or send traces.
    """

    def entry_enqueued(
        self, entry_id: str, message_type: str, correlation_id: str
    ) -> None:
        """Called when a new entry is written to the outbox."""
        ...

    def entry_dispatched(self, entry_id: str) -> None:
        """Called when an entry is marked as dispatched."""
        ...

    def entry_failed(
        self,
        entry_id: str,
        retry_count: int,
        next_retry_at: datetime,
        error: str,
    ) -> None:
        """Called when a dispatch failure is recorded and a retry scheduled."""
        ...

    def entry_abandoned(self, entry_id: str, retry_count: int, error: str) -> None:
        """Called when an entry exceeds its retry budget."""
        ...

    def version_conflict(self, entry_id: str, expected_version: int) -> None:
        """Called when a conditional update lost a race."""
        ...

    def entries_cleaned_up(self, count: int, cutoff: datetime) -> None:
        """Called after dispatched entries older than the cutoff are removed."""
        ...

    def storage_unavailable(self, operation: str, error: str) -> None:
        """Called when the backing database cannot be reached."""
        ...

    def with_context(self, context: ObservationContext) -> OutboxStoreProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultOutboxStoreProbe:
    """Default implementation of OutboxStoreProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultOutboxStoreProbe:
        """Create a new probe with observation context bound."""
        return DefaultOutboxStoreProbe(logger=self._logger, context=context)

    def entry_enqueued(
        self, entry_id: str, message_type: str, correlation_id: str
    ) -> None:
        self._logger.info(
            "outbox_entry_enqueued",
            entry_id=entry_id,
            message_type=message_type,
            correlation_id=correlation_id,
            **self._get_context_kwargs(),
        )

    def entry_dispatched(self, entry_id: str) -> None:
        self._logger.info(
            "outbox_entry_dispatched",
            entry_id=entry_id,
            **self._get_context_kwargs(),
        )

    def entry_failed(
        self,
        entry_id: str,
        retry_count: int,
        next_retry_at: datetime,
        error: str,
    ) -> None:
        self._logger.warning(
            "outbox_entry_failed",
            entry_id=entry_id,
            retry_count=retry_count,
            next_retry_at=next_retry_at.isoformat(),
            error=error,
            **self._get_context_kwargs(),
        )

    def entry_abandoned(self, entry_id: str, retry_count: int, error: str) -> None:
        self._logger.error(
            "outbox_entry_abandoned",
            entry_id=entry_id,
            retry_count=retry_count,
            error=error,
            **self._get_context_kwargs(),
        )

    def version_conflict(self, entry_id: str, expected_version: int) -> None:
        self._logger.debug(
            "outbox_version_conflict",
            entry_id=entry_id,
            expected_version=expected_version,
            **self._get_context_kwargs(),
        )

    def entries_cleaned_up(self, count: int, cutoff: datetime) -> None:
        """Log cleanup, skipping the no-op case to keep idle logs quiet."""
        if count > 0:
            self._logger.info(
                "outbox_entries_cleaned_up",
                count=count,
                cutoff=cutoff.isoformat(),
                **self._get_context_kwargs(),
            )

    def storage_unavailable(self, operation: str, error: str) -> None:
        self._logger.error(
            "outbox_storage_unavailable",
            operation=operation,
            error=error,
            **self._get_context_kwargs(),
        )


class OutboxDispatcherProbe(Protocol):
    """Protocol for outbox dispatcher observability."""

    def dispatch_started(self, candidate_count: int) -> None:
        """Called when a dispatch sweep has loaded its candidates."""
        ...

    def entry_skipped(self, entry_id: str, next_retry_at: datetime | None) -> None:
        """Called when a FAILED entry is not yet due for another attempt."""
        ...

    def entry_sent(self, entry_id: str, correlation_id: str) -> None:
        """Called when an entry was accepted by the transport."""
        ...

    def entry_send_failed(self, entry_id: str, error: str) -> None:
        """Called when the transport rejected or timed out on an entry."""
        ...

    def entry_conflict(self, entry_id: str) -> None:
        """Called when another dispatcher won the race for an entry."""
        ...

    def entry_record_failed(self, entry_id: str, error: str) -> None:
        """Called when the outcome of a send could not be written to the store."""
        ...

    def dispatch_completed(
        self, dispatched: int, failed: int, skipped: int, cleaned_up: int
    ) -> None:
        """Called when a dispatch sweep finishes."""
        ...

    def with_context(self, context: ObservationContext) -> OutboxDispatcherProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultOutboxDispatcherProbe:
    """Default implementation of OutboxDispatcherProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultOutboxDispatcherProbe:
        """Create a new probe with observation context bound."""
        return DefaultOutboxDispatcherProbe(logger=self._logger, context=context)

    def dispatch_started(self, candidate_count: int) -> None:
        self._logger.debug(
            "outbox_dispatch_started",
            candidate_count=candidate_count,
            **self._get_context_kwargs(),
        )

    def entry_skipped(self, entry_id: str, next_retry_at: datetime | None) -> None:
        self._logger.debug(
            "outbox_entry_not_due",
            entry_id=entry_id,
            next_retry_at=next_retry_at.isoformat() if next_retry_at else None,
            **self._get_context_kwargs(),
        )

    def entry_sent(self, entry_id: str, correlation_id: str) -> None:
        self._logger.info(
            "outbox_entry_sent",
            entry_id=entry_id,
            correlation_id=correlation_id,
            **self._get_context_kwargs(),
        )

    def entry_send_failed(self, entry_id: str, error: str) -> None:
        self._logger.warning(
            "outbox_entry_send_failed",
            entry_id=entry_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def entry_conflict(self, entry_id: str) -> None:
        self._logger.info(
            "outbox_entry_conflict",
            entry_id=entry_id,
            **self._get_context_kwargs(),
        )

    def entry_record_failed(self, entry_id: str, error: str) -> None:
        self._logger.error(
            "outbox_entry_record_failed",
            entry_id=entry_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def dispatch_completed(
        self, dispatched: int, failed: int, skipped: int, cleaned_up: int
    ) -> None:
        """Log sweep totals when anything happened."""
        if dispatched or failed or cleaned_up:
            self._logger.info(
                "outbox_dispatch_completed",
                dispatched=dispatched,
                failed=failed,
                skipped=skipped,
                cleaned_up=cleaned_up,
                **self._get_context_kwargs(),
            )
