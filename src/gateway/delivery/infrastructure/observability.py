"""Observability probes for Delivery infrastructure adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class IdempotencyGuardProbe(Protocol):
    """Domain probe for duplicate suppression lookups."""

    def cache_hit(self, subject_key: str, content_hash: str) -> None:
        """Record that a fresh record suppressed a duplicate."""
        ...

    def cache_miss(self, subject_key: str, content_hash: str, expired: bool) -> None:
        """Record that no fresh record was found."""
        ...

    def record_stored(self, subject_key: str, content_hash: str, outcome: str) -> None:
        """Record that a processed marker was upserted."""
        ...

    def storage_unavailable(self, operation: str, error: str) -> None:
        """Record that the idempotency store could not be reached."""
        ...

    def with_context(self, context: ObservationContext) -> IdempotencyGuardProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultIdempotencyGuardProbe:
    """Default implementation of IdempotencyGuardProbe using structlog.

    Keeps running hit/miss counters alongside the log lines.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context
        self.hits = 0
        self.misses = 0

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(
        self, context: ObservationContext
    ) -> DefaultIdempotencyGuardProbe:
        """Create a new probe with observation context bound."""
        return DefaultIdempotencyGuardProbe(logger=self._logger, context=context)

    def cache_hit(self, subject_key: str, content_hash: str) -> None:
        self.hits += 1
        self._logger.info(
            "idempotency_hit",
            subject_key=subject_key,
            content_hash=content_hash,
            hits=self.hits,
            **self._get_context_kwargs(),
        )

    def cache_miss(self, subject_key: str, content_hash: str, expired: bool) -> None:
        self.misses += 1
        self._logger.debug(
            "idempotency_miss",
            subject_key=subject_key,
            content_hash=content_hash,
            expired=expired,
            misses=self.misses,
            **self._get_context_kwargs(),
        )

    def record_stored(self, subject_key: str, content_hash: str, outcome: str) -> None:
        self._logger.debug(
            "idempotency_record_stored",
            subject_key=subject_key,
            content_hash=content_hash,
            outcome=outcome,
            **self._get_context_kwargs(),
        )

    def storage_unavailable(self, operation: str, error: str) -> None:
        self._logger.error(
            "idempotency_storage_unavailable",
            operation=operation,
            error=error,
            **self._get_context_kwargs(),
        )


class DeliverySinkProbe(Protocol):
    """Domain probe for calls to the downstream delivery endpoint."""

    def delivery_succeeded(self, endpoint: str, status_code: int) -> None:
        """Record a 2xx response."""
        ...

    def delivery_rejected(self, endpoint: str, status_code: int) -> None:
        """Record a non-2xx response."""
        ...

    def delivery_error(self, endpoint: str, error: str, error_type: str) -> None:
        """Record a transport-level failure (timeout, connection refused)."""
        ...

    def with_context(self, context: ObservationContext) -> DeliverySinkProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultDeliverySinkProbe:
    """Default implementation of DeliverySinkProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultDeliverySinkProbe:
        """Create a new probe with observation context bound."""
        return DefaultDeliverySinkProbe(logger=self._logger, context=context)

    def delivery_succeeded(self, endpoint: str, status_code: int) -> None:
        self._logger.info(
            "sink_delivery_succeeded",
            endpoint=endpoint,
            status_code=status_code,
            **self._get_context_kwargs(),
        )

    def delivery_rejected(self, endpoint: str, status_code: int) -> None:
        self._logger.warning(
            "sink_delivery_rejected",
            endpoint=endpoint,
            status_code=status_code,
            **self._get_context_kwargs(),
        )

    def delivery_error(self, endpoint: str, error: str, error_type: str) -> None:
        self._logger.error(
            "sink_delivery_error",
            endpoint=endpoint,
            error=error,
            error_type=error_type,
            **self._get_context_kwargs(),
        )
