"""Protocol for retry orchestrator observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class RetryOrchestratorProbe(Protocol):
    """Domain probe for retry-queue sweeps and lease actions."""

    def batch_received(self, queue: str, count: int) -> None:
        """Record how many leases a sweep obtained."""
        ...

    def message_acknowledged(self, message_id: str, correlation_id: str) -> None:
        """Record that a lease was deleted after success."""
        ...

    def message_requeued(
        self, message_id: str, correlation_id: str, retry_count: int, delay_seconds: float
    ) -> None:
        """Record that a lease was hidden again with a new body and delay."""
        ...

    def message_dead_lettered(
        self, message_id: str, correlation_id: str, failure_kind: str, reason: str
    ) -> None:
        """Record that a message was published to the dead-letter sink and removed."""
        ...

    def dead_letter_publish_failed(self, message_id: str, error: str) -> None:
        """Record that the dead-letter sink rejected a record; the lease is kept."""
        ...

    def lease_action_failed(self, message_id: str, action: str, error: str) -> None:
        """Record that a delete or visibility update was rejected."""
        ...

    def sweep_completed(
        self, leased: int, succeeded: int, retried: int, dead_lettered: int, lease_errors: int
    ) -> None:
        """Record sweep totals."""
        ...

    def with_context(self, context: ObservationContext) -> RetryOrchestratorProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultRetryOrchestratorProbe:
    """Default implementation of RetryOrchestratorProbe using structlog."""

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
    ) -> DefaultRetryOrchestratorProbe:
        """Create a new probe with observation context bound."""
        return DefaultRetryOrchestratorProbe(logger=self._logger, context=context)

    def batch_received(self, queue: str, count: int) -> None:
        if count > 0:
            self._logger.info(
                "retry_batch_received",
                queue=queue,
                count=count,
                **self._get_context_kwargs(),
            )

    def message_acknowledged(self, message_id: str, correlation_id: str) -> None:
        self._logger.info(
            "retry_message_acknowledged",
            message_id=message_id,
            correlation_id=correlation_id,
            **self._get_context_kwargs(),
        )

    def message_requeued(
        self, message_id: str, correlation_id: str, retry_count: int, delay_seconds: float
    ) -> None:
        self._logger.info(
            "retry_message_requeued",
            message_id=message_id,
            correlation_id=correlation_id,
            retry_count=retry_count,
            delay_seconds=round(delay_seconds, 3),
            **self._get_context_kwargs(),
        )

    def message_dead_lettered(
        self, message_id: str, correlation_id: str, failure_kind: str, reason: str
    ) -> None:
        self._logger.error(
            "retry_message_dead_lettered",
            message_id=message_id,
            correlation_id=correlation_id,
            failure_kind=failure_kind,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def dead_letter_publish_failed(self, message_id: str, error: str) -> None:
        self._logger.error(
            "dead_letter_publish_failed",
            message_id=message_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def lease_action_failed(self, message_id: str, action: str, error: str) -> None:
        self._logger.warning(
            "lease_action_failed",
            message_id=message_id,
            action=action,
            error=error,
            **self._get_context_kwargs(),
        )

    def sweep_completed(
        self, leased: int, succeeded: int, retried: int, dead_lettered: int, lease_errors: int
    ) -> None:
        if leased > 0:
            self._logger.info(
                "retry_sweep_completed",
                leased=leased,
                succeeded=succeeded,
                retried=retried,
                dead_lettered=dead_lettered,
                lease_errors=lease_errors,
                **self._get_context_kwargs(),
            )
