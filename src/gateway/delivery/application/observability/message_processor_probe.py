"""Protocol for retry-queue message processing observability.

Defines the interface for domain probes that capture what happened to each
leased message: parse failures, exhausted budgets and delivery attempts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class MessageProcessorProbe(Protocol):
    """Domain probe for per-message processing."""

    def deserialization_failed(self, message_id: str, error: str) -> None:
        """Record that a queue body could not be parsed."""
        ...

    def retry_budget_exhausted(
        self, correlation_id: str, retry_count: int, max_retry_attempts: int
    ) -> None:
        """Record that a message will not be attempted again."""
        ...

    def delivery_succeeded(self, correlation_id: str, retry_count: int) -> None:
        """Record a successful redelivery."""
        ...

    def delivery_failed(self, correlation_id: str, retry_count: int, error: str) -> None:
        """Record a failed redelivery that will be retried."""
        ...

    def processing_error(self, message_id: str, error: str, error_type: str) -> None:
        """Record an unexpected error; the message is dead-lettered."""
        ...

    def with_context(self, context: ObservationContext) -> MessageProcessorProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultMessageProcessorProbe:
    """Default implementation of MessageProcessorProbe using structlog."""

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

    def with_context(
        self, context: ObservationContext
    ) -> DefaultMessageProcessorProbe:
        """Create a new probe with observation context bound."""
        return DefaultMessageProcessorProbe(logger=self._logger, context=context)

    def deserialization_failed(self, message_id: str, error: str) -> None:
        """Record that a queue body could not be parsed."""
        self._logger.error(
            "message_deserialization_failed",
            message_id=message_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def retry_budget_exhausted(
        self, correlation_id: str, retry_count: int, max_retry_attempts: int
    ) -> None:
        """Record that a message will not be attempted again."""
        self._logger.warning(
            "message_retry_budget_exhausted",
            correlation_id=correlation_id,
            retry_count=retry_count,
            max_retry_attempts=max_retry_attempts,
            **self._get_context_kwargs(),
        )

    def delivery_succeeded(self, correlation_id: str, retry_count: int) -> None:
        """Record a successful redelivery."""
        self._logger.info(
            "message_redelivered",
            correlation_id=correlation_id,
            retry_count=retry_count,
            **self._get_context_kwargs(),
        )

    def delivery_failed(self, correlation_id: str, retry_count: int, error: str) -> None:
        """Record a failed redelivery that will be retried."""
        self._logger.warning(
            "message_redelivery_failed",
            correlation_id=correlation_id,
            retry_count=retry_count,
            error=error,
            **self._get_context_kwargs(),
        )

    def processing_error(self, message_id: str, error: str, error_type: str) -> None:
        """Record an unexpected error; the message is dead-lettered."""
        self._logger.error(
            "message_processing_error",
            message_id=message_id,
            error=error,
            error_type=error_type,
            **self._get_context_kwargs(),
        )
