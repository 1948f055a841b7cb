"""Protocol for processing-queue consumer observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class DeliveryConsumerProbe(Protocol):
    """Domain probe for first delivery attempts from the processing queue."""

    def message_delivered(self, message_id: str, correlation_id: str) -> None:
        """Record that the sink accepted a message on its first attempt."""
        ...

    def message_forwarded_to_retry(
        self, message_id: str, correlation_id: str, error: str
    ) -> None:
        """Record that a failed message was moved to the retry queue."""
        ...

    def forward_failed(self, message_id: str, error: str) -> None:
        """Record that the retry queue rejected a message; the lease is kept."""
        ...

    def malformed_message(self, message_id: str, error: str) -> None:
        """Record that a processing-queue body could not be parsed."""
        ...

    def lease_action_failed(self, message_id: str, action: str, error: str) -> None:
        """Record that a delete was rejected by the processing queue."""
        ...

    def with_context(self, context: ObservationContext) -> DeliveryConsumerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultDeliveryConsumerProbe:
    """Default implementation of DeliveryConsumerProbe using structlog."""

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
    ) -> DefaultDeliveryConsumerProbe:
        """Create a new probe with observation context bound."""
        return DefaultDeliveryConsumerProbe(logger=self._logger, context=context)

    def message_delivered(self, message_id: str, correlation_id: str) -> None:
        self._logger.info(
            "message_delivered",
            message_id=message_id,
            correlation_id=correlation_id,
            **self._get_context_kwargs(),
        )

    def message_forwarded_to_retry(
        self, message_id: str, correlation_id: str, error: str
    ) -> None:
        self._logger.warning(
            "message_forwarded_to_retry",
            message_id=message_id,
            correlation_id=correlation_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def forward_failed(self, message_id: str, error: str) -> None:
        self._logger.error(
            "message_forward_failed",
            message_id=message_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def malformed_message(self, message_id: str, error: str) -> None:
        self._logger.error(
            "processing_message_malformed",
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
