"""Protocol for delivery event fan-out observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class EventRegistryProbe(Protocol):
    """Domain probe for event handler registration and dispatch."""

    def handler_registered(self, event_type: str, handler: str) -> None:
        """Record a handler registration."""
        ...

    def event_published(self, event_type: str, handler_count: int) -> None:
        """Record that an event was handed to its handlers."""
        ...

    def handler_failed(self, event_type: str, handler: str, error: str) -> None:
        """Record that a handler raised; other handlers still run."""
        ...

    def audit_event(self, event_type: str, **fields: Any) -> None:
        """Write an audit line for a delivery event."""
        ...

    def with_context(self, context: ObservationContext) -> EventRegistryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultEventRegistryProbe:
    """Default implementation of EventRegistryProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultEventRegistryProbe:
        """Create a new probe with observation context bound."""
        return DefaultEventRegistryProbe(logger=self._logger, context=context)

    def handler_registered(self, event_type: str, handler: str) -> None:
        self._logger.debug(
            "delivery_event_handler_registered",
            event_type=event_type,
            handler=handler,
            **self._get_context_kwargs(),
        )

    def event_published(self, event_type: str, handler_count: int) -> None:
        self._logger.debug(
            "delivery_event_published",
            event_type=event_type,
            handler_count=handler_count,
            **self._get_context_kwargs(),
        )

    def handler_failed(self, event_type: str, handler: str, error: str) -> None:
        self._logger.error(
            "delivery_event_handler_failed",
            event_type=event_type,
            handler=handler,
            error=error,
            **self._get_context_kwargs(),
        )

    def audit_event(self, event_type: str, **fields: Any) -> None:
        self._logger.info(
            "delivery_audit",
            event_type=event_type,
            **fields,
            **self._get_context_kwargs(),
        )
