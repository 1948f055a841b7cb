"""Explicit registry of delivery event handlers.

Handlers are registered against an event's ``event_type`` tag at startup and
then frozen. Publishing looks handlers up by tag; there is no runtime
resolution by type. A failing handler is reported and does not prevent the
remaining handlers from running.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import TYPE_CHECKING

from delivery.application.observability import DefaultEventRegistryProbe
from delivery.domain.events import ALL_EVENT_TYPES, DeliveryEvent

if TYPE_CHECKING:
    from delivery.application.observability import EventRegistryProbe

EventHandler = Callable[[DeliveryEvent], Awaitable[None]]


class DeliveryEventRegistry:
    """Maps event-type tags to ordered lists of handlers."""

    def __init__(self, probe: EventRegistryProbe | None = None) -> None:
        self._probe = probe or DefaultEventRegistryProbe()
        self._handlers: dict[str, list[EventHandler]] = {}
        self._frozen = False

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Append a handler for ``event_type``.

        Raises:
            ValueError: If the tag is not a known delivery event type
            RuntimeError: If the registry has already been frozen
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers after the registry is frozen")
        if event_type not in ALL_EVENT_TYPES:
            raise ValueError(f"Unknown delivery event type: {event_type}")
        self._handlers.setdefault(event_type, []).append(handler)
        self._probe.handler_registered(event_type, _handler_name(handler))

    def freeze(self) -> DeliveryEventRegistry:
        """Prevent further registrations and return the registry."""
        self._frozen = True
        return self

    def handlers_for(self, event_type: str) -> tuple[EventHandler, ...]:
        """Return the handlers registered for a tag, in registration order."""
        return tuple(self._handlers.get(event_type, ()))

    async def publish(self, event: DeliveryEvent) -> int:
        """Run every handler registered for the event's tag.

        Returns:
            Number of handlers that completed without raising
        """
        handlers = self.handlers_for(event.event_type)
        succeeded = 0
        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                self._probe.handler_failed(event.event_type, _handler_name(handler), str(e))
            else:
                succeeded += 1
        self._probe.event_published(event.event_type, len(handlers))
        return succeeded


class AuditLogEventHandler:
    """Writes one structured audit line per delivery event."""

    def __init__(self, probe: EventRegistryProbe | None = None) -> None:
        self._probe = probe or DefaultEventRegistryProbe()

    async def __call__(self, event: DeliveryEvent) -> None:
        fields = asdict(event)
        fields["occurred_at"] = event.occurred_at.isoformat()
        self._probe.audit_event(event.event_type, **fields)


def build_default_registry(
    probe: EventRegistryProbe | None = None,
) -> DeliveryEventRegistry:
    """Create a frozen registry with the audit handler on every event type."""
    registry = DeliveryEventRegistry(probe=probe)
    audit = AuditLogEventHandler(probe=probe)
    for event_type in ALL_EVENT_TYPES:
        registry.register(event_type, audit)
    return registry.freeze()


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", type(handler).__qualname__)
