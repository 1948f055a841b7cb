"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures operation-scoped metadata that should be included with all
    instrumentation events, so a single message can be followed from the
    outbox through the queues to the delivery sink.

    Attributes:
        correlation_id: Identifier carried by a message across all hops.
        message_id: Transport-level identifier of the leased message.
        sweep: Name of the background sweep performing the work.
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(
            correlation_id="c0ffee",
            sweep="retry_orchestrator",
        )
        probe = DefaultMessageProcessorProbe().with_context(context)
    """

    correlation_id: str | None = None
    message_id: str | None = None
    sweep: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.correlation_id is not None:
            result["correlation_id"] = self.correlation_id
        if self.message_id is not None:
            result["message_id"] = self.message_id
        if self.sweep is not None:
            result["sweep"] = self.sweep
        result.update(self.extra)
        return result

    def with_message(
        self, message_id: str, correlation_id: str | None = None
    ) -> ObservationContext:
        """Create a new context scoped to a single message."""
        return replace(
            self,
            message_id=message_id,
            correlation_id=correlation_id or self.correlation_id,
        )

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return replace(self, extra={**self.extra, **kwargs})
