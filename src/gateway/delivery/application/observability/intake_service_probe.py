"""Protocol for delivery intake observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class IntakeServiceProbe(Protocol):
    """Domain probe for content submitted for delivery."""

    def submission_accepted(
        self, subject_key: str, content_hash: str, entry_id: str, correlation_id: str
    ) -> None:
        """Record that content was written to the outbox."""
        ...

    def duplicate_suppressed(self, subject_key: str, content_hash: str) -> None:
        """Record that content was already processed within the TTL."""
        ...

    def submission_failed(self, subject_key: str, error: str) -> None:
        """Record that content could not be written to the outbox."""
        ...

    def with_context(self, context: ObservationContext) -> IntakeServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultIntakeServiceProbe:
    """Default implementation of IntakeServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultIntakeServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultIntakeServiceProbe(logger=self._logger, context=context)

    def submission_accepted(
        self, subject_key: str, content_hash: str, entry_id: str, correlation_id: str
    ) -> None:
        self._logger.info(
            "delivery_submission_accepted",
            subject_key=subject_key,
            content_hash=content_hash,
            entry_id=entry_id,
            correlation_id=correlation_id,
            **self._get_context_kwargs(),
        )

    def duplicate_suppressed(self, subject_key: str, content_hash: str) -> None:
        self._logger.info(
            "delivery_duplicate_suppressed",
            subject_key=subject_key,
            content_hash=content_hash,
            **self._get_context_kwargs(),
        )

    def submission_failed(self, subject_key: str, error: str) -> None:
        self._logger.error(
            "delivery_submission_failed",
            subject_key=subject_key,
            error=error,
            **self._get_context_kwargs(),
        )
