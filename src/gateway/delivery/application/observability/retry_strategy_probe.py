"""Protocol for retry strategy observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class RetryStrategyProbe(Protocol):
    """Domain probe for backoff calculations."""

    def delay_calculated(
        self,
        correlation_id: str,
        retry_count: int,
        delay_seconds: float,
        jitter_factor: float,
        capped: bool,
    ) -> None:
        """Record the delay chosen for the next attempt."""
        ...

    def with_context(self, context: ObservationContext) -> RetryStrategyProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultRetryStrategyProbe:
    """Default implementation of RetryStrategyProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultRetryStrategyProbe:
        """Create a new probe with observation context bound."""
        return DefaultRetryStrategyProbe(logger=self._logger, context=context)

    def delay_calculated(
        self,
        correlation_id: str,
        retry_count: int,
        delay_seconds: float,
        jitter_factor: float,
        capped: bool,
    ) -> None:
        self._logger.debug(
            "retry_delay_calculated",
            correlation_id=correlation_id,
            retry_count=retry_count,
            delay_seconds=round(delay_seconds, 3),
            jitter_factor=round(jitter_factor, 4),
            capped=capped,
            **self._get_context_kwargs(),
        )
