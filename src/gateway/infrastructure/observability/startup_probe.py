"""Domain probe for gateway process lifecycle."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StartupProbe(Protocol):
    """Domain probe for gateway startup and shutdown."""

    def gateway_starting(self, version: str, sweeps: list[str]) -> None:
        """Record that the gateway process is starting its sweeps."""
        ...

    def gateway_stopped(self) -> None:
        """Record that all sweeps were stopped and resources released."""
        ...

    def with_context(self, context: ObservationContext) -> StartupProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStartupProbe:
    """Default implementation of StartupProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultStartupProbe:
        """Create a new probe with observation context bound."""
        return DefaultStartupProbe(logger=self._logger, context=context)

    def gateway_starting(self, version: str, sweeps: list[str]) -> None:
        self._logger.info(
            "gateway_starting",
            version=version,
            sweeps=sweeps,
            **self._get_context_kwargs(),
        )

    def gateway_stopped(self) -> None:
        self._logger.info("gateway_stopped", **self._get_context_kwargs())
