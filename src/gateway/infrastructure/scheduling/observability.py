"""Observability probes for periodic sweep runners."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class SweepRunnerProbe(Protocol):
    """Protocol for sweep runner observability."""

    def runner_started(self, sweep: str, interval_seconds: float) -> None:
        """Called when the runner starts its loop."""
        ...

    def runner_stopped(self, sweep: str) -> None:
        """Called when the runner loop has been stopped."""
        ...

    def sweep_completed(self, sweep: str, summary: Any) -> None:
        """Called after a sweep returns normally."""
        ...

    def sweep_failed(self, sweep: str, error: str, error_type: str) -> None:
        """Called when a sweep raised; the next sweep still runs."""
        ...

    def with_context(self, context: ObservationContext) -> SweepRunnerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultSweepRunnerProbe:
    """Default implementation of SweepRunnerProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultSweepRunnerProbe:
        """Create a new probe with observation context bound."""
        return DefaultSweepRunnerProbe(logger=self._logger, context=context)

    def runner_started(self, sweep: str, interval_seconds: float) -> None:
        self._logger.info(
            "sweep_runner_started",
            sweep=sweep,
            interval_seconds=interval_seconds,
            **self._get_context_kwargs(),
        )

    def runner_stopped(self, sweep: str) -> None:
        self._logger.info(
            "sweep_runner_stopped", sweep=sweep, **self._get_context_kwargs()
        )

    def sweep_completed(self, sweep: str, summary: Any) -> None:
        self._logger.debug(
            "sweep_completed",
            sweep=sweep,
            summary=repr(summary),
            **self._get_context_kwargs(),
        )

    def sweep_failed(self, sweep: str, error: str, error_type: str) -> None:
        self._logger.error(
            "sweep_failed",
            sweep=sweep,
            error=error,
            error_type=error_type,
            **self._get_context_kwargs(),
        )
