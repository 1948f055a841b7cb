"""Cooperative polling loop for background sweeps.

Both the outbox dispatcher and the retry orchestrator are triggered by a
``SweepRunner``. A sweep that raises is logged and the loop continues; the
next sweep resumes from durable state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from infrastructure.scheduling.observability import DefaultSweepRunnerProbe

if TYPE_CHECKING:
    from infrastructure.scheduling.observability import SweepRunnerProbe


class SweepRunner:
    """Runs an async sweep on a fixed interval until stopped.

    Sweeps never overlap within one runner: the interval is measured from
    the end of one sweep to the start of the next.
    """

    def __init__(
        self,
        name: str,
        sweep: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        probe: SweepRunnerProbe | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            name: Sweep name used in logs
            sweep: Coroutine function performing one sweep
            interval_seconds: Pause between the end of a sweep and the next
            probe: Observability probe for logging/metrics
        """
        self._name = name
        self._sweep = sweep
        self._interval = interval_seconds
        self._probe = probe or DefaultSweepRunnerProbe()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep loop in a background task."""
        if self._task is not None:
            return
        self._running = True
        self._probe.runner_started(self._name, self._interval)
        self._task = asyncio.create_task(self._loop(), name=f"sweep:{self._name}")

    async def stop(self) -> None:
        """Cancel the loop and wait for the in-flight sweep to unwind."""
        self._running = False
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._probe.runner_stopped(self._name)

    async def run_once(self) -> Any:
        """Run a single sweep, logging rather than raising on failure.

        Returns:
            The sweep's return value, or None if it raised
        """
        try:
            summary = await self._sweep()
        except Exception as e:
            self._probe.sweep_failed(self._name, str(e), type(e).__name__)
            return None
        self._probe.sweep_completed(self._name, summary)
        return summary

    async def _loop(self) -> None:
        while self._running:
            await self.run_once()
            await asyncio.sleep(self._interval)
