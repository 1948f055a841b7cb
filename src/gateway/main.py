"""Delivery gateway process entry point.

Runs the background sweeps (outbox dispatch, processing queue consumption,
poison queue retry) until SIGINT/SIGTERM, then shuts them down in order.
"""

from __future__ import annotations

import asyncio
import signal

from delivery.dependencies import build_sweep_runners, get_delivery_sink
from infrastructure.database.dependencies import (
    close_database_connections,
    get_engine,
)
from infrastructure.database.schema import create_schema
from infrastructure.logging import configure_logging
from infrastructure.observability import DefaultStartupProbe
from infrastructure.settings import get_settings
from infrastructure.version import __version__


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers.
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def run(stop: asyncio.Event | None = None) -> None:
    """Run the gateway until ``stop`` is set.

    Args:
        stop: Event ending the run; SIGINT/SIGTERM handlers are installed
            when omitted
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    probe = DefaultStartupProbe()

    if stop is None:
        stop = asyncio.Event()
        _install_signal_handlers(stop)

    await create_schema(get_engine())

    runners = build_sweep_runners()
    probe.gateway_starting(__version__, [runner.name for runner in runners])

    for runner in runners:
        await runner.start()

    try:
        await stop.wait()
    finally:
        for runner in reversed(runners):
            await runner.stop()
        await get_delivery_sink().aclose()
        await close_database_connections()
        probe.gateway_stopped()


def main() -> None:
    """Console script entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
