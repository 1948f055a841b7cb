"""Domain probes for database infrastructure.

Domain probes encapsulate instrumentation details and provide a clean,
domain-focused API for engine and schema lifecycle events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class DatabaseProbe(Protocol):
    """Domain probe for database engine and schema lifecycle."""

    def engine_created(self, target: str, pool_size: int | None) -> None:
        """Record that an async engine was created."""
        ...

    def schema_created(self, tables: list[str]) -> None:
        """Record that the gateway tables were created (or already existed)."""
        ...

    def engine_disposed(self) -> None:
        """Record that the engine and its pool were closed."""
        ...

    def with_context(self, context: ObservationContext) -> DatabaseProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultDatabaseProbe:
    """Default implementation of DatabaseProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultDatabaseProbe:
        """Create a new probe with observation context bound."""
        return DefaultDatabaseProbe(logger=self._logger, context=context)

    def engine_created(self, target: str, pool_size: int | None) -> None:
        self._logger.info(
            "database_engine_created",
            target=target,
            pool_size=pool_size,
            **self._get_context_kwargs(),
        )

    def schema_created(self, tables: list[str]) -> None:
        self._logger.info(
            "database_schema_created",
            tables=tables,
            **self._get_context_kwargs(),
        )

    def engine_disposed(self) -> None:
        self._logger.info("database_engine_disposed", **self._get_context_kwargs())
