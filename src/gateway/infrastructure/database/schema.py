"""Schema bootstrap for the gateway tables."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.exceptions import SchemaError
from infrastructure.database.models import Base
from infrastructure.observability import DatabaseProbe, DefaultDatabaseProbe

# Registers the outbox table on Base.metadata.
import infrastructure.outbox.models  # noqa: F401


async def create_schema(
    engine: AsyncEngine, probe: DatabaseProbe | None = None
) -> None:
    """Create every table registered on the declarative base.

    Existing tables are left untouched, so this is safe to call on startup.
    Context models must be imported before calling so their tables are
    registered.

    Raises:
        SchemaError: If table creation fails
    """
    probe = probe or DefaultDatabaseProbe()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        raise SchemaError(f"Failed to create schema: {e}") from e
    probe.schema_created(tables=sorted(Base.metadata.tables))
