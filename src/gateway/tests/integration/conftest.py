"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance reachable through
asyncpg. Tests are skipped when the database cannot be reached.
"""

import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Registers the idempotency table on the shared metadata.
import delivery.infrastructure.models  # noqa: F401
from infrastructure.database.dependencies import create_sessionmaker
from infrastructure.database.engines import create_engine
from infrastructure.database.exceptions import SchemaError
from infrastructure.database.schema import create_schema
from infrastructure.settings import DatabaseSettings


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        GATEWAY_DB_HOST, GATEWAY_DB_PORT, etc.
    """
    return DatabaseSettings(
        host=os.getenv("GATEWAY_DB_HOST", "localhost"),
        port=int(os.getenv("GATEWAY_DB_PORT", "5432")),
        database=os.getenv("GATEWAY_DB_DATABASE", "gateway"),
        username=os.getenv("GATEWAY_DB_USERNAME", "gateway"),
        password=SecretStr(os.getenv("GATEWAY_DB_PASSWORD", "gateway_dev_password")),
    )


@pytest_asyncio.fixture
async def pg_engine(
    integration_db_settings: DatabaseSettings,
) -> AsyncIterator[AsyncEngine]:
    """Provide an engine with a clean gateway schema.

    Both tables are emptied before each test.
    """
    engine = create_engine(integration_db_settings)
    try:
        await create_schema(engine)
    except (SchemaError, OSError) as e:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {e}")

    async with engine.begin() as conn:
        await conn.execute(text("TRUNCATE outbox_entries, idempotency_records"))

    yield engine
    await engine.dispose()


@pytest.fixture
def pg_session_factory(pg_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Provide a sessionmaker bound to the PostgreSQL engine."""
    return create_sessionmaker(pg_engine)
