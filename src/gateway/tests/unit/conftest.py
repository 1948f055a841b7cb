"""Unit test fixtures.

Store and guard tests run against a throwaway SQLite database through
aiosqlite; everything else uses mocked ports.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Registers the idempotency table on the shared metadata.
import delivery.infrastructure.models  # noqa: F401
from infrastructure.database.dependencies import create_sessionmaker
from infrastructure.database.engines import create_engine
from infrastructure.database.schema import create_schema
from infrastructure.settings import DatabaseSettings


class FakeClock:
    """Controllable replacement for ``utc_now``."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock frozen at a fixed instant."""
    return FakeClock(datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def sqlite_settings(tmp_path) -> DatabaseSettings:
    """Provide database settings pointing at a file-backed SQLite database."""
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'gateway.db'}")


@pytest_asyncio.fixture
async def engine(sqlite_settings: DatabaseSettings) -> AsyncIterator[AsyncEngine]:
    """Provide an engine with the gateway schema created."""
    engine = create_engine(sqlite_settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Provide a sessionmaker bound to the test engine."""
    return create_sessionmaker(engine)

