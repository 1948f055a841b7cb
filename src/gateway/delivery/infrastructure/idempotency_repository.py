"""SQLAlchemy implementation of the idempotency guard."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NoReturn

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery.infrastructure.models import IdempotencyRecordModel
from delivery.infrastructure.observability import DefaultIdempotencyGuardProbe
from infrastructure.database.exceptions import is_connectivity_error
from shared_kernel.clock import utc_now
from shared_kernel.outbox.exceptions import StorageUnavailableError

if TYPE_CHECKING:
    from delivery.domain.value_objects import IdempotencyRecord, ProcessingOutcome
    from delivery.infrastructure.observability import IdempotencyGuardProbe


class SqlAlchemyIdempotencyGuard:
    """Idempotency guard backed by the idempotency_records table.

    Expiry is soft: records older than the TTL are reported as absent but
    stay in the table until the next ``mark_processed`` overwrites them.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta = timedelta(hours=24),
        probe: IdempotencyGuardProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the guard.

        Args:
            session_factory: Factory for creating database sessions
            ttl: How long a record suppresses duplicates
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
        """
        self._session_factory = session_factory
        self._ttl = ttl
        self._probe = probe or DefaultIdempotencyGuardProbe()
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def has_been_processed(self, subject_key: str, content_hash: str) -> bool:
        record = await self.get_record(subject_key, content_hash)
        if record is None:
            self._probe.cache_miss(subject_key, content_hash, expired=False)
            return False

        if not record.is_fresh(self._clock(), self._ttl):
            self._probe.cache_miss(subject_key, content_hash, expired=True)
            return False

        self._probe.cache_hit(subject_key, content_hash)
        return True

    async def mark_processed(
        self,
        subject_key: str,
        content_hash: str,
        outcome: ProcessingOutcome,
    ) -> None:
        # A concurrent insert of the same key makes the first merge fail with
        # an IntegrityError; the second attempt then finds the row and updates.
        for attempt in range(2):
            try:
                await self._upsert(subject_key, content_hash, outcome)
                break
            except IntegrityError:
                if attempt == 1:
                    raise
            except (SQLAlchemyError, OSError) as e:
                self._raise_storage_error("mark_processed", e)

        self._probe.record_stored(subject_key, content_hash, outcome.value)

    async def get_record(
        self, subject_key: str, content_hash: str
    ) -> IdempotencyRecord | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(
                    IdempotencyRecordModel, (subject_key, content_hash)
                )
                return model.to_value_object() if model is not None else None
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("get_record", e)

    async def _upsert(
        self,
        subject_key: str,
        content_hash: str,
        outcome: ProcessingOutcome,
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    IdempotencyRecordModel(
                        subject_key=subject_key,
                        content_hash=content_hash,
                        processed_at=self._clock(),
                        outcome=outcome.value,
                    )
                )

    def _raise_storage_error(self, operation: str, error: Exception) -> NoReturn:
        if is_connectivity_error(error):
            self._probe.storage_unavailable(operation, str(error))
            raise StorageUnavailableError(operation, error) from error
        raise error
