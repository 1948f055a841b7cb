"""Outbox store implementation.

This module provides the SQLAlchemy implementation of the outbox store.
It persists outbound messages to the outbox table and drives their
lifecycle (Pending -> Dispatched | Failed -> Abandoned) using optimistic
concurrency on a per-row version column.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, NoReturn
from uuid import uuid4

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.exceptions import is_connectivity_error
from infrastructure.outbox.models import OutboxEntryModel
from shared_kernel.clock import utc_now
from shared_kernel.outbox.exceptions import StorageUnavailableError
from shared_kernel.outbox.observability import DefaultOutboxStoreProbe
from shared_kernel.outbox.value_objects import OutboxEntry, OutboxStatus, StoreResult

if TYPE_CHECKING:
    from shared_kernel.outbox.observability import OutboxStoreProbe


class OutboxStore:
    """SQLAlchemy implementation of the outbox store.

    The store opens its own short-lived sessions for every operation, except
    ``enqueue`` which can join a caller's session so that the outbox write
    commits atomically with the caller's own changes.

    Every mutation is a compare-and-swap on the ``version`` column. Two
    dispatcher instances racing on the same entry cannot both win; the loser
    receives ``StoreResult.CONFLICT``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = 3,
        retry_delay: timedelta = timedelta(seconds=30),
        probe: OutboxStoreProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the store.

        Args:
            session_factory: Factory for creating database sessions
            max_retries: Failed dispatches tolerated before an entry is abandoned
            retry_delay: Base delay, doubled on every further failure
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
        """
        self._session_factory = session_factory
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._probe = probe or DefaultOutboxStoreProbe()
        self._clock = clock

    async def enqueue(
        self,
        message_type: str,
        payload: str,
        correlation_id: str,
        session: AsyncSession | None = None,
    ) -> str:
        """Create a PENDING entry and return its id.

        Args:
            message_type: Tag describing the payload
            payload: Serialized message body
            correlation_id: Identifier carried across every delivery hop
            session: Optional caller session; when given, the entry is added
                to it and flushed but the caller commits

        Returns:
            The id assigned to the new entry

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        model = OutboxEntryModel(
            id=str(uuid4()),
            message_type=message_type,
            payload=payload,
            status=OutboxStatus.PENDING.value,
            created_at=self._clock(),
            retry_count=0,
            correlation_id=correlation_id,
            version=1,
        )

        try:
            if session is not None:
                session.add(model)
                await session.flush()
            else:
                async with self._session_factory() as own_session:
                    async with own_session.begin():
                        own_session.add(model)
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("enqueue", e)

        self._probe.entry_enqueued(model.id, message_type, correlation_id)
        return model.id

    async def get(self, entry_id: str) -> OutboxEntry | None:
        """Read a single entry by id.

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        try:
            async with self._session_factory() as session:
                model = await session.get(OutboxEntryModel, entry_id)
                return model.to_value_object() if model is not None else None
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("get", e)

    async def list_pending(self, limit: int) -> list[OutboxEntry]:
        """Fetch dispatchable entries in insertion order.

        Returns PENDING entries together with FAILED entries whose
        ``next_retry_at`` has passed. FAILED entries that are not yet due do
        not count against ``limit``.

        Args:
            limit: Maximum number of entries to return

        Returns:
            Entries ordered by ``created_at``, ties broken by id

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        stmt = (
            select(OutboxEntryModel)
            .where(
                or_(
                    OutboxEntryModel.status == OutboxStatus.PENDING.value,
                    and_(
                        OutboxEntryModel.status == OutboxStatus.FAILED.value,
                        or_(
                            OutboxEntryModel.next_retry_at.is_(None),
                            OutboxEntryModel.next_retry_at <= self._clock(),
                        ),
                    ),
                )
            )
            .order_by(OutboxEntryModel.created_at, OutboxEntryModel.id)
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [model.to_value_object() for model in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("list_pending", e)

    async def update_if_version(
        self,
        entry_id: str,
        expected_version: int,
        values: Mapping[str, Any],
    ) -> StoreResult:
        """Apply ``values`` to an entry only if its version is unchanged.

        The version is bumped as part of the same statement.

        Args:
            entry_id: The entry to update
            expected_version: Version the caller last observed
            values: Column values to write

        Returns:
            OK when applied, NOT_FOUND for an unknown id, CONFLICT when the
            entry was modified since ``expected_version`` was read

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        stmt = (
            update(OutboxEntryModel)
            .where(OutboxEntryModel.id == entry_id)
            .where(OutboxEntryModel.version == expected_version)
            .values(**values, version=expected_version + 1)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    if result.rowcount == 1:
                        return StoreResult.OK
                    exists = await session.get(OutboxEntryModel, entry_id)
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("update_if_version", e)

        if exists is None:
            return StoreResult.NOT_FOUND
        self._probe.version_conflict(entry_id, expected_version)
        return StoreResult.CONFLICT

    async def mark_dispatched(self, entry_id: str) -> StoreResult:
        """Transition a PENDING or FAILED entry to DISPATCHED.

        Returns:
            OK, NOT_FOUND for an unknown id, or CONFLICT when the entry is
            already terminal or was concurrently modified
        """
        entry = await self.get(entry_id)
        if entry is None:
            return StoreResult.NOT_FOUND
        if entry.status.is_terminal:
            return StoreResult.CONFLICT

        result = await self.update_if_version(
            entry_id,
            entry.version,
            {
                "status": OutboxStatus.DISPATCHED.value,
                "dispatched_at": self._clock(),
                "next_retry_at": None,
            },
        )
        if result is StoreResult.OK:
            self._probe.entry_dispatched(entry_id)
        return result

    async def mark_failed(self, entry_id: str, error_message: str) -> StoreResult:
        """Record a failed dispatch attempt.

        Increments ``retry_count`` and schedules the next attempt at
        ``now + retry_delay * 2 ** (retry_count - 1)``. Once ``retry_count``
        exceeds ``max_retries`` the entry is ABANDONED instead and will never
        be dispatched again.

        Returns:
            OK, NOT_FOUND for an unknown id, or CONFLICT when the entry is
            already terminal or was concurrently modified
        """
        entry = await self.get(entry_id)
        if entry is None:
            return StoreResult.NOT_FOUND
        if entry.status.is_terminal:
            return StoreResult.CONFLICT

        now = self._clock()
        retry_count = entry.retry_count + 1
        next_retry_at = now + self.backoff(retry_count)

        if retry_count > self._max_retries:
            values: dict[str, Any] = {
                "status": OutboxStatus.ABANDONED.value,
                "retry_count": retry_count,
                "last_error": error_message,
                "next_retry_at": None,
                "abandoned_at": now,
            }
        else:
            values = {
                "status": OutboxStatus.FAILED.value,
                "retry_count": retry_count,
                "last_error": error_message,
                "next_retry_at": next_retry_at,
            }

        result = await self.update_if_version(entry_id, entry.version, values)
        if result is not StoreResult.OK:
            return result

        if retry_count > self._max_retries:
            self._probe.entry_abandoned(entry_id, retry_count, error_message)
        else:
            self._probe.entry_failed(entry_id, retry_count, next_retry_at, error_message)
        return result

    async def cleanup_dispatched(self, retention_period: timedelta) -> int:
        """Delete DISPATCHED entries older than the retention period.

        Only terminal successful entries are touched, so this can run
        alongside enqueue and dispatch.

        Returns:
            Number of entries removed

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        cutoff = self._clock() - retention_period
        stmt = (
            delete(OutboxEntryModel)
            .where(OutboxEntryModel.status == OutboxStatus.DISPATCHED.value)
            .where(OutboxEntryModel.dispatched_at < cutoff)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except (SQLAlchemyError, OSError) as e:
            self._raise_storage_error("cleanup_dispatched", e)

        count = result.rowcount or 0
        self._probe.entries_cleaned_up(count, cutoff)
        return count

    def backoff(self, retry_count: int) -> timedelta:
        """Delay before the next dispatch attempt after ``retry_count`` failures."""
        return self._retry_delay * (2 ** max(retry_count - 1, 0))

    def _raise_storage_error(self, operation: str, error: Exception) -> NoReturn:
        """Translate connectivity failures into StorageUnavailableError.

        Any other database error propagates unchanged.
        """
        if is_connectivity_error(error):
            self._probe.storage_unavailable(operation, str(error))
            raise StorageUnavailableError(operation, error) from error
        raise error
