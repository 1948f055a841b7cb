"""Protocols (ports) for the outbox pattern.

These protocols define the interfaces for outbox operations. The dispatcher
only depends on these narrow ports, so any queue client that can ``send``
a body can be plugged in without shared_kernel knowing about it.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shared_kernel.outbox.value_objects import (
        OutboxEntry,
        StoreResult,
        TransportResult,
    )


@runtime_checkable
class IOutboxStore(Protocol):
    """Persistent write-ahead log of outbound messages.

    All mutations use optimistic concurrency: a lost race between two
    dispatcher instances surfaces as ``StoreResult.CONFLICT`` rather than
    a silent overwrite.
    """

    async def enqueue(
        self,
        message_type: str,
        payload: str,
        correlation_id: str,
        session: AsyncSession | None = None,
    ) -> str:
        """Create a PENDING entry and return its id.

        When ``session`` is given the entry joins the caller's transaction
        and is not committed here; the caller owns the transaction boundary.

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        ...

    async def get(self, entry_id: str) -> OutboxEntry | None:
        """Read a single entry by id."""
        ...

    async def list_pending(self, limit: int) -> list[OutboxEntry]:
        """Return dispatchable entries ordered by insertion, bounded by limit."""
        ...

    async def update_if_version(
        self,
        entry_id: str,
        expected_version: int,
        values: Mapping[str, Any],
    ) -> StoreResult:
        """Apply ``values`` only if the stored version still matches."""
        ...

    async def mark_dispatched(self, entry_id: str) -> StoreResult:
        """Transition a PENDING/FAILED entry to DISPATCHED."""
        ...

    async def mark_failed(self, entry_id: str, error_message: str) -> StoreResult:
        """Record a failed dispatch, scheduling a retry or abandoning the entry."""
        ...

    async def cleanup_dispatched(self, retention_period: timedelta) -> int:
        """Delete DISPATCHED entries older than the retention period."""
        ...


@runtime_checkable
class OutboundTransport(Protocol):
    """The part of a message transport the outbox dispatcher needs.

    Ordinary transport failures are reported through the returned
    ``TransportResult`` rather than raised.
    """

    async def send(self, body: str) -> TransportResult:
        """Send a body to the queue."""
        ...
