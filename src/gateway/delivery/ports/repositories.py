"""Repository protocols for the Delivery bounded context."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from delivery.domain.value_objects import IdempotencyRecord, ProcessingOutcome


@runtime_checkable
class IIdempotencyGuard(Protocol):
    """Suppresses duplicate processing of the same content for a subject.

    Records are keyed by ``(subject_key, content_hash)`` and only count as a
    hit within the configured TTL.
    """

    async def has_been_processed(self, subject_key: str, content_hash: str) -> bool:
        """Return True only if a record exists and is younger than the TTL.

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        ...

    async def mark_processed(
        self,
        subject_key: str,
        content_hash: str,
        outcome: ProcessingOutcome,
    ) -> None:
        """Upsert the record with ``processed_at = now``, resetting its TTL.

        Raises:
            StorageUnavailableError: If the backing store cannot be reached
        """
        ...

    async def get_record(
        self, subject_key: str, content_hash: str
    ) -> IdempotencyRecord | None:
        """Read the stored record regardless of its age."""
        ...
