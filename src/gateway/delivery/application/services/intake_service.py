"""Delivery intake application service.

Accepts already-built content for a subject, suppresses duplicates with the
idempotency guard, and records durable intent to deliver in the outbox.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from delivery.application.observability import DefaultIntakeServiceProbe
from delivery.domain.events import MessageQueued
from delivery.domain.value_objects import (
    IntakeReceipt,
    IntakeResult,
    ProcessingOutcome,
    RetryableMessage,
)
from shared_kernel.clock import utc_now
from shared_kernel.outbox.exceptions import StorageUnavailableError

if TYPE_CHECKING:
    from delivery.application.events import DeliveryEventRegistry
    from delivery.application.observability import IntakeServiceProbe
    from delivery.ports.repositories import IIdempotencyGuard
    from delivery.ports.transport import EnvelopeSerializer
    from shared_kernel.outbox.ports import IOutboxStore

DEFAULT_MESSAGE_TYPE = "delivery.message"


def compute_content_hash(content: str) -> str:
    """Fingerprint content for idempotency checks (SHA-256, hex)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class DeliveryIntakeService:
    """Application service for submitting content for delivery.

    The outbox write happens before the idempotency record is stored. A
    crash between the two can only cause a duplicate submission later,
    which the sink's idempotent consumption absorbs, never a lost message.
    """

    def __init__(
        self,
        outbox: IOutboxStore,
        guard: IIdempotencyGuard,
        serializer: EnvelopeSerializer,
        message_type: str = DEFAULT_MESSAGE_TYPE,
        events: DeliveryEventRegistry | None = None,
        probe: IntakeServiceProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize DeliveryIntakeService with dependencies.

        Args:
            outbox: Store recording the intent to deliver
            guard: Duplicate suppression store
            serializer: Wire format for the outbox payload
            message_type: Tag stored with every outbox entry
            events: Registry notified about accepted submissions
            probe: Optional domain probe for observability
            clock: Source of the current UTC time
        """
        self._outbox = outbox
        self._guard = guard
        self._serializer = serializer
        self._message_type = message_type
        self._events = events
        self._probe = probe or DefaultIntakeServiceProbe()
        self._clock = clock

    async def submit(
        self,
        subject_key: str,
        content: str,
        correlation_id: str | None = None,
    ) -> IntakeReceipt:
        """Submit content for delivery.

        Args:
            subject_key: Identifier of the source the content was built from
            content: The content to deliver
            correlation_id: Optional id to carry through every hop; one is
                generated when omitted

        Returns:
            A receipt saying whether the content was accepted or suppressed

        Raises:
            StorageUnavailableError: If the outbox or idempotency store
                cannot be reached
        """
        content_hash = compute_content_hash(content)

        if await self._guard.has_been_processed(subject_key, content_hash):
            self._probe.duplicate_suppressed(subject_key, content_hash)
            return IntakeReceipt(result=IntakeResult.DUPLICATE, content_hash=content_hash)

        correlation_id = correlation_id or str(uuid4())
        message = RetryableMessage(
            payload=content,
            correlation_id=correlation_id,
            retry_count=0,
            created_at=self._clock(),
            subject_key=subject_key,
        )

        try:
            entry_id = await self._outbox.enqueue(
                self._message_type,
                self._serializer.serialize(message),
                correlation_id,
            )
        except StorageUnavailableError as e:
            self._probe.submission_failed(subject_key, str(e))
            raise

        await self._guard.mark_processed(
            subject_key, content_hash, ProcessingOutcome.SUCCESS
        )

        self._probe.submission_accepted(
            subject_key, content_hash, entry_id, correlation_id
        )
        if self._events is not None:
            await self._events.publish(
                MessageQueued(
                    entry_id=entry_id,
                    correlation_id=correlation_id,
                    subject_key=subject_key,
                    message_type=self._message_type,
                    occurred_at=self._clock(),
                )
            )

        return IntakeReceipt(
            result=IntakeResult.ACCEPTED,
            content_hash=content_hash,
            entry_id=entry_id,
            correlation_id=correlation_id,
        )
