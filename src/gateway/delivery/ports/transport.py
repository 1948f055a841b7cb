"""Transport protocols for the Delivery bounded context.

The core treats queues and the delivery sink as collaborators reachable
through these narrow interfaces. Ordinary failures are reported through
result values; implementations raise only for conditions that prevent a
whole sweep.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from delivery.domain.value_objects import (
        DeadLetterRecord,
        DeliveryResult,
        QueueLease,
        RetryableMessage,
    )
    from shared_kernel.outbox.value_objects import TransportResult


@runtime_checkable
class MessageTransport(Protocol):
    """A queue offering leased, at-least-once consumption."""

    @property
    def name(self) -> str:
        """Queue name used in logs and errors."""
        ...

    async def ensure_exists(self) -> TransportResult:
        """Create the queue if it does not exist yet."""
        ...

    async def send(self, body: str) -> TransportResult:
        """Append a message to the queue."""
        ...

    async def receive(
        self, max_count: int, visibility_timeout: timedelta
    ) -> list[QueueLease]:
        """Lease up to ``max_count`` messages, hiding them for the timeout.

        Raises:
            TransientTransportError: If the queue could not be read
        """
        ...

    async def delete(self, message_id: str, receipt_token: str) -> TransportResult:
        """Acknowledge a leased message, removing it permanently."""
        ...

    async def update_visibility(
        self,
        message_id: str,
        receipt_token: str,
        new_body: str,
        delay: timedelta,
    ) -> TransportResult:
        """Replace the body of a leased message and hide it for ``delay``."""
        ...


@runtime_checkable
class DeliverySink(Protocol):
    """The downstream consumer messages are ultimately delivered to."""

    async def deliver(self, content: str) -> DeliveryResult:
        """Deliver content in a single call. Never partially succeeds."""
        ...


@runtime_checkable
class DeadLetterSink(Protocol):
    """Terminal store for messages that will not be retried."""

    async def publish(self, record: DeadLetterRecord) -> TransportResult:
        """Persist a dead-letter record."""
        ...


@runtime_checkable
class EnvelopeSerializer(Protocol):
    """Wire format of envelopes on the queues."""

    def serialize(self, message: RetryableMessage) -> str:
        """Render an envelope as a queue body."""
        ...

    def deserialize(self, body: str) -> RetryableMessage:
        """Parse a queue body.

        Raises:
            MalformedMessageError: If the body is not a valid envelope
        """
        ...

    def serialize_dead_letter(self, record: DeadLetterRecord) -> str:
        """Render a dead-letter record as a queue body."""
        ...

    def deserialize_dead_letter(self, body: str) -> DeadLetterRecord:
        """Parse a dead-letter body.

        Raises:
            MalformedMessageError: If the body is not a valid record
        """
        ...
