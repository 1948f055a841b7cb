"""In-process queue transport.

Implements the leased, at-least-once queue semantics of the message
transport port without an external broker. Used for local runs and tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from delivery.domain.value_objects import QueueLease
from shared_kernel.clock import utc_now
from shared_kernel.outbox.value_objects import TransportErrorKind, TransportResult

if TYPE_CHECKING:
    from delivery.domain.value_objects import DeadLetterRecord
    from delivery.ports.transport import EnvelopeSerializer, MessageTransport


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    enqueued_at: datetime
    visible_at: datetime
    receipt_token: str | None = None
    dequeue_count: int = 0


class InMemoryMessageTransport:
    """A single named queue held in process memory.

    A received message is hidden until its visibility timeout passes. Only
    the holder of the latest receipt token may delete or update it; once the
    timeout passes the message can be received again under a new token and
    the old token stops working.
    """

    def __init__(
        self,
        name: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._name = name
        self._clock = clock
        self._messages: dict[str, _StoredMessage] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._messages)

    def bodies(self) -> list[str]:
        """All stored bodies, visible or not, in enqueue order."""
        return [m.body for m in self._ordered()]

    async def ensure_exists(self) -> TransportResult:
        return TransportResult.success()

    async def send(self, body: str) -> TransportResult:
        now = self._clock()
        async with self._lock:
            message_id = str(uuid4())
            self._messages[message_id] = _StoredMessage(
                message_id=message_id,
                body=body,
                enqueued_at=now,
                visible_at=now,
            )
        return TransportResult.success()

    async def receive(
        self, max_count: int, visibility_timeout: timedelta
    ) -> list[QueueLease]:
        now = self._clock()
        leases: list[QueueLease] = []
        async with self._lock:
            for message in self._ordered():
                if len(leases) >= max_count:
                    break
                if message.visible_at > now:
                    continue
                message.receipt_token = str(uuid4())
                message.visible_at = now + visibility_timeout
                message.dequeue_count += 1
                leases.append(
                    QueueLease(
                        message_id=message.message_id,
                        receipt_token=message.receipt_token,
                        body=message.body,
                        dequeue_count=message.dequeue_count,
                    )
                )
        return leases

    async def delete(self, message_id: str, receipt_token: str) -> TransportResult:
        async with self._lock:
            lost = self._check_lease(message_id, receipt_token)
            if lost is not None:
                return lost
            del self._messages[message_id]
        return TransportResult.success()

    async def update_visibility(
        self,
        message_id: str,
        receipt_token: str,
        new_body: str,
        delay: timedelta,
    ) -> TransportResult:
        now = self._clock()
        async with self._lock:
            lost = self._check_lease(message_id, receipt_token)
            if lost is not None:
                return lost
            message = self._messages[message_id]
            message.body = new_body
            message.visible_at = now + delay
            message.receipt_token = None
        return TransportResult.success()

    def _check_lease(
        self, message_id: str, receipt_token: str
    ) -> TransportResult | None:
        message = self._messages.get(message_id)
        if message is None:
            return TransportResult.failure(
                TransportErrorKind.LEASE_LOST,
                f"Message {message_id} not found in queue '{self._name}'",
            )
        if message.receipt_token != receipt_token:
            return TransportResult.failure(
                TransportErrorKind.LEASE_LOST,
                f"Receipt token for message {message_id} is no longer valid",
            )
        return None

    def _ordered(self) -> list[_StoredMessage]:
        return sorted(self._messages.values(), key=lambda m: m.enqueued_at)


class QueueDeadLetterSink:
    """Dead-letter sink that publishes records onto a queue."""

    def __init__(self, transport: MessageTransport, serializer: EnvelopeSerializer):
        self._transport = transport
        self._serializer = serializer

    async def publish(self, record: DeadLetterRecord) -> TransportResult:
        return await self._transport.send(self._serializer.serialize_dead_letter(record))
