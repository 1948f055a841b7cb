"""Processing queue consumer.

Makes the first delivery attempt for every message the outbox dispatcher
put on the processing queue. Messages that fail are moved to the retry
queue with a fresh retry count, where the retry orchestrator takes over.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from delivery.application.observability import DefaultDeliveryConsumerProbe
from delivery.application.services.message_processor import DESERIALIZATION_FAILED
from delivery.domain.events import MessageDeadLettered, MessageDelivered
from delivery.domain.value_objects import (
    ConsumeSummary,
    DeadLetterRecord,
    DeliveryResult,
    FailureKind,
)
from delivery.ports.exceptions import MalformedMessageError, TransportSetupError
from shared_kernel.clock import utc_now

if TYPE_CHECKING:
    from delivery.application.events import DeliveryEventRegistry
    from delivery.application.observability import DeliveryConsumerProbe
    from delivery.domain.events import DeliveryEvent
    from delivery.domain.value_objects import QueueLease, RetryableMessage
    from delivery.ports.transport import (
        DeadLetterSink,
        DeliverySink,
        EnvelopeSerializer,
        MessageTransport,
    )


class _Outcome(StrEnum):
    DELIVERED = "delivered"
    FORWARDED = "forwarded"
    DEAD_LETTERED = "dead_lettered"
    LEASE_ERROR = "lease_error"


class DeliveryConsumer:
    """Consumes the processing queue and delivers to the sink.

    A message is only removed from the processing queue once it has been
    delivered, forwarded to the retry queue, or dead-lettered. If any of
    those steps is rejected or raises, the lease is left to expire and the
    message is consumed again later. Each lease is handled independently.
    """

    def __init__(
        self,
        processing_transport: MessageTransport,
        retry_transport: MessageTransport,
        serializer: EnvelopeSerializer,
        sink: DeliverySink,
        dead_letter_sink: DeadLetterSink,
        max_messages_per_batch: int = 16,
        visibility_timeout: timedelta = timedelta(minutes=5),
        events: DeliveryEventRegistry | None = None,
        probe: DeliveryConsumerProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._processing = processing_transport
        self._retry = retry_transport
        self._serializer = serializer
        self._sink = sink
        self._dead_letter_sink = dead_letter_sink
        self._max_messages_per_batch = max_messages_per_batch
        self._visibility_timeout = visibility_timeout
        self._events = events
        self._probe = probe or DefaultDeliveryConsumerProbe()
        self._clock = clock

    async def run_once(self) -> ConsumeSummary:
        """Run one consume sweep over the processing queue.

        Raises:
            TransportSetupError: If a queue cannot be created or reached
            TransientTransportError: If the processing queue could not be read
        """
        for transport in (self._processing, self._retry):
            setup = await transport.ensure_exists()
            if not setup.ok:
                raise TransportSetupError(transport.name, setup.error or "unknown")

        leases = await self._processing.receive(
            self._max_messages_per_batch, self._visibility_timeout
        )
        outcomes = await asyncio.gather(*(self._handle(lease) for lease in leases))

        return ConsumeSummary(
            received=len(leases),
            delivered=outcomes.count(_Outcome.DELIVERED),
            forwarded_to_retry=outcomes.count(_Outcome.FORWARDED),
            dead_lettered=outcomes.count(_Outcome.DEAD_LETTERED),
            lease_errors=outcomes.count(_Outcome.LEASE_ERROR),
        )

    async def _handle(self, lease: QueueLease) -> _Outcome:
        try:
            return await self._consume(lease)
        except Exception as e:
            self._probe.lease_action_failed(
                lease.message_id, "consume", f"{type(e).__name__}: {e}"
            )
            return _Outcome.LEASE_ERROR

    async def _consume(self, lease: QueueLease) -> _Outcome:
        try:
            message = self._serializer.deserialize(lease.body)
        except MalformedMessageError as e:
            self._probe.malformed_message(lease.message_id, str(e))
            return await self._dead_letter_malformed(lease, str(e))

        try:
            delivery = await self._sink.deliver(message.payload)
        except Exception as e:
            delivery = DeliveryResult.failed(f"{type(e).__name__}: {e}")

        if delivery.delivered:
            if not await self._release(lease):
                return _Outcome.LEASE_ERROR
            self._probe.message_delivered(lease.message_id, message.correlation_id)
            await self._publish(
                MessageDelivered(
                    correlation_id=message.correlation_id,
                    retry_count=message.retry_count,
                    occurred_at=self._clock(),
                )
            )
            return _Outcome.DELIVERED

        return await self._forward_to_retry(lease, message, delivery.error or "")

    async def _forward_to_retry(
        self, lease: QueueLease, message: RetryableMessage, error: str
    ) -> _Outcome:
        sent = await self._retry.send(self._serializer.serialize(message.reset_retries()))
        if not sent.ok:
            self._probe.forward_failed(lease.message_id, str(sent.error))
            return _Outcome.LEASE_ERROR
        if not await self._release(lease):
            return _Outcome.LEASE_ERROR
        self._probe.message_forwarded_to_retry(
            lease.message_id, message.correlation_id, error
        )
        return _Outcome.FORWARDED

    async def _dead_letter_malformed(self, lease: QueueLease, error: str) -> _Outcome:
        reason = f"{DESERIALIZATION_FAILED}: {error}"
        record = DeadLetterRecord.from_raw_body(
            lease.body, lease.message_id, reason, self._clock()
        )
        published = await self._dead_letter_sink.publish(record)
        if not published.ok:
            self._probe.forward_failed(lease.message_id, str(published.error))
            return _Outcome.LEASE_ERROR
        if not await self._release(lease):
            return _Outcome.LEASE_ERROR
        await self._publish(
            MessageDeadLettered(
                correlation_id=record.correlation_id,
                retry_count=0,
                failure_kind=FailureKind.MALFORMED.value,
                reason=reason,
                occurred_at=self._clock(),
            )
        )
        return _Outcome.DEAD_LETTERED

    async def _release(self, lease: QueueLease) -> bool:
        deleted = await self._processing.delete(lease.message_id, lease.receipt_token)
        if not deleted.ok:
            self._probe.lease_action_failed(
                lease.message_id, "delete", str(deleted.error)
            )
        return deleted.ok

    async def _publish(self, event: DeliveryEvent) -> None:
        if self._events is not None:
            await self._events.publish(event)
