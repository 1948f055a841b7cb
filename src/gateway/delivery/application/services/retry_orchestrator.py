"""Poison queue retry orchestrator.

Each sweep leases a batch from the retry queue, processes every lease
concurrently and resolves each one with exactly one transport action:

    SUCCESS      -> delete the lease
    RETRY        -> update the lease with the next envelope and a backoff delay
    DEAD_LETTER  -> publish the dead-letter record, then delete the lease
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from delivery.application.observability import DefaultRetryOrchestratorProbe
from delivery.domain.events import (
    MessageDeadLettered,
    MessageDelivered,
    MessageRetryScheduled,
)
from delivery.domain.value_objects import (
    DeadLetterRecord,
    FailureKind,
    MessageProcessingResult,
    RetryContext,
    RetryDecision,
    RetrySweepSummary,
)
from delivery.ports.exceptions import TransportSetupError
from shared_kernel.clock import utc_now

if TYPE_CHECKING:
    from delivery.application.events import DeliveryEventRegistry
    from delivery.application.observability import RetryOrchestratorProbe
    from delivery.application.retry import RetryStrategy
    from delivery.application.services.message_processor import MessageProcessor
    from delivery.domain.events import DeliveryEvent
    from delivery.domain.value_objects import QueueLease, RetryableMessage
    from delivery.ports.transport import (
        DeadLetterSink,
        EnvelopeSerializer,
        MessageTransport,
    )

# Outcome reported for a lease whose resolving transport action was rejected.
LEASE_ERROR = "lease_error"


class PoisonQueueRetryOrchestrator:
    """Drives retry-queue sweeps.

    A single lease's outcome never blocks or fails another lease in the same
    batch. Transport rejections are logged; the lease then simply expires and
    the message reappears after the visibility timeout. An unexpected error
    while resolving a lease dead-letters the message as UNCLASSIFIED so it
    is not redelivered forever.
    """

    def __init__(
        self,
        transport: MessageTransport,
        processor: MessageProcessor,
        retry_strategy: RetryStrategy,
        serializer: EnvelopeSerializer,
        dead_letter_sink: DeadLetterSink,
        max_messages_per_batch: int = 10,
        visibility_timeout: timedelta = timedelta(minutes=5),
        events: DeliveryEventRegistry | None = None,
        probe: RetryOrchestratorProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            transport: The retry (poison) queue
            processor: Decides the outcome for each lease
            retry_strategy: Computes the delay for requeued messages
            serializer: Wire format of queue bodies
            dead_letter_sink: Terminal store for given-up messages
            max_messages_per_batch: Leases taken per sweep
            visibility_timeout: How long leased messages stay hidden
            events: Registry notified about delivery events
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
        """
        self._transport = transport
        self._processor = processor
        self._retry_strategy = retry_strategy
        self._serializer = serializer
        self._dead_letter_sink = dead_letter_sink
        self._max_messages_per_batch = max_messages_per_batch
        self._visibility_timeout = visibility_timeout
        self._events = events
        self._probe = probe or DefaultRetryOrchestratorProbe()
        self._clock = clock

    async def run_once(self) -> RetrySweepSummary:
        """Run one retry sweep.

        Returns:
            Totals describing what the sweep did

        Raises:
            TransportSetupError: If the retry queue cannot be created or reached
            TransientTransportError: If the retry queue could not be read
        """
        setup = await self._transport.ensure_exists()
        if not setup.ok:
            raise TransportSetupError(self._transport.name, setup.error or "unknown")

        leases = await self._transport.receive(
            self._max_messages_per_batch, self._visibility_timeout
        )
        self._probe.batch_received(self._transport.name, len(leases))

        outcomes = await asyncio.gather(*(self._handle(lease) for lease in leases))

        summary = RetrySweepSummary(
            leased=len(leases),
            succeeded=outcomes.count(RetryDecision.SUCCESS),
            retried=outcomes.count(RetryDecision.RETRY),
            dead_lettered=outcomes.count(RetryDecision.DEAD_LETTER),
            lease_errors=outcomes.count(LEASE_ERROR),
        )
        self._probe.sweep_completed(
            summary.leased,
            summary.succeeded,
            summary.retried,
            summary.dead_lettered,
            summary.lease_errors,
        )
        return summary

    async def _handle(self, lease: QueueLease) -> str:
        """Process one lease and apply the matching transport action."""
        result: MessageProcessingResult | None = None
        try:
            result = await self._processor.process(lease)

            match result.decision:
                case RetryDecision.SUCCESS:
                    return await self._acknowledge(lease, result)
                case RetryDecision.RETRY:
                    return await self._requeue(lease, result)
                case _:
                    return await self._dead_letter(lease, result)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            self._probe.lease_action_failed(lease.message_id, "resolve", reason)
            if result is not None and result.decision == RetryDecision.DEAD_LETTER:
                return LEASE_ERROR
            message = result.message if result is not None else None
            return await self._dead_letter_unclassified(lease, message, reason)

    async def _dead_letter_unclassified(
        self, lease: QueueLease, message: RetryableMessage | None, reason: str
    ) -> str:
        """Dead-letter a lease whose resolution raised."""
        now = self._clock()
        if message is not None:
            record = DeadLetterRecord.from_message(message, reason, now)
        else:
            record = DeadLetterRecord.from_raw_body(
                lease.body, lease.message_id, reason, now
            )
        result = MessageProcessingResult.dead_lettered(
            record, FailureKind.UNCLASSIFIED, reason, message=message
        )
        try:
            return await self._dead_letter(lease, result)
        except Exception as e:
            self._probe.lease_action_failed(
                lease.message_id, "dead_letter", f"{type(e).__name__}: {e}"
            )
            return LEASE_ERROR

    async def _acknowledge(
        self, lease: QueueLease, result: MessageProcessingResult
    ) -> str:
        assert result.message is not None
        deleted = await self._transport.delete(lease.message_id, lease.receipt_token)
        if not deleted.ok:
            self._probe.lease_action_failed(
                lease.message_id, "delete", str(deleted.error)
            )
            return LEASE_ERROR

        self._probe.message_acknowledged(
            lease.message_id, result.message.correlation_id
        )
        await self._publish(
            MessageDelivered(
                correlation_id=result.message.correlation_id,
                retry_count=result.message.retry_count,
                occurred_at=self._clock(),
            )
        )
        return RetryDecision.SUCCESS

    async def _requeue(self, lease: QueueLease, result: MessageProcessingResult) -> str:
        assert result.message is not None
        next_message = result.message.next_attempt()
        context = RetryContext.for_message(
            next_message, self._processor.max_retry_attempts
        )
        delay = self._retry_strategy.next_delay(context)

        updated = await self._transport.update_visibility(
            lease.message_id,
            lease.receipt_token,
            self._serializer.serialize(next_message),
            delay,
        )
        if not updated.ok:
            self._probe.lease_action_failed(
                lease.message_id, "update_visibility", str(updated.error)
            )
            return LEASE_ERROR

        self._probe.message_requeued(
            lease.message_id,
            next_message.correlation_id,
            next_message.retry_count,
            delay.total_seconds(),
        )
        await self._publish(
            MessageRetryScheduled(
                correlation_id=next_message.correlation_id,
                retry_count=next_message.retry_count,
                delay_seconds=delay.total_seconds(),
                reason=result.reason or "",
                occurred_at=self._clock(),
            )
        )
        return RetryDecision.RETRY

    async def _dead_letter(
        self, lease: QueueLease, result: MessageProcessingResult
    ) -> str:
        record = result.dead_letter
        assert record is not None

        published = await self._dead_letter_sink.publish(record)
        if not published.ok:
            # Keep the lease; the message reappears after the visibility timeout.
            self._probe.dead_letter_publish_failed(
                lease.message_id, str(published.error)
            )
            return LEASE_ERROR

        deleted = await self._transport.delete(lease.message_id, lease.receipt_token)
        if not deleted.ok:
            self._probe.lease_action_failed(
                lease.message_id, "delete", str(deleted.error)
            )
            return LEASE_ERROR

        failure_kind = str(result.failure_kind or "")
        self._probe.message_dead_lettered(
            lease.message_id, record.correlation_id, failure_kind, result.reason or ""
        )
        await self._publish(
            MessageDeadLettered(
                correlation_id=record.correlation_id,
                retry_count=record.retry_count,
                failure_kind=failure_kind,
                reason=result.reason or "",
                occurred_at=self._clock(),
            )
        )
        return RetryDecision.DEAD_LETTER

    async def _publish(self, event: DeliveryEvent) -> None:
        if self._events is not None:
            await self._events.publish(event)
