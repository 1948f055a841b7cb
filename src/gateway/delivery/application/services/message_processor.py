"""Message processor for the retry queue.

Turns one leased message into exactly one ``MessageProcessingResult``. The
processor never touches the lease itself; the orchestrator maps the result
to a transport action.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from delivery.application.observability import DefaultMessageProcessorProbe
from delivery.domain.value_objects import (
    DeadLetterRecord,
    DeliveryResult,
    FailureKind,
    MessageProcessingResult,
    RetryContext,
)
from delivery.ports.exceptions import MalformedMessageError
from shared_kernel.clock import utc_now

if TYPE_CHECKING:
    from delivery.application.observability import MessageProcessorProbe
    from delivery.application.retry import RetryStrategy
    from delivery.domain.value_objects import QueueLease, RetryableMessage
    from delivery.ports.transport import DeliverySink, EnvelopeSerializer

DESERIALIZATION_FAILED = "Message deserialization failed"
MAX_RETRIES_EXCEEDED = "Max retries exceeded"
DELIVERY_FAILED = "Delivery sink call failed"


class MessageProcessor:
    """Decides the fate of a single retry-queue message.

    Steps:
        1. Parse the envelope. A malformed body is dead-lettered.
        2. Check the retry budget. An exhausted budget is dead-lettered
           without attempting delivery.
        3. Deliver through the sink. Success acknowledges the message, any
           failure (including a raising sink) schedules a retry.

    Anything unexpected is dead-lettered rather than retried, so an unknown
    failure can never cause an endless reprocessing loop.
    """

    def __init__(
        self,
        serializer: EnvelopeSerializer,
        sink: DeliverySink,
        retry_strategy: RetryStrategy,
        max_retry_attempts: int = 3,
        probe: MessageProcessorProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the processor.

        Args:
            serializer: Wire format of queue bodies
            sink: Downstream delivery target
            retry_strategy: Decides whether budget remains
            max_retry_attempts: Retries allowed before dead-lettering
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
        """
        self._serializer = serializer
        self._sink = sink
        self._retry_strategy = retry_strategy
        self._max_retry_attempts = max_retry_attempts
        self._probe = probe or DefaultMessageProcessorProbe()
        self._clock = clock

    @property
    def max_retry_attempts(self) -> int:
        return self._max_retry_attempts

    async def process(self, lease: QueueLease) -> MessageProcessingResult:
        """Process one leased message.

        Args:
            lease: The leased retry-queue message

        Returns:
            Exactly one of success, retry or dead-letter
        """
        message: RetryableMessage | None = None
        try:
            try:
                message = self._serializer.deserialize(lease.body)
            except MalformedMessageError as e:
                self._probe.deserialization_failed(lease.message_id, str(e))
                reason = f"{DESERIALIZATION_FAILED}: {e}"
                record = DeadLetterRecord.from_raw_body(
                    lease.body, lease.message_id, reason, self._clock()
                )
                return MessageProcessingResult.dead_lettered(
                    record, FailureKind.MALFORMED, reason
                )

            context = RetryContext.for_message(message, self._max_retry_attempts)
            if not self._retry_strategy.should_retry(context):
                self._probe.retry_budget_exhausted(
                    message.correlation_id,
                    message.retry_count,
                    self._max_retry_attempts,
                )
                record = DeadLetterRecord.from_message(
                    message, MAX_RETRIES_EXCEEDED, self._clock()
                )
                return MessageProcessingResult.dead_lettered(
                    record,
                    FailureKind.RETRY_BUDGET_EXHAUSTED,
                    MAX_RETRIES_EXCEEDED,
                    message=message,
                )

            delivery = await self._deliver(message)
            if delivery.delivered:
                self._probe.delivery_succeeded(
                    message.correlation_id, message.retry_count
                )
                return MessageProcessingResult.success(message)

            reason = f"{DELIVERY_FAILED}: {delivery.error}"
            self._probe.delivery_failed(
                message.correlation_id, message.retry_count, reason
            )
            return MessageProcessingResult.retry(message, reason)

        except Exception as e:
            self._probe.processing_error(lease.message_id, str(e), type(e).__name__)
            reason = f"{type(e).__name__}: {e}"
            now = self._clock()
            if message is not None:
                record = DeadLetterRecord.from_message(message, reason, now)
            else:
                record = DeadLetterRecord.from_raw_body(
                    lease.body, lease.message_id, reason, now
                )
            return MessageProcessingResult.dead_lettered(
                record, FailureKind.UNCLASSIFIED, reason, message=message
            )

    async def _deliver(self, message: RetryableMessage) -> DeliveryResult:
        """Call the sink, treating a raising sink as a failed delivery."""
        try:
            return await self._sink.deliver(message.payload)
        except Exception as e:
            return DeliveryResult.failed(f"{type(e).__name__}: {e}")
