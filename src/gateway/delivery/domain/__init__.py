"""Domain layer for the Delivery bounded context."""

from delivery.domain.events import (
    DeliveryEvent,
    MessageDeadLettered,
    MessageDelivered,
    MessageQueued,
    MessageRetryScheduled,
)
from delivery.domain.value_objects import (
    ConsumeSummary,
    DeadLetterRecord,
    DeliveryResult,
    FailureKind,
    IdempotencyRecord,
    IntakeReceipt,
    IntakeResult,
    MessageProcessingResult,
    ProcessingOutcome,
    QueueLease,
    RetryableMessage,
    RetryContext,
    RetryDecision,
    RetrySweepSummary,
)

__all__ = [
    "ConsumeSummary",
    "DeadLetterRecord",
    "DeliveryEvent",
    "DeliveryResult",
    "FailureKind",
    "IdempotencyRecord",
    "IntakeReceipt",
    "IntakeResult",
    "MessageDeadLettered",
    "MessageDelivered",
    "MessageProcessingResult",
    "MessageQueued",
    "MessageRetryScheduled",
    "ProcessingOutcome",
    "QueueLease",
    "RetryContext",
    "RetryDecision",
    "RetrySweepSummary",
    "RetryableMessage",
]
