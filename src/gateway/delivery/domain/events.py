"""Domain events for the Delivery bounded context.

Domain events capture facts about things that have happened to a message on
its way to the delivery sink. Each event class carries a stable
``event_type`` tag that handlers are registered against.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar


@dataclass(frozen=True)
class MessageQueued:
    """Event raised when content is accepted and written to the outbox.

    Attributes:
        entry_id: The outbox entry holding the message
        correlation_id: Identifier carried across every delivery hop
        subject_key: Identifier of the source the content was built from
        message_type: Tag describing the payload
        occurred_at: When the event occurred (UTC)
    """

    event_type: ClassVar[str] = "message.queued"

    entry_id: str
    correlation_id: str
    subject_key: str
    message_type: str
    occurred_at: datetime


@dataclass(frozen=True)
class MessageDelivered:
    """Event raised when the delivery sink accepted a message.

    Attributes:
        correlation_id: Identifier carried across every delivery hop
        retry_count: Requeues the message went through before succeeding
        occurred_at: When the event occurred (UTC)
    """

    event_type: ClassVar[str] = "message.delivered"

    correlation_id: str
    retry_count: int
    occurred_at: datetime


@dataclass(frozen=True)
class MessageRetryScheduled:
    """Event raised when a failed message is requeued with a backoff delay.

    Attributes:
        correlation_id: Identifier carried across every delivery hop
        retry_count: Retry count carried by the requeued envelope
        delay_seconds: How long the message stays invisible
        reason: Why the attempt failed
        occurred_at: When the event occurred (UTC)
    """

    event_type: ClassVar[str] = "message.retry_scheduled"

    correlation_id: str
    retry_count: int
    delay_seconds: float
    reason: str
    occurred_at: datetime


@dataclass(frozen=True)
class MessageDeadLettered:
    """Event raised when a message is given up and sent to the dead-letter sink.

    Attributes:
        correlation_id: Identifier carried across every delivery hop
        retry_count: Retry count when the message was given up
        failure_kind: Classification of the terminal failure
        reason: Human readable failure description
        occurred_at: When the event occurred (UTC)
    """

    event_type: ClassVar[str] = "message.dead_lettered"

    correlation_id: str
    retry_count: int
    failure_kind: str
    reason: str
    occurred_at: datetime


# Type alias for all domain events in the Delivery context
DeliveryEvent = (
    MessageQueued | MessageDelivered | MessageRetryScheduled | MessageDeadLettered
)

ALL_EVENT_TYPES: tuple[str, ...] = (
    MessageQueued.event_type,
    MessageDelivered.event_type,
    MessageRetryScheduled.event_type,
    MessageDeadLettered.event_type,
)
