"""Ports (interfaces) for the Delivery bounded context.

Ports define the contracts for queues, the delivery sink and the
idempotency store without specifying implementation details.
"""

from delivery.ports.exceptions import (
    MalformedMessageError,
    TransientTransportError,
    TransportSetupError,
)
from delivery.ports.repositories import IIdempotencyGuard
from delivery.ports.transport import (
    DeadLetterSink,
    DeliverySink,
    EnvelopeSerializer,
    MessageTransport,
)

__all__ = [
    "DeadLetterSink",
    "DeliverySink",
    "EnvelopeSerializer",
    "IIdempotencyGuard",
    "MalformedMessageError",
    "MessageTransport",
    "TransientTransportError",
    "TransportSetupError",
]
