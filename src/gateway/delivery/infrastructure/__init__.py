"""Infrastructure layer for the Delivery bounded context.

Adapters implementing the delivery ports: the SQLAlchemy idempotency guard,
the JSON envelope serializer, the HTTP delivery sink and the in-process
queue transport.
"""

from delivery.infrastructure.envelope_serializer import JsonEnvelopeSerializer
from delivery.infrastructure.http_sink import HttpDeliverySink
from delivery.infrastructure.idempotency_repository import SqlAlchemyIdempotencyGuard
from delivery.infrastructure.in_memory_transport import (
    InMemoryMessageTransport,
    QueueDeadLetterSink,
)
from delivery.infrastructure.models import IdempotencyRecordModel

__all__ = [
    "HttpDeliverySink",
    "IdempotencyRecordModel",
    "InMemoryMessageTransport",
    "JsonEnvelopeSerializer",
    "QueueDeadLetterSink",
    "SqlAlchemyIdempotencyGuard",
]
