"""Outbox pattern implementation for reliable delivery.

This module provides the transactional outbox pattern so that a message
accepted by the gateway is durably recorded before any attempt is made to
hand it to the processing queue.
"""

from shared_kernel.outbox.exceptions import StorageUnavailableError
from shared_kernel.outbox.ports import IOutboxStore, OutboundTransport
from shared_kernel.outbox.value_objects import (
    DispatchSummary,
    OutboxEntry,
    OutboxStatus,
    StoreResult,
    TransportErrorKind,
    TransportResult,
)

__all__ = [
    "DispatchSummary",
    "IOutboxStore",
    "OutboundTransport",
    "OutboxEntry",
    "OutboxStatus",
    "StorageUnavailableError",
    "StoreResult",
    "TransportErrorKind",
    "TransportResult",
]
