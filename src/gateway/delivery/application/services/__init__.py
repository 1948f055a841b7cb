"""Application services for the Delivery bounded context."""

from delivery.application.services.delivery_consumer import DeliveryConsumer
from delivery.application.services.intake_service import (
    DeliveryIntakeService,
    compute_content_hash,
)
from delivery.application.services.message_processor import MessageProcessor
from delivery.application.services.retry_orchestrator import (
    PoisonQueueRetryOrchestrator,
)

__all__ = [
    "DeliveryConsumer",
    "DeliveryIntakeService",
    "MessageProcessor",
    "PoisonQueueRetryOrchestrator",
    "compute_content_hash",
]
