"""Domain probes for Delivery application services."""

from delivery.application.observability.delivery_consumer_probe import (
    DefaultDeliveryConsumerProbe,
    DeliveryConsumerProbe,
)
from delivery.application.observability.event_registry_probe import (
    DefaultEventRegistryProbe,
    EventRegistryProbe,
)
from delivery.application.observability.intake_service_probe import (
    DefaultIntakeServiceProbe,
    IntakeServiceProbe,
)
from delivery.application.observability.message_processor_probe import (
    DefaultMessageProcessorProbe,
    MessageProcessorProbe,
)
from delivery.application.observability.retry_orchestrator_probe import (
    DefaultRetryOrchestratorProbe,
    RetryOrchestratorProbe,
)
from delivery.application.observability.retry_strategy_probe import (
    DefaultRetryStrategyProbe,
    RetryStrategyProbe,
)

__all__ = [
    "DefaultDeliveryConsumerProbe",
    "DefaultEventRegistryProbe",
    "DefaultIntakeServiceProbe",
    "DefaultMessageProcessorProbe",
    "DefaultRetryOrchestratorProbe",
    "DefaultRetryStrategyProbe",
    "DeliveryConsumerProbe",
    "EventRegistryProbe",
    "IntakeServiceProbe",
    "MessageProcessorProbe",
    "RetryOrchestratorProbe",
    "RetryStrategyProbe",
]
