"""Dependency wiring for the Delivery bounded context.

Composes shared infrastructure (settings, session factory, outbox) with the
delivery adapters and application services. Every getter returns a
process-wide instance.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from delivery.application.events import DeliveryEventRegistry, build_default_registry
from delivery.application.retry import ExponentialBackoffRetryStrategy
from delivery.application.services import (
    DeliveryConsumer,
    DeliveryIntakeService,
    MessageProcessor,
    PoisonQueueRetryOrchestrator,
)
from delivery.infrastructure import (
    HttpDeliverySink,
    InMemoryMessageTransport,
    JsonEnvelopeSerializer,
    QueueDeadLetterSink,
    SqlAlchemyIdempotencyGuard,
)
from infrastructure.database.dependencies import get_sessionmaker
from infrastructure.outbox import OutboxDispatcher, OutboxStore
from infrastructure.scheduling import SweepRunner
from infrastructure.settings import (
    get_consumer_settings,
    get_idempotency_settings,
    get_outbox_settings,
    get_retry_settings,
    get_sink_settings,
)

PROCESSING_QUEUE = "delivery-processing"
RETRY_QUEUE = "delivery-retry"
DEAD_LETTER_QUEUE = "delivery-dead-letter"


@lru_cache
def get_envelope_serializer() -> JsonEnvelopeSerializer:
    return JsonEnvelopeSerializer()


@lru_cache
def get_processing_transport() -> InMemoryMessageTransport:
    """Queue the outbox dispatcher feeds and the consumer drains."""
    return InMemoryMessageTransport(PROCESSING_QUEUE)


@lru_cache
def get_retry_transport() -> InMemoryMessageTransport:
    """Poison queue drained by the retry orchestrator."""
    return InMemoryMessageTransport(RETRY_QUEUE)


@lru_cache
def get_dead_letter_transport() -> InMemoryMessageTransport:
    return InMemoryMessageTransport(DEAD_LETTER_QUEUE)


@lru_cache
def get_dead_letter_sink() -> QueueDeadLetterSink:
    return QueueDeadLetterSink(get_dead_letter_transport(), get_envelope_serializer())


@lru_cache
def get_delivery_sink() -> HttpDeliverySink:
    settings = get_sink_settings()
    return HttpDeliverySink(
        endpoint_url=settings.endpoint_url,
        timeout_seconds=settings.timeout_seconds,
        content_type=settings.content_type,
    )


@lru_cache
def get_event_registry() -> DeliveryEventRegistry:
    """Get the frozen event registry with the default handlers."""
    return build_default_registry()


@lru_cache
def get_retry_strategy() -> ExponentialBackoffRetryStrategy:
    settings = get_retry_settings()
    return ExponentialBackoffRetryStrategy(
        base_delay_minutes=settings.base_retry_delay_minutes,
        use_jitter=settings.use_jitter,
        max_jitter_percentage=settings.max_jitter_percentage,
        max_delay_minutes=settings.max_retry_delay_minutes,
    )


@lru_cache
def get_outbox_store() -> OutboxStore:
    settings = get_outbox_settings()
    return OutboxStore(
        get_sessionmaker(),
        max_retries=settings.max_retries,
        retry_delay=timedelta(seconds=settings.retry_delay_seconds),
    )


@lru_cache
def get_idempotency_guard() -> SqlAlchemyIdempotencyGuard:
    settings = get_idempotency_settings()
    return SqlAlchemyIdempotencyGuard(
        get_sessionmaker(), ttl=timedelta(hours=settings.ttl_hours)
    )


@lru_cache
def get_outbox_dispatcher() -> OutboxDispatcher:
    settings = get_outbox_settings()
    return OutboxDispatcher(
        store=get_outbox_store(),
        transport=get_processing_transport(),
        batch_size=settings.batch_size,
        dispatch_timeout=timedelta(seconds=settings.dispatch_timeout_seconds),
        dispatch_concurrency=settings.dispatch_concurrency,
        cleanup_retention=timedelta(days=settings.cleanup_retention_days),
    )


@lru_cache
def get_message_processor() -> MessageProcessor:
    return MessageProcessor(
        serializer=get_envelope_serializer(),
        sink=get_delivery_sink(),
        retry_strategy=get_retry_strategy(),
        max_retry_attempts=get_retry_settings().max_retry_attempts,
    )


@lru_cache
def get_retry_orchestrator() -> PoisonQueueRetryOrchestrator:
    settings = get_retry_settings()
    return PoisonQueueRetryOrchestrator(
        transport=get_retry_transport(),
        processor=get_message_processor(),
        retry_strategy=get_retry_strategy(),
        serializer=get_envelope_serializer(),
        dead_letter_sink=get_dead_letter_sink(),
        max_messages_per_batch=settings.max_messages_per_batch,
        visibility_timeout=timedelta(
            minutes=settings.processing_visibility_timeout_minutes
        ),
        events=get_event_registry(),
    )


@lru_cache
def get_delivery_consumer() -> DeliveryConsumer:
    settings = get_consumer_settings()
    return DeliveryConsumer(
        processing_transport=get_processing_transport(),
        retry_transport=get_retry_transport(),
        serializer=get_envelope_serializer(),
        sink=get_delivery_sink(),
        dead_letter_sink=get_dead_letter_sink(),
        max_messages_per_batch=settings.max_messages_per_batch,
        visibility_timeout=timedelta(minutes=settings.visibility_timeout_minutes),
        events=get_event_registry(),
    )


@lru_cache
def get_intake_service() -> DeliveryIntakeService:
    return DeliveryIntakeService(
        outbox=get_outbox_store(),
        guard=get_idempotency_guard(),
        serializer=get_envelope_serializer(),
        events=get_event_registry(),
    )


def build_sweep_runners() -> list[SweepRunner]:
    """Create one runner per background sweep.

    Returns:
        Runners for the outbox dispatcher, the processing queue consumer and
        the retry orchestrator, not yet started
    """
    return [
        SweepRunner(
            "outbox_dispatch",
            get_outbox_dispatcher().run_once,
            get_outbox_settings().poll_interval_seconds,
        ),
        SweepRunner(
            "delivery_consume",
            get_delivery_consumer().run_once,
            get_consumer_settings().poll_interval_seconds,
        ),
        SweepRunner(
            "poison_queue_retry",
            get_retry_orchestrator().run_once,
            get_retry_settings().sweep_interval_seconds,
        ),
    ]
