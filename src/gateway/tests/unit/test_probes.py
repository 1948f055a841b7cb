"""Unit tests for domain probes.

Tests that domain probes correctly capture domain events
following the Domain Oriented Observability pattern.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import structlog

from delivery.application.observability import (
    DefaultMessageProcessorProbe,
    DefaultRetryStrategyProbe,
)
from delivery.infrastructure.observability import (
    DefaultDeliverySinkProbe,
    DefaultIdempotencyGuardProbe,
)
from infrastructure.observability import ObservationContext
from infrastructure.observability.probes import DefaultDatabaseProbe
from shared_kernel.outbox.observability import DefaultOutboxStoreProbe


def _logger() -> MagicMock:
    return MagicMock(spec=structlog.stdlib.BoundLogger)


class TestDatabaseProbe:
    """Tests for DatabaseProbe protocol and implementation."""

    def test_default_probe_creates_with_default_logger(self):
        """Default probe should work without explicit logger."""
        probe = DefaultDatabaseProbe()
        assert probe._logger is not None

    def test_engine_created_logs_info(self):
        mock_logger = _logger()
        probe = DefaultDatabaseProbe(logger=mock_logger)

        probe.engine_created(target="db:5432/gateway", pool_size=10)

        mock_logger.info.assert_called_once_with(
            "database_engine_created", target="db:5432/gateway", pool_size=10
        )

    def test_engine_disposed_logs_info(self):
        mock_logger = _logger()
        probe = DefaultDatabaseProbe(logger=mock_logger)

        probe.engine_disposed()

        mock_logger.info.assert_called_once_with("database_engine_disposed")


class TestOutboxStoreProbe:
    """Tests for the outbox store probe."""

    def test_entry_failed_logs_warning_with_iso_timestamp(self):
        mock_logger = _logger()
        probe = DefaultOutboxStoreProbe(logger=mock_logger)
        at = datetime(2026, 1, 8, 12, 0, 30, tzinfo=UTC)

        probe.entry_failed("e-1", retry_count=1, next_retry_at=at, error="boom")

        mock_logger.warning.assert_called_once_with(
            "outbox_entry_failed",
            entry_id="e-1",
            retry_count=1,
            next_retry_at=at.isoformat(),
            error="boom",
        )

    def test_with_context_adds_metadata(self):
        """Probe with context should include context metadata in logs."""
        mock_logger = _logger()
        probe = DefaultOutboxStoreProbe(logger=mock_logger).with_context(
            ObservationContext(sweep="outbox_dispatch")
        )

        probe.entry_dispatched("e-1")

        mock_logger.info.assert_called_once_with(
            "outbox_entry_dispatched", entry_id="e-1", sweep="outbox_dispatch"
        )


class TestRetryStrategyProbe:
    def test_delay_calculated_rounds_values(self):
        mock_logger = _logger()
        probe = DefaultRetryStrategyProbe(logger=mock_logger)

        probe.delay_calculated(
            "corr-1",
            retry_count=1,
            delay_seconds=240.123456,
            jitter_factor=1.123456,
            capped=False,
        )

        mock_logger.debug.assert_called_once_with(
            "retry_delay_calculated",
            correlation_id="corr-1",
            retry_count=1,
            delay_seconds=240.123,
            jitter_factor=1.1235,
            capped=False,
        )


class TestMessageProcessorProbe:
    def test_processing_error_logs_error(self):
        mock_logger = _logger()
        probe = DefaultMessageProcessorProbe(logger=mock_logger)

        probe.processing_error("msg-1", "kaboom", "RuntimeError")

        mock_logger.error.assert_called_once_with(
            "message_processing_error",
            message_id="msg-1",
            error="kaboom",
            error_type="RuntimeError",
        )

    def test_with_context_keeps_logger(self):
        mock_logger = _logger()
        probe = DefaultMessageProcessorProbe(logger=mock_logger)

        scoped = probe.with_context(ObservationContext(sweep="poison_queue_retry"))

        assert scoped._logger is mock_logger


class TestIdempotencyGuardProbe:
    """Tests for the idempotency guard probe counters."""

    def test_counts_hits_and_misses(self):
        mock_logger = _logger()
        probe = DefaultIdempotencyGuardProbe(logger=mock_logger)

        probe.cache_miss("s", "h", expired=False)
        probe.cache_hit("s", "h")
        probe.cache_miss("s", "h", expired=True)

        assert probe.hits == 1
        assert probe.misses == 2
        mock_logger.info.assert_called_once_with(
            "idempotency_hit", subject_key="s", content_hash="h", hits=1
        )

    def test_storage_unavailable_logs_error(self):
        mock_logger = _logger()
        probe = DefaultIdempotencyGuardProbe(logger=mock_logger)

        probe.storage_unavailable("get_record", "refused")

        mock_logger.error.assert_called_once_with(
            "idempotency_storage_unavailable", operation="get_record", error="refused"
        )


class TestDeliverySinkProbe:
    def test_rejected_logs_warning(self):
        mock_logger = _logger()
        probe = DefaultDeliverySinkProbe(logger=mock_logger)

        probe.delivery_rejected("http://sink", 503)

        mock_logger.warning.assert_called_once_with(
            "sink_delivery_rejected", endpoint="http://sink", status_code=503
        )
