"""Unit tests for ExponentialBackoffRetryStrategy."""

import random
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from delivery.application.retry import (
    MAX_TRANSPORT_DELAY,
    MIN_DELAY,
    ExponentialBackoffRetryStrategy,
)
from delivery.domain.value_objects import RetryContext


def _context(retry_count: int, max_attempts: int = 3) -> RetryContext:
    return RetryContext(
        correlation_id="corr-1",
        current_retry_count=retry_count,
        max_retry_attempts=max_attempts,
    )


@pytest.fixture
def probe():
    return MagicMock()


class TestShouldRetry:
    """Tests for should_retry()."""

    @pytest.mark.parametrize("retry_count", [0, 1, 2])
    def test_budget_remaining(self, retry_count, probe):
        """Counts below the maximum may be retried."""
        strategy = ExponentialBackoffRetryStrategy(probe=probe)

        assert strategy.should_retry(_context(retry_count, max_attempts=3))

    @pytest.mark.parametrize("retry_count", [3, 4, 100])
    def test_budget_exhausted(self, retry_count, probe):
        """Counts at or above the maximum are never retried."""
        strategy = ExponentialBackoffRetryStrategy(probe=probe)

        assert not strategy.should_retry(_context(retry_count, max_attempts=3))

    def test_zero_attempts_never_retries(self, probe):
        """With no retry budget even the first failure is terminal."""
        strategy = ExponentialBackoffRetryStrategy(probe=probe)

        assert not strategy.should_retry(_context(0, max_attempts=0))


class TestNextDelay:
    """Tests for next_delay()."""

    def test_exponent_grows_with_retry_count(self, probe):
        """Base 2 without jitter gives 2, 4, 8 minutes."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2, use_jitter=False, probe=probe
        )

        assert strategy.next_delay(_context(0)) == timedelta(minutes=2)
        assert strategy.next_delay(_context(1)) == timedelta(minutes=4)
        assert strategy.next_delay(_context(2)) == timedelta(minutes=8)

    def test_power_not_doubling(self, probe):
        """The delay is base ** (n + 1), not base * 2 ** n."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=3, use_jitter=False, probe=probe
        )

        assert strategy.next_delay(_context(1)) == timedelta(minutes=9)

    def test_deterministic_and_monotonic_without_jitter(self, probe):
        """Without jitter, delays repeat exactly and never decrease."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=3, use_jitter=False, probe=probe
        )

        delays = [strategy.next_delay(_context(n)) for n in range(12)]

        assert delays == [strategy.next_delay(_context(n)) for n in range(12)]
        assert delays == sorted(delays)

    def test_does_not_enforce_retry_budget(self, probe):
        """Delays can be computed past the retry budget."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2, use_jitter=False, probe=probe
        )

        assert strategy.next_delay(_context(5, max_attempts=3)) == timedelta(
            minutes=64
        )

    def test_jitter_uses_injected_random_source(self, probe):
        """A seeded generator makes jitter reproducible."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2,
            use_jitter=True,
            max_jitter_percentage=0.3,
            rng=random.Random(7),
            probe=probe,
        )
        factor = 1.0 + random.Random(7).uniform(0.0, 0.3)

        delay = strategy.next_delay(_context(0))

        assert delay == timedelta(minutes=2.0 * factor)

    def test_jitter_stays_within_bounds(self, probe):
        """Jittered delays lie between the base delay and base * (1 + max)."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2,
            max_jitter_percentage=0.3,
            rng=random.Random(1234),
            probe=probe,
        )

        for _ in range(200):
            delay = strategy.next_delay(_context(1))
            assert timedelta(minutes=4) <= delay <= timedelta(minutes=4 * 1.3)

    def test_zero_jitter_percentage_is_exact(self, probe):
        """A jitter bound of zero leaves the delay unscaled."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2, max_jitter_percentage=0.0, probe=probe
        )

        assert strategy.next_delay(_context(0)) == timedelta(minutes=2)

    def test_configured_cap(self, probe):
        """A configured maximum bounds every delay."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2,
            use_jitter=False,
            max_delay_minutes=10,
            probe=probe,
        )

        assert strategy.next_delay(_context(5)) == timedelta(minutes=10)
        assert probe.delay_calculated.call_args.kwargs["capped"] is True

    def test_transport_limit_applies_without_cap(self, probe):
        """Uncapped delays still never exceed the transport's maximum."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=10, use_jitter=False, probe=probe
        )

        assert strategy.next_delay(_context(50)) == MAX_TRANSPORT_DELAY

    def test_overflow_is_capped(self, probe):
        """Astronomical exponents do not raise."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=10, use_jitter=False, probe=probe
        )

        assert strategy.next_delay(_context(10_000)) == MAX_TRANSPORT_DELAY

    def test_delay_is_always_positive(self, probe):
        """Tiny bases are floored to the minimum delay."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=0.001, use_jitter=False, probe=probe
        )

        for n in range(5):
            assert strategy.next_delay(_context(n)) >= MIN_DELAY > timedelta(0)

    def test_reports_calculation_to_probe(self, probe):
        """Every calculation is observable."""
        strategy = ExponentialBackoffRetryStrategy(
            base_delay_minutes=2, use_jitter=False, probe=probe
        )

        strategy.next_delay(_context(1))

        probe.delay_calculated.assert_called_once_with(
            correlation_id="corr-1",
            retry_count=1,
            delay_seconds=240.0,
            jitter_factor=1.0,
            capped=False,
        )


class TestConstructorValidation:
    """Tests for parameter validation."""

    @pytest.mark.parametrize("base", [0, -1])
    def test_rejects_non_positive_base(self, base):
        with pytest.raises(ValueError):
            ExponentialBackoffRetryStrategy(base_delay_minutes=base)

    @pytest.mark.parametrize("jitter", [-0.1, 1.5])
    def test_rejects_jitter_out_of_range(self, jitter):
        with pytest.raises(ValueError):
            ExponentialBackoffRetryStrategy(max_jitter_percentage=jitter)

    def test_rejects_non_positive_cap(self):
        with pytest.raises(ValueError):
            ExponentialBackoffRetryStrategy(max_delay_minutes=0)
