"""Retry strategies for the poison/retry queue.

A strategy answers two questions for a ``RetryContext``: may the message be
attempted again, and how long should it stay hidden before that attempt.
"""

from __future__ import annotations

import random
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from delivery.application.observability import DefaultRetryStrategyProbe

if TYPE_CHECKING:
    from delivery.application.observability import RetryStrategyProbe
    from delivery.domain.value_objects import RetryContext

# Longest visibility delay queue transports accept (7 days).
MAX_TRANSPORT_DELAY = timedelta(days=7)
# Delays are never shorter than this, even for bases below one minute.
MIN_DELAY = timedelta(seconds=1)


class RetryStrategy(Protocol):
    """Decides whether and when a failed message is attempted again."""

    def should_retry(self, context: RetryContext) -> bool:
        """Return True iff the message has retry budget left. No side effects."""
        ...

    def next_delay(self, context: RetryContext) -> timedelta:
        """Return the strictly positive delay before the next attempt.

        Does not enforce the retry budget; callers check ``should_retry``
        first.
        """
        ...


class ExponentialBackoffRetryStrategy:
    """Exponential backoff with optional multiplicative jitter.

    The delay in minutes is ``base ** (retry_count + 1)``; with a base of 2
    that is 2, 4, 8, ... minutes. With jitter enabled the delay is scaled by
    ``1 + U(0, max_jitter_percentage)``.

    The random source is injected so tests can seed it, and guarded by a
    lock because ``random.Random`` instances are shared across the
    concurrent per-message tasks of a sweep and the threads of a pool.
    """

    def __init__(
        self,
        base_delay_minutes: float = 2.0,
        use_jitter: bool = True,
        max_jitter_percentage: float = 0.3,
        max_delay_minutes: float | None = None,
        rng: random.Random | None = None,
        probe: RetryStrategyProbe | None = None,
    ) -> None:
        """Initialize the strategy.

        Args:
            base_delay_minutes: Base of the exponential, in minutes
            use_jitter: Whether to randomize delays
            max_jitter_percentage: Upper bound of the jitter fraction (0..1)
            max_delay_minutes: Optional cap applied after jitter
            rng: Random source; a fresh unseeded one is used when omitted
            probe: Observability probe for logging/metrics

        Raises:
            ValueError: If a parameter is out of range
        """
        if base_delay_minutes <= 0:
            raise ValueError("base_delay_minutes must be > 0")
        if not 0.0 <= max_jitter_percentage <= 1.0:
            raise ValueError("max_jitter_percentage must be between 0 and 1")
        if max_delay_minutes is not None and max_delay_minutes <= 0:
            raise ValueError("max_delay_minutes must be > 0")

        self._base = float(base_delay_minutes)
        self._use_jitter = use_jitter
        self._max_jitter = max_jitter_percentage
        self._cap = (
            timedelta(minutes=max_delay_minutes)
            if max_delay_minutes is not None
            else MAX_TRANSPORT_DELAY
        )
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._probe = probe or DefaultRetryStrategyProbe()

    def should_retry(self, context: RetryContext) -> bool:
        return context.current_retry_count < context.max_retry_attempts

    def next_delay(self, context: RetryContext) -> timedelta:
        exponent = max(context.current_retry_count, 0) + 1
        try:
            minutes = self._base**exponent
        except OverflowError:
            minutes = float("inf")

        jitter_factor = 1.0
        if self._use_jitter:
            with self._rng_lock:
                jitter_factor = 1.0 + self._rng.uniform(0.0, self._max_jitter)
            minutes *= jitter_factor

        capped = minutes * 60 >= self._cap.total_seconds()
        delay = self._cap if capped else timedelta(minutes=minutes)
        delay = max(delay, MIN_DELAY)

        self._probe.delay_calculated(
            correlation_id=context.correlation_id,
            retry_count=context.current_retry_count,
            delay_seconds=delay.total_seconds(),
            jitter_factor=jitter_factor,
            capped=capped,
        )
        return delay
