"""UTC clock shared by every component that stamps or compares times."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Generate a timezone-aware UTC timestamp.

    Uses a named function instead of lambda so it can be injected as a clock.
    """
    return datetime.now(UTC)
