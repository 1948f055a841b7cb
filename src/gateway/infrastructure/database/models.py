"""SQLAlchemy declarative base and shared column types.

This module provides the declarative base class for all SQLAlchemy ORM models
and the timestamp column type used by the gateway tables.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import String
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from shared_kernel.clock import utc_now

__all__ = ["Base", "IsoDateTime", "to_iso", "utc_now"]


def to_iso(value: datetime) -> str:
    """Render a datetime as a fixed-width UTC ISO-8601 string.

    Naive datetimes are assumed to already be UTC. The fixed width keeps
    string comparison in SQL equivalent to chronological comparison.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class IsoDateTime(TypeDecorator[datetime]):
    """Timestamp column persisted as an ISO-8601 string.

    Values round-trip exactly: what is written is what is read back, always
    as a timezone-aware UTC datetime.
    """

    impl = String(32)
    cache_ok = True

    def process_bind_param(
        self, value: datetime | None, dialect: Dialect
    ) -> str | None:
        if value is None:
            return None
        return to_iso(value)

    def process_result_value(
        self, value: str | None, dialect: Dialect
    ) -> datetime | None:
        if value is None:
            return None
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models.

    All models in the application should inherit from this base class.
    It provides the declarative base functionality and type hints for SQLAlchemy 2.0.
    """

    type_annotation_map: dict[type, Any] = {}
