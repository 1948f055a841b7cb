"""Database infrastructure - shared engine, session and schema primitives."""

from infrastructure.database.exceptions import (
    DatabaseError,
    SchemaError,
    is_connectivity_error,
)
from infrastructure.database.models import Base, IsoDateTime, utc_now

__all__ = [
    "Base",
    "DatabaseError",
    "IsoDateTime",
    "SchemaError",
    "is_connectivity_error",
    "utc_now",
]
