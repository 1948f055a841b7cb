"""Database-specific exceptions and driver error classification."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class SchemaError(DatabaseError):
    """Raised when the gateway tables cannot be created."""

    pass


def is_connectivity_error(error: BaseException) -> bool:
    """Check whether a driver error means the database is unreachable.

    Constraint violations and programming errors are not connectivity
    problems and must propagate unchanged.
    """
    if isinstance(error, (OperationalError, InterfaceError, OSError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated
