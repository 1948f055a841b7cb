"""Exceptions for outbox and idempotency persistence.

Only conditions that make a whole sweep impossible are signalled with
exceptions. Per-entry outcomes (missing entry, lost race) are returned
as ``StoreResult`` values instead.
"""


class StorageUnavailableError(Exception):
    """Raised when the backing database cannot be reached.

    Callers decide whether to retry. Background sweeps surface this as a
    failed cycle; the next scheduled sweep resumes from durable state.
    """

    def __init__(self, operation: str, cause: BaseException | None = None):
        message = f"Storage unavailable during '{operation}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
