"""Outbox dispatcher that hands pending entries to the processing queue.

The dispatcher is invoked periodically by a sweep runner. Each sweep loads a
bounded batch of dispatchable entries, sends them concurrently, records the
outcome of every send in the outbox, and finally purges old dispatched
entries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from shared_kernel.clock import utc_now
from shared_kernel.outbox.exceptions import StorageUnavailableError
from shared_kernel.outbox.observability import DefaultOutboxDispatcherProbe
from shared_kernel.outbox.value_objects import DispatchSummary, StoreResult

if TYPE_CHECKING:
    from shared_kernel.outbox.observability import OutboxDispatcherProbe
    from shared_kernel.outbox.ports import IOutboxStore, OutboundTransport
    from shared_kernel.outbox.value_objects import OutboxEntry


class _Outcome(StrEnum):
    DISPATCHED = "dispatched"
    FAILED = "failed"
    CONFLICT = "conflict"
    ERROR = "error"


class OutboxDispatcher:
    """Moves outbox entries onto the processing queue.

    Per-entry failures are absorbed into outbox state: a failed send marks
    the entry FAILED (or ABANDONED) and the sweep carries on. An unexpected
    error while recording one entry's outcome is counted in the summary.
    Only ``StorageUnavailableError`` escapes ``run_once``, since without the
    store no progress can be recorded.
    """

    def __init__(
        self,
        store: IOutboxStore,
        transport: OutboundTransport,
        batch_size: int = 100,
        dispatch_timeout: timedelta = timedelta(seconds=30),
        dispatch_concurrency: int = 10,
        cleanup_retention: timedelta = timedelta(days=30),
        probe: OutboxDispatcherProbe | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Outbox store holding the entries
            transport: Queue client the payloads are sent to
            batch_size: Maximum entries loaded per sweep
            dispatch_timeout: Timeout applied to each individual send
            dispatch_concurrency: Maximum sends in flight at once
            cleanup_retention: Age after which dispatched entries are deleted
            probe: Observability probe for logging/metrics
            clock: Source of the current UTC time
        """
        self._store = store
        self._transport = transport
        self._batch_size = batch_size
        self._dispatch_timeout = dispatch_timeout
        self._dispatch_concurrency = dispatch_concurrency
        self._cleanup_retention = cleanup_retention
        self._probe = probe or DefaultOutboxDispatcherProbe()
        self._clock = clock

    async def run_once(self) -> DispatchSummary:
        """Run one dispatch sweep.

        Returns:
            Totals describing what the sweep did

        Raises:
            StorageUnavailableError: If the outbox store cannot be reached
        """
        entries = await self._store.list_pending(self._batch_size)
        self._probe.dispatch_started(len(entries))

        now = self._clock()
        ready: list[OutboxEntry] = []
        skipped = 0
        for entry in entries:
            if entry.is_ready(now):
                ready.append(entry)
            else:
                skipped += 1
                self._probe.entry_skipped(entry.id, entry.next_retry_at)

        semaphore = asyncio.Semaphore(self._dispatch_concurrency)
        results = await asyncio.gather(
            *(self._dispatch(entry, semaphore) for entry in ready),
            return_exceptions=True,
        )

        outcomes: list[_Outcome] = []
        storage_error: StorageUnavailableError | None = None
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, StorageUnavailableError):
                storage_error = storage_error or result
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)
        if storage_error is not None:
            raise storage_error

        cleaned_up = await self._store.cleanup_dispatched(self._cleanup_retention)

        summary = DispatchSummary(
            candidates=len(entries),
            dispatched=outcomes.count(_Outcome.DISPATCHED),
            failed=outcomes.count(_Outcome.FAILED),
            skipped=skipped,
            conflicts=outcomes.count(_Outcome.CONFLICT),
            cleaned_up=cleaned_up,
            errors=outcomes.count(_Outcome.ERROR),
        )
        self._probe.dispatch_completed(
            summary.dispatched, summary.failed, summary.skipped, summary.cleaned_up
        )
        return summary

    async def _dispatch(
        self, entry: OutboxEntry, semaphore: asyncio.Semaphore
    ) -> _Outcome:
        """Send one entry and record the outcome in the store."""
        async with semaphore:
            error = await self._send(entry)

        try:
            return await self._record(entry, error)
        except StorageUnavailableError:
            raise
        except Exception as e:
            self._probe.entry_record_failed(entry.id, f"{type(e).__name__}: {e}")
            return _Outcome.ERROR

    async def _record(self, entry: OutboxEntry, error: str | None) -> _Outcome:
        """Write the send outcome to the store."""
        if error is None:
            result = await self._store.mark_dispatched(entry.id)
            if result is StoreResult.OK:
                self._probe.entry_sent(entry.id, entry.correlation_id)
                return _Outcome.DISPATCHED
            self._probe.entry_conflict(entry.id)
            return _Outcome.CONFLICT

        self._probe.entry_send_failed(entry.id, error)
        result = await self._store.mark_failed(entry.id, error)
        if result is StoreResult.OK:
            return _Outcome.FAILED
        self._probe.entry_conflict(entry.id)
        return _Outcome.CONFLICT

    async def _send(self, entry: OutboxEntry) -> str | None:
        """Send the payload, returning an error description on failure."""
        try:
            async with asyncio.timeout(self._dispatch_timeout.total_seconds()):
                result = await self._transport.send(entry.payload)
        except TimeoutError:
            return f"Send timed out after {self._dispatch_timeout.total_seconds()}s"
        except Exception as e:
            return f"{type(e).__name__}: {e}"

        if result.ok:
            return None
        return f"{result.error_kind}: {result.error}"
