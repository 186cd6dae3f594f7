"""
Stats persistence protocol and run lifecycle.

Contract:
    A StatsStore keeps one RunStats record per (page_id, operation_id) and
    forgets it after a TTL.  ``get`` on a missing or expired key returns the
    default ``RunStats()``.

    StatsManager applies the run lifecycle on top of any store:
    ``init_run`` -> ``update_batch``* -> ``complete_run``; ``clear`` resets.

Architecture: importer_batch/stats.  Imports from importer_batch.domain and
    importer_kernel only.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol, runtime_checkable

from importer_kernel.domain.clock import Clock, SystemClock

from importer_batch.domain.types import (
    MAX_STORED_ERRORS,
    BatchTally,
    RunStats,
    RunStatus,
)


@runtime_checkable
class StatsStore(Protocol):
    """Keyed RunStats persistence."""

    def get(self, page_id: str, operation_id: str) -> RunStats:
        ...

    def save(self, page_id: str, operation_id: str, stats: RunStats) -> None:
        ...

    def clear(self, page_id: str, operation_id: str) -> None:
        ...


class StatsManager:
    """Read-modify-write lifecycle over a StatsStore.

    The orchestrator is the only writer; batches for one key are sequenced
    by the driver, so no locking happens here.
    """

    def __init__(
        self,
        store: StatsStore,
        clock: Clock | None = None,
        max_errors: int = MAX_STORED_ERRORS,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._max_errors = max_errors

    def get(self, page_id: str, operation_id: str) -> RunStats:
        return self._store.get(page_id, operation_id)

    def init_run(
        self,
        page_id: str,
        operation_id: str,
        source_file: str | None = None,
        total: int | None = None,
    ) -> RunStats:
        stats = RunStats.started(self._clock.now(), source_file, total)
        self._store.save(page_id, operation_id, stats)
        return stats

    def update_batch(self, page_id: str, operation_id: str, tally: BatchTally) -> RunStats:
        stats = self._store.get(page_id, operation_id).merged(tally, self._max_errors)
        self._store.save(page_id, operation_id, stats)
        return stats

    def set_total(self, page_id: str, operation_id: str, total: int) -> RunStats:
        stats = self._store.get(page_id, operation_id)
        if stats.total == total:
            return stats
        stats = replace(stats, total=total)
        self._store.save(page_id, operation_id, stats)
        return stats

    def set_cursor(self, page_id: str, operation_id: str, cursor: Any) -> RunStats:
        stats = replace(self._store.get(page_id, operation_id), cursor=cursor)
        self._store.save(page_id, operation_id, stats)
        return stats

    def request_cancel(self, page_id: str, operation_id: str) -> RunStats:
        stats = self._store.get(page_id, operation_id)
        if stats.is_sealed or stats.cancel_requested:
            return stats
        stats = replace(stats, cancel_requested=True)
        self._store.save(page_id, operation_id, stats)
        return stats

    def complete_run(
        self, page_id: str, operation_id: str, status: RunStatus,
    ) -> tuple[RunStats, bool]:
        """Seal the run.  Returns ``(stats, changed)``.

        A sealed run is terminal: completing it again, with any status,
        leaves it untouched and reports ``changed=False``.
        """
        stats = self._store.get(page_id, operation_id)
        if stats.is_sealed:
            return stats, False
        stats = stats.completed(status)
        self._store.save(page_id, operation_id, stats)
        return stats, True

    def clear(self, page_id: str, operation_id: str) -> None:
        self._store.clear(page_id, operation_id)
