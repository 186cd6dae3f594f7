"""Dict-backed StatsStore with clock-driven expiry."""

from __future__ import annotations

from datetime import datetime, timedelta

from importer_kernel.domain.clock import Clock, SystemClock

from importer_batch.domain.types import STATS_TTL, RunStats


class InMemoryStatsStore:
    """Process-local StatsStore.  Records older than ``ttl`` read as defaults."""

    def __init__(self, clock: Clock | None = None, ttl: timedelta = STATS_TTL):
        self._clock = clock or SystemClock()
        self._ttl = ttl
        self._records: dict[tuple[str, str], tuple[RunStats, datetime]] = {}

    def get(self, page_id: str, operation_id: str) -> RunStats:
        key = (page_id, operation_id)
        record = self._records.get(key)
        if record is None:
            return RunStats()
        stats, expires_at = record
        if self._clock.has_passed(expires_at):
            del self._records[key]
            return RunStats()
        return stats

    def save(self, page_id: str, operation_id: str, stats: RunStats) -> None:
        self._records[(page_id, operation_id)] = (stats, self._clock.expires_at(self._ttl))

    def clear(self, page_id: str, operation_id: str) -> None:
        self._records.pop((page_id, operation_id), None)

    def __len__(self) -> int:
        return len(self._records)
