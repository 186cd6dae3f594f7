"""
importer_batch.domain.types -- Pure frozen dataclasses for batch runs.

ZERO I/O.  Follows the pattern of importer_ingestion/domain/types.py:
frozen dataclasses with enum status fields and tuples for immutable
collections.

Invariants enforced:
    - RunStats is replaced, never mutated: every lifecycle step returns a
      new snapshot (``started``, ``merged``, ``completed``).
    - Stored errors are capped at MAX_STORED_ERRORS, oldest evicted first.
    - ``total_processed`` counts skipped rows; percentage derives from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from importer_ingestion.domain.types import RowError

MAX_STORED_ERRORS = 20
STATS_TTL = timedelta(days=7)


# =============================================================================
# Status enums
# =============================================================================


class RunStatus(str, Enum):
    """Terminal status of a run. Unset (None) while the run is in progress."""

    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


class RowOutcome(str, Enum):
    """What a row processor reports for a row it handled."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


def percentage(processed: int, total: int) -> int:
    """Whole-number progress, rounded half up; 0 when the total is unknown."""
    if total <= 0:
        return 0
    value = Decimal(processed) * 100 / Decimal(total)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# =============================================================================
# Batch tally
# =============================================================================


@dataclass(frozen=True)
class BatchTally:
    """Counts and errors for one batch only, before merging into RunStats."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: tuple[RowError, ...] = field(default_factory=tuple)

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped + self.failed

    def add(self, outcome: RowOutcome, error: RowError | None = None) -> BatchTally:
        counts = {
            RowOutcome.CREATED: "created",
            RowOutcome.UPDATED: "updated",
            RowOutcome.SKIPPED: "skipped",
            RowOutcome.FAILED: "failed",
        }
        name = counts[outcome]
        errors = self.errors + (error,) if error is not None else self.errors
        return replace(self, errors=errors, **{name: getattr(self, name) + 1})


# =============================================================================
# Run stats
# =============================================================================


@dataclass(frozen=True)
class RunStats:
    """Cumulative counters and capped error list for one (page, operation) run.

    A fresh ``RunStats()`` is the default state: nothing run, no status.
    ``cancel_requested`` is set between batches by ``request_cancel`` and
    observed at the top of the next batch. ``cursor`` is only used by sync
    operations.
    """

    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: tuple[RowError, ...] = field(default_factory=tuple)
    last_run: datetime | None = None
    last_status: RunStatus | None = None
    source_file: str | None = None
    cancel_requested: bool = False
    cursor: Any = None

    @property
    def total_processed(self) -> int:
        return self.created + self.updated + self.skipped + self.failed

    @property
    def total_items(self) -> int:
        return self.total or self.total_processed

    @property
    def percentage(self) -> int:
        return percentage(self.total_processed, self.total_items)

    @property
    def is_sealed(self) -> bool:
        return self.last_status is not None

    @classmethod
    def started(
        cls, now: datetime, source_file: str | None = None, total: int | None = None,
    ) -> RunStats:
        return cls(total=total or 0, last_run=now, source_file=source_file)

    def merged(self, tally: BatchTally, max_errors: int = MAX_STORED_ERRORS) -> RunStats:
        """Add a batch's counts; keep only the most recent ``max_errors`` errors."""
        errors = self.errors + tally.errors
        if len(errors) > max_errors:
            errors = errors[-max_errors:]
        return replace(
            self,
            created=self.created + tally.created,
            updated=self.updated + tally.updated,
            skipped=self.skipped + tally.skipped,
            failed=self.failed + tally.failed,
            errors=errors,
        )

    def completed(self, status: RunStatus) -> RunStats:
        """Seal with ``status``; backfill an unknown total from the counters."""
        return replace(
            self,
            last_status=status,
            total=self.total or self.total_processed,
            cancel_requested=False,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_status": self.last_status.value if self.last_status else None,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
            "source_file": self.source_file,
        }


# =============================================================================
# Batch result
# =============================================================================


@dataclass(frozen=True)
class BatchResult:
    """Response for one batch call: this batch's tally plus cumulative stats.

    ``offset`` is where the next batch starts (imports); ``cursor`` is the
    next page token (syncs). ``cancelled`` is True when the call observed a
    cancel request and processed nothing.
    """

    tally: BatchTally
    stats: RunStats
    has_more: bool
    offset: int = 0
    cursor: Any = None
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.tally.processed

    @property
    def total_processed(self) -> int:
        return self.stats.total_processed

    @property
    def total_items(self) -> int:
        return self.stats.total_items

    @property
    def percentage(self) -> int:
        return self.stats.percentage

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.tally.processed,
            "created": self.tally.created,
            "updated": self.tally.updated,
            "skipped": self.tally.skipped,
            "failed": self.tally.failed,
            "errors": [e.to_dict() for e in self.tally.errors],
            "has_more": self.has_more,
            "offset": self.offset,
            "cursor": self.cursor,
            "cancelled": self.cancelled,
            "total_processed": self.total_processed,
            "total_items": self.total_items,
            "percentage": self.percentage,
            "stats": self.stats.to_dict(),
        }
