"""Pure batch-run domain types."""

from importer_batch.domain.types import (
    MAX_STORED_ERRORS,
    STATS_TTL,
    BatchResult,
    BatchTally,
    RowOutcome,
    RunStats,
    RunStatus,
    percentage,
)

__all__ = [
    "MAX_STORED_ERRORS",
    "STATS_TTL",
    "BatchResult",
    "BatchTally",
    "RowOutcome",
    "RunStats",
    "RunStatus",
    "percentage",
]
