"""
importer_batch -- batched, resumable, cancelable import runs.

Responsibility:
    RunStats and BatchResult DTOs, stats stores (in-memory and SQL), the
    per-row batch executor, sync page fetching, the upsert row processor and
    the ImportOrchestrator that exposes the run lifecycle to a driver layer.

Architecture position:
    Top of the stack.  Imports from importer_kernel, importer_ingestion and
    importer_config; nothing imports from here except the kernel's
    create_tables (to register the stats model).
"""

from importer_batch.domain.types import BatchResult, RunStats, RunStatus
from importer_batch.orchestrator import ImportOrchestrator
from importer_batch.processors import (
    InMemoryRecordRepository,
    RecordRepository,
    UpsertRowProcessor,
)
from importer_batch.stats import InMemoryStatsStore, StatsManager, StatsStore

__all__ = [
    "BatchResult",
    "ImportOrchestrator",
    "InMemoryRecordRepository",
    "InMemoryStatsStore",
    "RecordRepository",
    "RunStats",
    "RunStatus",
    "StatsManager",
    "StatsStore",
    "UpsertRowProcessor",
]
