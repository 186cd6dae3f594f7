"""
ImportOrchestrator -- run lifecycle for import and sync operations.

Contract:
    The plain-function surface a web handler layer calls, one method per
    driver request:

        get_preview / generate_sample / dry_run      (no side effects)
        start_run -> run_batch* -> complete           (imports)
        start_run -> run_sync_batch* -> complete      (syncs)
        request_cancel / cancel / clear_stats / get_stats

    Each batch call is bounded by the operation's ``batch_size`` and is
    resumable: the response carries the next ``offset`` (or ``cursor``) and
    the driver issues the next call.

Architecture: importer_batch (top-level).  Composes importer_config
    (PageRegistry), importer_ingestion (ImportService, FieldPipeline,
    EntityResolver) and the batch executor and stats manager.

Invariants enforced:
    - before_import runs before stats are initialised; a failing hook aborts
      the run with ImportAbortedError and leaves stats untouched.
    - Cancellation is observed at the top of a batch: a batch that sees a
      cancel request processes no rows and seals the run as cancelled.
      Counts from earlier batches are kept.
    - complete() is idempotent per status; after_import fires once, only on
      natural completion, and its failures never block completion.
    - Row numbers in batch errors are file line numbers: offset + 2 for the
      first row of a batch.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from importer_kernel.domain.clock import Clock, SystemClock
from importer_kernel.exceptions import (
    ImportAbortedError,
    MissingDataCallbackError,
    MissingRowProcessorError,
    RunNotStartedError,
)
from importer_kernel.logging_config import LogContext, get_logger

from importer_config.registry import PageRegistry

from importer_ingestion.adapters.base import SourceFile
from importer_ingestion.domain.types import (
    DryRunReport,
    OperationDefinition,
    RawRow,
    RunContext,
)
from importer_ingestion.mapping.engine import FieldPipeline, as_failure
from importer_ingestion.resolution.base import EntityRepository
from importer_ingestion.resolution.resolver import EntityResolver
from importer_ingestion.services.import_service import (
    FIRST_DATA_ROW,
    PREVIEW_ROWS,
    ImportService,
)
from importer_ingestion.services.sample import generate_sample, sample_filename

from importer_batch.domain.types import (
    MAX_STORED_ERRORS,
    BatchResult,
    BatchTally,
    RunStats,
    RunStatus,
)
from importer_batch.services.executor import BatchExecutor
from importer_batch.services.sync import fetch_page
from importer_batch.stats.base import StatsManager, StatsStore

logger = get_logger("batch.orchestrator")


class ImportOrchestrator:
    """Drives preview, dry run and batched runs for registered operations.

    Contract:
        - ``from_session()`` wires a SQL-backed stats store.
        - Dry runs and previews never resolve entities or call processors.
        - Live batches resolve entities through ``entity_repository``.

    Non-goals:
        - Does NOT manage session lifecycle -- caller controls commits.
        - Does NOT delete uploaded files -- the driver does after complete().
    """

    def __init__(
        self,
        registry: PageRegistry,
        stats_store: StatsStore,
        entity_repository: EntityRepository | None = None,
        clock: Clock | None = None,
        import_service: ImportService | None = None,
        max_errors: int = MAX_STORED_ERRORS,
    ):
        self._registry = registry
        self._clock = clock or SystemClock()
        self._stats = StatsManager(stats_store, self._clock, max_errors)
        self._service = import_service or ImportService()
        resolver = EntityResolver(entity_repository) if entity_repository is not None else None
        self._executor = BatchExecutor(FieldPipeline(resolver))

    @classmethod
    def from_session(
        cls,
        session: Session,
        registry: PageRegistry,
        entity_repository: EntityRepository | None = None,
        clock: Clock | None = None,
    ) -> ImportOrchestrator:
        from importer_batch.stats.sql import SqlStatsStore

        clock = clock or SystemClock()
        return cls(
            registry,
            SqlStatsStore(session, clock),
            entity_repository=entity_repository,
            clock=clock,
        )

    def operation(self, page_id: str, operation_id: str) -> OperationDefinition:
        return self._registry.get_operation(page_id, operation_id)

    # -------------------------------------------------------------------------
    # Side-effect free
    # -------------------------------------------------------------------------

    def get_preview(
        self, source: SourceFile | Path | str, max_rows: int = PREVIEW_ROWS,
    ) -> dict[str, Any]:
        return self._service.get_preview(source, max_rows)

    def generate_sample(self, page_id: str, operation_id: str) -> tuple[str, str]:
        """``(filename, csv_text)`` for the operation's sample file."""
        op = self.operation(page_id, operation_id)
        return sample_filename(operation_id), generate_sample(op.fields)

    def dry_run(
        self,
        page_id: str,
        operation_id: str,
        rows: Sequence[RawRow | Mapping[str, Any]] | SourceFile,
        field_map: Mapping[str, str],
    ) -> DryRunReport:
        op = self.operation(page_id, operation_id)
        with LogContext.bind(page_id=page_id):
            if isinstance(rows, SourceFile):
                return self._service.dry_run_source(rows, field_map, op)
            return self._service.dry_run(rows, field_map, op)

    def get_stats(self, page_id: str, operation_id: str) -> RunStats:
        self.operation(page_id, operation_id)
        return self._stats.get(page_id, operation_id)

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def start_run(
        self,
        page_id: str,
        operation_id: str,
        source: SourceFile | None = None,
        total: int | None = None,
    ) -> dict[str, Any]:
        """Fire before_import, then reset the run's stats.

        ``total`` defaults to the source's row count; sync runs usually
        leave it unknown and let the upstream or completion fill it in.
        """
        op = self.operation(page_id, operation_id)
        _require_runnable(op)
        source_name = source.original_name if source is not None else None
        if total is None and source is not None:
            total = source.row_count

        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            if op.before_import is not None:
                context = RunContext(
                    page_id, operation_id, source_name, total or 0,
                    self._stats.get(page_id, operation_id),
                )
                self._before_import(op, context)

            stats = self._stats.init_run(page_id, operation_id, source_name, total)
            logger.info(
                "run_started",
                extra={
                    "source_file": source_name,
                    "total": stats.total,
                    "batch_size": op.batch_size,
                    "kind": op.kind,
                },
            )
        return {
            "total_items": stats.total,
            "batch_size": op.batch_size,
            "stats": stats,
        }

    def run_batch(
        self,
        page_id: str,
        operation_id: str,
        rows: Sequence[RawRow | Mapping[str, Any]] | SourceFile,
        offset: int,
        field_map: Mapping[str, str],
    ) -> BatchResult:
        """Process one batch starting at ``offset``.

        ``rows`` is either the batch itself, already sliced by the driver, or
        a SourceFile from which ``batch_size`` rows at ``offset`` are read.
        """
        op = self.operation(page_id, operation_id)
        if op.process_callback is None:
            raise MissingRowProcessorError(operation_id)

        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            refused = self._refuse_if_stopped(page_id, operation_id, offset)
            if refused is not None:
                return refused

            if isinstance(rows, SourceFile):
                window = self._service.read_batch(rows, offset, op.batch_size)
                batch_rows: Sequence[Any] = window.rows
                has_more = window.has_more
            else:
                batch_rows = list(rows)
                total = self._stats.get(page_id, operation_id).total
                has_more = offset + len(batch_rows) < total

            tally = self._executor.process_rows(
                op, batch_rows, field_map, offset + FIRST_DATA_ROW,
            )
            stats = self._stats.update_batch(page_id, operation_id, tally)
            next_offset = offset + len(batch_rows)
            logger.info(
                "batch_processed",
                extra={
                    "offset": offset,
                    "processed": tally.processed,
                    "created_count": tally.created,
                    "updated_count": tally.updated,
                    "skipped_count": tally.skipped,
                    "failed_count": tally.failed,
                    "has_more": has_more,
                    "percentage": stats.percentage,
                },
            )
        return BatchResult(tally, stats, has_more, offset=next_offset)

    def run_sync_batch(
        self,
        page_id: str,
        operation_id: str,
        cursor: Any = None,
    ) -> BatchResult:
        """Pull one page from the operation's data source and process it."""
        op = self.operation(page_id, operation_id)
        if op.process_callback is None:
            raise MissingRowProcessorError(operation_id)

        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            refused = self._refuse_if_stopped(page_id, operation_id, 0, cursor)
            if refused is not None:
                return refused

            page = fetch_page(op, cursor)
            stats = self._stats.get(page_id, operation_id)
            if page.total is not None and page.total != stats.total:
                stats = self._stats.set_total(page_id, operation_id, page.total)

            tally = self._executor.process_items(
                op, page.items, stats.total_processed + 1,
            )
            self._stats.update_batch(page_id, operation_id, tally)
            stats = self._stats.set_cursor(page_id, operation_id, page.cursor)
            logger.info(
                "sync_batch_processed",
                extra={
                    "cursor": cursor,
                    "next_cursor": page.cursor,
                    "processed": tally.processed,
                    "failed_count": tally.failed,
                    "has_more": page.has_more,
                    "percentage": stats.percentage,
                },
            )
        return BatchResult(
            tally, stats, page.has_more, offset=stats.total_processed, cursor=page.cursor,
        )

    def complete(
        self,
        page_id: str,
        operation_id: str,
        status: RunStatus | str = RunStatus.COMPLETE,
    ) -> RunStats:
        """Seal the run with ``status``.  after_import fires on COMPLETE only."""
        op = self.operation(page_id, operation_id)
        status = RunStatus(status)
        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            stats, changed = self._stats.complete_run(page_id, operation_id, status)
            if not changed:
                return stats
            logger.info(
                "run_completed",
                extra={
                    "status": status.value,
                    "total": stats.total,
                    "created_count": stats.created,
                    "updated_count": stats.updated,
                    "skipped_count": stats.skipped,
                    "failed_count": stats.failed,
                },
            )
            if status is RunStatus.COMPLETE and op.after_import is not None:
                self._after_import(op, RunContext(
                    page_id, operation_id, stats.source_file, stats.total, stats,
                ))
        return stats

    def cancel(self, page_id: str, operation_id: str) -> RunStats:
        return self.complete(page_id, operation_id, RunStatus.CANCELLED)

    def request_cancel(self, page_id: str, operation_id: str) -> RunStats:
        """Flag the run so the next batch call stops instead of processing."""
        self.operation(page_id, operation_id)
        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            stats = self._stats.request_cancel(page_id, operation_id)
            logger.info(
                "run_cancel_requested",
                extra={"total_processed": stats.total_processed},
            )
        return stats

    def clear_stats(self, page_id: str, operation_id: str) -> None:
        self.operation(page_id, operation_id)
        self._stats.clear(page_id, operation_id)
        with LogContext.bind(page_id=page_id, operation_id=operation_id):
            logger.info("stats_cleared")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _refuse_if_stopped(
        self, page_id: str, operation_id: str, offset: int, cursor: Any = None,
    ) -> BatchResult | None:
        stats = self._stats.get(page_id, operation_id)
        if stats.last_run is None:
            raise RunNotStartedError(page_id, operation_id)

        if stats.cancel_requested:
            stats = self.cancel(page_id, operation_id)
        elif not stats.is_sealed:
            return None

        logger.info(
            "batch_refused",
            extra={
                "offset": offset,
                "status": stats.last_status.value if stats.last_status else None,
            },
        )
        return BatchResult(
            BatchTally(),
            stats,
            has_more=False,
            offset=offset,
            cursor=cursor,
            cancelled=stats.last_status is RunStatus.CANCELLED,
        )

    def _before_import(self, op: OperationDefinition, context: RunContext) -> None:
        try:
            result = op.before_import(context)
        except Exception as exc:
            logger.warning("run_aborted", extra={"reason": str(exc)}, exc_info=True)
            raise ImportAbortedError(op.operation_id, str(exc) or type(exc).__name__) from exc

        failure = as_failure(result, None, "Import")
        if failure is not None:
            reason = "before_import returned False" if result is False else failure.message
            logger.warning("run_aborted", extra={"reason": reason})
            raise ImportAbortedError(op.operation_id, reason)

    def _after_import(self, op: OperationDefinition, context: RunContext) -> None:
        try:
            op.after_import(context)
        except Exception:
            logger.exception("after_import_failed")


def _require_runnable(op: OperationDefinition) -> None:
    if op.process_callback is None:
        raise MissingRowProcessorError(op.operation_id)
    if op.kind == "sync" and op.data_callback is None:
        raise MissingDataCallbackError(op.operation_id)
