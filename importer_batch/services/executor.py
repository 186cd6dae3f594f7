"""
BatchExecutor -- per-row isolated batch execution.

Contract:
    ``process_rows()`` runs one batch of raw source rows through the row
    mapper, the full field pipeline, the operation's row validator and its
    row processor, and returns a BatchTally for that batch only.
    ``process_items()`` does the same for already-shaped sync items, which
    skip the field pipeline.

Architecture: importer_batch/services.  Imports from importer_batch.domain,
    importer_ingestion and importer_kernel.  Never touches the stats store;
    the orchestrator merges the tally.

Invariants enforced:
    - One failing row never aborts the batch: field failures, row validator
      failures and row processor failures (returned or raised) are all
      recorded against that row and the loop continues.
    - Blank rows under ``skip_empty_rows`` count as skipped, not failed.
    - Row numbers are file line numbers (header is line 1).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from importer_kernel.domain.dtos import Fail, ValidationError
from importer_kernel.exceptions import MissingRowProcessorError
from importer_kernel.logging_config import get_logger

from importer_ingestion.domain.types import OperationDefinition, RawRow, RowError
from importer_ingestion.mapping.engine import (
    FieldPipeline,
    as_failure,
    is_blank_row,
    map_row,
    row_identifier,
)

from importer_batch.domain.types import BatchTally, RowOutcome

logger = get_logger("batch.executor")


def interpret_result(result: Any) -> tuple[RowOutcome, str | None]:
    """Map a row processor's return value to an outcome and failure message.

    ``"created"``, ``"updated"`` and ``"skipped"`` (or the RowOutcome members)
    count as themselves; ``Fail``/``ValidationError`` is a failure; anything
    else counts as created.
    """
    if isinstance(result, Fail):
        return RowOutcome.FAILED, result.message
    if isinstance(result, ValidationError):
        return RowOutcome.FAILED, result.message
    if isinstance(result, str):
        try:
            outcome = RowOutcome(result)
        except ValueError:
            return RowOutcome.CREATED, None
        if outcome is not RowOutcome.FAILED:
            return outcome, None
    return RowOutcome.CREATED, None


class BatchExecutor:
    """Runs rows through the pipeline and the operation's row processor."""

    def __init__(self, pipeline: FieldPipeline):
        self._pipeline = pipeline

    def process_rows(
        self,
        operation: OperationDefinition,
        rows: Iterable[RawRow | Mapping[str, Any]],
        field_map: Mapping[str, str],
        first_row_number: int,
    ) -> BatchTally:
        processor = _require_processor(operation)
        fields = operation.fields
        tally = BatchTally()

        for row_number, raw in enumerate(rows, start=first_row_number):
            mapped = map_row(raw, field_map, fields)
            if operation.skip_empty_rows and is_blank_row(mapped):
                tally = tally.add(RowOutcome.SKIPPED)
                continue

            item = row_identifier(mapped)

            outcome = self._pipeline.process_row(mapped, fields)
            if not outcome.is_ok:
                tally = self._failed(tally, row_number, item, outcome.message, outcome.code)
                continue
            processed = outcome.value

            if operation.validate_callback is not None:
                failure = as_failure(operation.validate_callback(processed), None, "Row")
                if failure is not None:
                    tally = self._failed(tally, row_number, item, failure.message, failure.code)
                    continue

            tally = self._run_processor(tally, processor, processed, row_number, item)

        return tally

    def process_items(
        self,
        operation: OperationDefinition,
        items: Iterable[Mapping[str, Any]],
        first_row_number: int,
    ) -> BatchTally:
        processor = _require_processor(operation)
        tally = BatchTally()
        for row_number, item in enumerate(items, start=first_row_number):
            tally = self._run_processor(tally, processor, item, row_number, row_identifier(item))
        return tally

    def _run_processor(
        self,
        tally: BatchTally,
        processor: Any,
        row: Mapping[str, Any],
        row_number: int,
        item: str,
    ) -> BatchTally:
        try:
            result = processor(row)
        except Exception as exc:
            logger.warning(
                "row_processor_raised",
                extra={"row": row_number, "item": item, "error_type": type(exc).__name__},
                exc_info=True,
            )
            return self._failed(tally, row_number, item, str(exc) or type(exc).__name__, "processor_exception")

        outcome, message = interpret_result(result)
        if outcome is RowOutcome.FAILED:
            code = result.code if isinstance(result, (Fail, ValidationError)) else None
            return self._failed(tally, row_number, item, message or "Row failed.", code)
        return tally.add(outcome)

    @staticmethod
    def _failed(
        tally: BatchTally,
        row_number: int,
        item: str,
        message: str,
        code: str | None,
    ) -> BatchTally:
        logger.debug(
            "row_failed",
            extra={"row": row_number, "item": item, "code": code},
        )
        return tally.add(RowOutcome.FAILED, RowError(row_number, item, message, code))


def _require_processor(operation: OperationDefinition) -> Any:
    if operation.process_callback is None:
        raise MissingRowProcessorError(operation.operation_id)
    return operation.process_callback
