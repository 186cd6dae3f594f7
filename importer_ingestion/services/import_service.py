"""
Import service: preview and dry run.

Orchestrates source adapters, the row mapper, the duplicate checker and the
dry (validate-only) field pipeline. Nothing here writes: no entity is
resolved or created and no row processor is called, so a dry run is safe to
repeat. Uses structured logging (LogContext, get_logger("ingestion.*")).

Row numbers are file line numbers: the header is line 1, so the first data
row is row 2.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from itertools import islice
from pathlib import Path
from typing import Any

from importer_kernel.logging_config import LogContext, get_logger

from importer_ingestion.adapters.base import (
    RowSlice,
    SourceAdapter,
    SourceFile,
    adapter_for,
    read_range,
)
from importer_ingestion.domain.types import (
    DryRunReport,
    FieldDefinition,
    OperationDefinition,
    RawRow,
    RowError,
)
from importer_ingestion.domain.validators import check_duplicates
from importer_ingestion.mapping.engine import (
    FieldPipeline,
    as_failure,
    is_blank_row,
    map_row,
    row_identifier,
)

logger = get_logger("ingestion.import_service")

PREVIEW_ROWS = 5
DRY_RUN_ERROR_LIMIT = 20
FIRST_DATA_ROW = 2


class ImportService:
    """Preview and dry-run entry points. Adapters are chosen by file extension unless injected."""

    def __init__(
        self,
        adapters: Mapping[str, SourceAdapter] | None = None,
        pipeline: FieldPipeline | None = None,
        error_limit: int = DRY_RUN_ERROR_LIMIT,
    ):
        self._adapters = dict(adapters or {})
        self._pipeline = pipeline or FieldPipeline()
        self._error_limit = error_limit

    def adapter(self, source_path: Path) -> SourceAdapter:
        suffix = source_path.suffix.lower().lstrip(".")
        if suffix in self._adapters:
            return self._adapters[suffix]
        return adapter_for(source_path)

    # -------------------------------------------------------------------------
    # Preview
    # -------------------------------------------------------------------------

    def get_preview(
        self,
        source: SourceFile | Path | str,
        max_rows: int = PREVIEW_ROWS,
    ) -> dict[str, Any]:
        """``{"headers": [...], "rows": [[...], ...]}`` for the first ``max_rows`` rows."""
        path, options = _path_and_options(source)
        adapter = self.adapter(path)
        sample = list(islice(adapter.read(path, options), max_rows))
        if sample:
            headers = sample[0].headers
        else:
            headers = adapter.probe(path, options).columns
        return {"headers": list(headers), "rows": [list(r.cells) for r in sample]}

    def read_all(self, source: SourceFile | Path | str) -> list[RawRow]:
        path, options = _path_and_options(source)
        return list(self.adapter(path).read(path, options))

    def read_batch(self, source: SourceFile | Path | str, offset: int, limit: int) -> RowSlice:
        """Rows [offset, offset + limit) of the source, with a has_more flag."""
        path, options = _path_and_options(source)
        return read_range(self.adapter(path), path, options, offset, limit)

    # -------------------------------------------------------------------------
    # Dry run
    # -------------------------------------------------------------------------

    def dry_run(
        self,
        rows: Iterable[RawRow | Mapping[str, Any]],
        field_map: Mapping[str, str],
        operation: OperationDefinition,
        fields: Mapping[str, FieldDefinition] | None = None,
    ) -> DryRunReport:
        """
        Validate every row without side effects.

        Runs the duplicate checker over all mapped rows, then the dry field
        pipeline and the operation's row validator on each non-blank row.
        Duplicate errors come first, in append order, then row errors in row
        order. ``errors`` is capped; ``error_count`` is the true total.
        """
        fields = fields if fields is not None else operation.fields
        raw_rows = list(rows)
        mapped_rows = [map_row(raw, field_map, fields) for raw in raw_rows]

        with LogContext.bind(operation_id=operation.operation_id):
            duplicate_errors = check_duplicates(
                mapped_rows, fields, first_row_number=FIRST_DATA_ROW
            )
            duplicate_rows = {e.row for e in duplicate_errors}
            row_errors: list[RowError] = []
            valid = 0
            skipped = 0

            for row_number, mapped in enumerate(mapped_rows, start=FIRST_DATA_ROW):
                if operation.skip_empty_rows and is_blank_row(mapped):
                    skipped += 1
                    continue

                error = self._check_row(mapped, fields, operation, row_number)
                if error is not None:
                    row_errors.append(error)
                elif row_number not in duplicate_rows:
                    valid += 1

            errors = duplicate_errors + row_errors
            report = DryRunReport(
                total_rows=len(raw_rows),
                valid_rows=valid,
                skipped_rows=skipped,
                error_count=len(errors),
                errors=tuple(errors[: self._error_limit]),
            )
            logger.info(
                "dry_run_completed",
                extra={
                    "total_rows": report.total_rows,
                    "valid_rows": report.valid_rows,
                    "skipped_rows": report.skipped_rows,
                    "error_count": report.error_count,
                },
            )
        return report

    def dry_run_source(
        self,
        source: SourceFile | Path | str,
        field_map: Mapping[str, str],
        operation: OperationDefinition,
    ) -> DryRunReport:
        """Dry run over every row of a source file."""
        return self.dry_run(self.read_all(source), field_map, operation)

    def _check_row(
        self,
        mapped: Mapping[str, Any],
        fields: Mapping[str, FieldDefinition],
        operation: OperationDefinition,
        row_number: int,
    ) -> RowError | None:
        outcome = self._pipeline.validate_row(mapped, fields)
        if not outcome.is_ok:
            return RowError(row_number, row_identifier(mapped), outcome.message, outcome.code)

        if operation.validate_callback is not None:
            failure = as_failure(
                operation.validate_callback(outcome.value), None, "Row"
            )
            if failure is not None:
                return RowError(row_number, row_identifier(mapped), failure.message, failure.code)
        return None


def _path_and_options(source: SourceFile | Path | str) -> tuple[Path, dict[str, Any]]:
    if isinstance(source, SourceFile):
        return source.path, dict(source.options or {})
    return Path(source), {}
