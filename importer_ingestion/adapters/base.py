"""
Source adapter protocol and DTOs.

Contract:
    SourceAdapter.read() yields one RawRow per data line (streaming).
    SourceAdapter.probe() returns a quick snapshot: row count, columns, sample rows.
    read_range() serves one batch by offset; ``has_more`` is true iff rows
    remain beyond the slice.

Architecture: importer_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from importer_kernel.exceptions import SourceNotFoundError, UnsupportedSourceFormatError

from importer_ingestion.domain.types import RawRow


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading tabular source files into RawRows."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[RawRow]:
        """Yield one RawRow per data line. Streams; does not load entire file."""
        ...

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        """Quick probe: row count, detected columns, sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a source file (row count, columns, first N rows)."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[RawRow, ...]
    encoding: str | None = None
    detected_delimiter: str | None = None


@dataclass(frozen=True)
class RowSlice:
    """One batch of rows read by offset."""

    rows: tuple[RawRow, ...]
    offset: int
    has_more: bool

    @property
    def count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class SourceFile:
    """An uploaded file handle as the orchestrator sees it."""

    path: Path
    original_name: str
    row_count: int
    headers: tuple[str, ...]
    options: dict[str, Any] | None = None


def slice_rows(rows: Iterable[RawRow], offset: int, limit: int) -> RowSlice:
    """Take ``limit`` rows after ``offset``, peeking one more for has_more."""
    window = list(islice(rows, offset, offset + limit + 1))
    return RowSlice(
        rows=tuple(window[:limit]),
        offset=offset,
        has_more=len(window) > limit,
    )


def read_range(
    adapter: SourceAdapter,
    source_path: Path,
    options: dict[str, Any],
    offset: int,
    limit: int,
) -> RowSlice:
    """Read rows [offset, offset + limit) from ``source_path``."""
    return slice_rows(adapter.read(source_path, options), offset, limit)


def require_file(source_path: Path) -> Path:
    if not source_path.is_file():
        raise SourceNotFoundError(str(source_path))
    return source_path


def adapter_for(source_path: Path | str) -> SourceAdapter:
    """Pick an adapter from the file extension."""
    from importer_ingestion.adapters.csv_adapter import CsvSourceAdapter
    from importer_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

    suffix = Path(source_path).suffix.lower()
    if suffix in (".csv", ".txt", ".tsv"):
        return CsvSourceAdapter()
    if suffix in (".xlsx", ".xlsm"):
        return XlsxSourceAdapter()
    raise UnsupportedSourceFormatError(suffix or str(source_path))


def describe_source(
    source_path: Path | str,
    adapter: SourceAdapter | None = None,
    options: dict[str, Any] | None = None,
    original_name: str | None = None,
) -> SourceFile:
    """Probe a file and return the handle start_run expects."""
    path = Path(source_path)
    adapter = adapter or adapter_for(path)
    opts = dict(options or {})
    probe = adapter.probe(path, opts)
    return SourceFile(
        path=path,
        original_name=original_name or path.name,
        row_count=probe.row_count,
        headers=probe.columns,
        options=opts,
    )
