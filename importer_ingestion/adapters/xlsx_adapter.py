"""
XLSX source adapter.

Supports:
  - sheet by index (0-based) or name
  - skip_rows before the header row
  - normalizes cell values (strip, None -> empty string, whole floats -> int)

The first non-skipped row is the header. Rows whose cells are all blank are
ignored, as the CSV adapter ignores empty lines.
"""

from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import Any, Iterator

from importer_kernel.exceptions import SourceReadError

from importer_ingestion.adapters.base import SourceProbe, require_file
from importer_ingestion.domain.types import RawRow

_SAMPLE_SIZE = 5


def _normalize_header_cell(value: Any, position: int) -> str:
    s = "" if value is None else re.sub(r"\s+", " ", str(value)).strip()
    return s or f"Column_{position + 1}"


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value).strip()


def _dedupe(headers: list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for key in headers:
        base, cnt = key, 0
        while key in seen:
            cnt += 1
            key = f"{base}_{cnt}"
        seen.append(key)
    return tuple(seen)


class XlsxSourceAdapter:
    """
    Read .xlsx files as one RawRow per sheet row.

    source options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      skip_rows: rows to skip at the top of the sheet before the header. Default: 0.
    """

    def _load(self, source_path: Path) -> Any:
        try:
            import openpyxl
            from openpyxl.utils.exceptions import InvalidFileException
        except ImportError as e:
            raise ImportError("XLSX support requires openpyxl. Install with: pip install openpyxl") from e

        require_file(source_path)
        try:
            return openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            raise SourceReadError(str(source_path), str(exc)) from exc

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]

    def _rows(self, source_path: Path, options: dict[str, Any]) -> Iterator[tuple[Any, ...]]:
        wb = self._load(source_path)
        try:
            sheet = self._get_sheet(wb, options)
            skip_rows = int(options.get("skip_rows", 0))
            yield from sheet.iter_rows(min_row=1 + skip_rows, values_only=True)
        finally:
            wb.close()

    def _records(self, source_path: Path, options: dict[str, Any]) -> Iterator[RawRow]:
        rows = self._rows(source_path, options)
        header = next(rows, None)
        if header is None:
            return
        ncols = len(header)
        while ncols and header[ncols - 1] in (None, ""):
            ncols -= 1
        headers = _dedupe([_normalize_header_cell(v, i) for i, v in enumerate(header[:ncols])])
        for row in rows:
            cells = tuple(_cell_value(v) for v in row[:ncols])
            if not any(cells):
                continue
            yield RawRow(headers, cells)

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[RawRow]:
        yield from self._records(source_path, options)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        columns: tuple[str, ...] = ()
        sample: list[RawRow] = []
        count = 0
        for raw in self._records(source_path, options):
            columns = raw.headers
            count += 1
            if len(sample) < _SAMPLE_SIZE:
                sample.append(raw)
        if not columns:
            header = next(self._rows(source_path, options), None) or ()
            columns = _dedupe(
                [_normalize_header_cell(v, i) for i, v in enumerate(header) if v not in (None, "")]
            )
        return SourceProbe(row_count=count, columns=columns, sample_rows=tuple(sample))
