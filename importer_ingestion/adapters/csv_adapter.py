"""
CSV source adapter.

Uses csv.reader. Configurable: delimiter, encoding, quoting, skip_rows.
Handles BOM via utf-8-sig when encoding is utf-8. Header cells are
stripped; fully empty lines are ignored. Streams rows.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterator

from importer_kernel.exceptions import SourceReadError

from importer_ingestion.adapters.base import SourceProbe, require_file
from importer_ingestion.domain.types import RawRow

_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "all": csv.QUOTE_ALL,
    "nonnumeric": csv.QUOTE_NONNUMERIC,
    "none": csv.QUOTE_NONE,
}

_SAMPLE_SIZE = 5


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"
    return enc


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


def _get_delimiter(source_path: Path, options: dict[str, Any]) -> str:
    if "delimiter" in options:
        return options["delimiter"]
    return "\t" if source_path.suffix.lower() == ".tsv" else ","


class CsvSourceAdapter:
    """Read CSV files as one RawRow per line. Streams; does not load entire file."""

    def _rows(self, source_path: Path, options: dict[str, Any]) -> Iterator[list[str]]:
        require_file(source_path)
        encoding = _get_encoding(options)
        delimiter = _get_delimiter(source_path, options)
        skip_rows = int(options.get("skip_rows", 0))
        quoting = _get_quoting(options)

        try:
            with source_path.open("r", encoding=encoding, newline="") as f:
                for _ in range(skip_rows):
                    next(f, None)
                for row in csv.reader(f, delimiter=delimiter, quoting=quoting):
                    if row:
                        yield row
        except (csv.Error, UnicodeDecodeError) as exc:
            raise SourceReadError(str(source_path), str(exc)) from exc

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[RawRow]:
        rows = self._rows(source_path, options)
        header = next(rows, None)
        if header is None:
            return
        headers = tuple(h.strip() for h in header)
        for cells in rows:
            yield RawRow(headers, tuple(cells))

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        rows = self._rows(source_path, options)
        header = next(rows, None)
        encoding = _get_encoding(options)
        delimiter = _get_delimiter(source_path, options)
        if header is None:
            return SourceProbe(
                row_count=0,
                columns=(),
                sample_rows=(),
                encoding=encoding,
                detected_delimiter=delimiter,
            )

        headers = tuple(h.strip() for h in header)
        sample: list[RawRow] = []
        count = 0
        for cells in rows:
            count += 1
            if len(sample) < _SAMPLE_SIZE:
                sample.append(RawRow(headers, tuple(cells)))

        return SourceProbe(
            row_count=count,
            columns=headers,
            sample_rows=tuple(sample),
            encoding=encoding,
            detected_delimiter=delimiter,
        )
