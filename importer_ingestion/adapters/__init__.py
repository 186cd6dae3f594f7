"""Source adapters for tabular imports (file I/O only, no DB)."""

from importer_ingestion.adapters.base import (
    RowSlice,
    SourceAdapter,
    SourceFile,
    SourceProbe,
    adapter_for,
    describe_source,
    read_range,
)
from importer_ingestion.adapters.csv_adapter import CsvSourceAdapter
from importer_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

__all__ = [
    "RowSlice",
    "SourceAdapter",
    "SourceFile",
    "SourceProbe",
    "CsvSourceAdapter",
    "XlsxSourceAdapter",
    "adapter_for",
    "describe_source",
    "read_range",
]
