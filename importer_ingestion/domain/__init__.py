"""
importer_ingestion.domain -- Pure types, validators and currency codes.

ZERO I/O. Imports only from importer_kernel.
"""

from importer_ingestion.domain.types import (
    DryRunReport,
    FieldDefinition,
    FieldType,
    OperationDefinition,
    RawRow,
    RowError,
    RunContext,
    SyncPage,
)

__all__ = [
    "DryRunReport",
    "FieldDefinition",
    "FieldType",
    "OperationDefinition",
    "RawRow",
    "RowError",
    "RunContext",
    "SyncPage",
]
