"""
Sync page fetching.

A sync operation pulls its rows from a paginated upstream through the
operation's ``data_callback(cursor, batch_size)`` instead of a file.  Pages
are normalised to SyncPage; upstream exceptions propagate to the driver as a
batch-level failure.
"""

from __future__ import annotations

from typing import Any

from importer_kernel.exceptions import MissingDataCallbackError
from importer_kernel.logging_config import get_logger

from importer_ingestion.domain.types import OperationDefinition, SyncPage

logger = get_logger("batch.sync")


def fetch_page(operation: OperationDefinition, cursor: Any = None) -> SyncPage:
    """Call the operation's data source for the page after ``cursor``."""
    if operation.data_callback is None:
        raise MissingDataCallbackError(operation.operation_id)
    page = SyncPage.from_value(operation.data_callback(cursor, operation.batch_size))
    logger.debug(
        "sync_page_fetched",
        extra={
            "cursor": cursor,
            "items": len(page.items),
            "has_more": page.has_more,
            "upstream_total": page.total,
        },
    )
    return page
