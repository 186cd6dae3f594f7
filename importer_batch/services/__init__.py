"""Batch execution services."""

from importer_batch.services.executor import BatchExecutor, interpret_result
from importer_batch.services.sync import fetch_page

__all__ = ["BatchExecutor", "fetch_page", "interpret_result"]
