"""
Upsert row processor.

A reusable RowProcessor that writes processed rows through an injected
RecordRepository, keyed by one field.  Hosts with their own storage
implement RecordRepository; InMemoryRecordRepository is the test fake.
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import count
from typing import Any, Protocol, runtime_checkable

from importer_kernel.domain.dtos import Fail

from importer_batch.domain.types import RowOutcome


@runtime_checkable
class RecordRepository(Protocol):
    """Upsert-by-key storage capability."""

    def find(self, key: Any) -> Any | None:
        ...

    def insert(self, data: Mapping[str, Any]) -> Any:
        ...

    def update(self, record_id: Any, data: Mapping[str, Any]) -> None:
        ...


class UpsertRowProcessor:
    """
    Insert a row when its key is new, update the existing record otherwise.

    Rows without a key value fail with ``missing_key``.  With
    ``update_existing=False`` existing records are left alone and the row is
    reported as skipped.
    """

    def __init__(
        self,
        repository: RecordRepository,
        key_field: str,
        update_existing: bool = True,
    ):
        self._repository = repository
        self._key_field = key_field
        self._update_existing = update_existing

    def __call__(self, row: Mapping[str, Any]) -> str | Fail:
        key = row.get(self._key_field)
        if key is None or key == "":
            return Fail.of(
                "missing_key", f"{self._key_field} is required to import a record.", self._key_field,
            )

        existing = self._repository.find(key)
        if existing is None:
            self._repository.insert(dict(row))
            return RowOutcome.CREATED.value
        if not self._update_existing:
            return RowOutcome.SKIPPED.value
        self._repository.update(existing, dict(row))
        return RowOutcome.UPDATED.value


class InMemoryRecordRepository:
    """Dict-backed RecordRepository keyed by ``key_field``."""

    def __init__(self, key_field: str):
        self._key_field = key_field
        self._ids = count(1)
        self._keys: dict[Any, int] = {}
        self.records: dict[int, dict[str, Any]] = {}

    def find(self, key: Any) -> int | None:
        return self._keys.get(key)

    def insert(self, data: Mapping[str, Any]) -> int:
        record_id = next(self._ids)
        self.records[record_id] = dict(data)
        self._keys[data[self._key_field]] = record_id
        return record_id

    def update(self, record_id: int, data: Mapping[str, Any]) -> None:
        self.records[record_id].update(data)
