"""
Configuration schema (``importer_config.schema``).

An importer page groups named operations under one id. Field and operation
definitions themselves are the frozen dataclasses in
``importer_ingestion.domain.types``; the page is the only artifact this
package adds.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from importer_kernel.exceptions import OperationNotFoundError

from importer_ingestion.domain.types import OperationDefinition, label_from_key


@dataclass(frozen=True)
class ImporterPage:
    """A page id with its operations, in declaration order."""

    page_id: str
    operations: Mapping[str, OperationDefinition]
    title: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "operations", MappingProxyType(dict(self.operations)))
        if not self.title:
            object.__setattr__(self, "title", label_from_key(self.page_id))

    def get_operation(self, operation_id: str) -> OperationDefinition:
        try:
            return self.operations[operation_id]
        except KeyError:
            raise OperationNotFoundError(self.page_id, operation_id) from None

    def has_operation(self, operation_id: str) -> bool:
        return operation_id in self.operations
