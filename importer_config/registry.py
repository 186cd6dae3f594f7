"""Page registry: page id -> ImporterPage."""

from __future__ import annotations

from collections.abc import Iterable

from importer_kernel.exceptions import PageNotFoundError
from importer_kernel.logging_config import get_logger

from importer_config.schema import ImporterPage
from importer_ingestion.domain.types import OperationDefinition

logger = get_logger("config.registry")


class PageRegistry:
    """Holds registered importer pages. Re-registering an id replaces it."""

    def __init__(self, pages: Iterable[ImporterPage] = ()):
        self._pages: dict[str, ImporterPage] = {}
        for page in pages:
            self.register(page)

    def register(self, page: ImporterPage) -> ImporterPage:
        if page.page_id in self._pages:
            logger.warning("page_replaced", extra={"page_id": page.page_id})
        self._pages[page.page_id] = page
        return page

    def unregister(self, page_id: str) -> bool:
        return self._pages.pop(page_id, None) is not None

    def has(self, page_id: str) -> bool:
        return page_id in self._pages

    def get(self, page_id: str) -> ImporterPage:
        try:
            return self._pages[page_id]
        except KeyError:
            raise PageNotFoundError(page_id) from None

    def get_operation(self, page_id: str, operation_id: str) -> OperationDefinition:
        return self.get(page_id).get_operation(operation_id)

    def all(self) -> tuple[ImporterPage, ...]:
        return tuple(self._pages.values())
