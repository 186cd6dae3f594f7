"""
EntityResolver -- cascading resolution of values to entity identifiers.

Contract:
    ``resolve(value, field)`` returns ``Ok(int)`` (or ``Ok(list[int])`` for
    list values) or ``Fail``. Null and empty values pass through untouched.
    Lists resolve element-wise and fail on the first failing element.

    Not-found failures carry the code ``<kind>_not_found``; the pipeline
    turns them into null for optional fields. The resolver itself never
    applies that policy.

Side effects (live mode only):
    - Term creation when ``create`` is set and no strategy matched. A
      concurrent-create race (EntityExistsError) resolves to the existing id.
    - Remote media sideload when an attachment URL lookup misses and
      ``sideload`` is set.
"""

from __future__ import annotations

from typing import Any

from importer_kernel.domain.dtos import Fail, Ok, Outcome
from importer_kernel.exceptions import (
    EntityCreateError,
    EntityExistsError,
    SideloadError,
)
from importer_kernel.logging_config import get_logger

from importer_ingestion.domain.types import FieldDefinition, FieldType
from importer_ingestion.domain.validators import is_url
from importer_ingestion.resolution.base import EntityRepository, EntityScope
from importer_ingestion.resolution.strategies import strategies_for

logger = get_logger("ingestion.entity_resolver")


def not_found_code(kind: FieldType) -> str:
    return f"{kind.value}_not_found"


class EntityResolver:
    """Resolves entity-typed field values through an EntityRepository."""

    def __init__(self, repository: EntityRepository):
        self._repository = repository

    def resolve(self, value: Any, fdef: FieldDefinition) -> Outcome:
        if value is None or value == "":
            return Ok(value)

        if isinstance(value, (list, tuple)):
            resolved: list[int] = []
            for item in value:
                outcome = self.resolve_one(item, fdef)
                if not outcome.is_ok:
                    return outcome
                resolved.append(outcome.value)
            return Ok(resolved)

        return self.resolve_one(value, fdef)

    def resolve_one(self, value: Any, fdef: FieldDefinition) -> Outcome:
        kind = fdef.type
        scope = EntityScope.from_field(fdef)

        for strategy in strategies_for(fdef):
            if not strategy.accepts(value):
                continue
            found = self._repository.find_by(
                kind, strategy.attribute, strategy.lookup_value(value), scope
            )
            if found is not None:
                return Ok(found)
            if strategy.name == "url" and fdef.sideload and is_url(value):
                return self._sideload(str(value), fdef)

        if fdef.create and kind == FieldType.TERM and str(value).strip():
            return self._create(kind, str(value), scope, fdef)

        return Fail.of(
            not_found_code(kind),
            f'{fdef.label} "{value}" not found.',
            fdef.key,
            value=value,
        )

    # -------------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------------

    def _create(
        self, kind: FieldType, value: str, scope: EntityScope, fdef: FieldDefinition,
    ) -> Outcome:
        try:
            new_id = self._repository.create(kind, value, scope)
        except EntityExistsError as exc:
            logger.info(
                "entity_create_race",
                extra={"kind": kind.value, "value": value, "existing_id": exc.existing_id},
            )
            return Ok(exc.existing_id)
        except EntityCreateError as exc:
            return Fail.of(exc.code.lower(), str(exc), fdef.key, value=value)
        logger.info(
            "entity_created",
            extra={"kind": kind.value, "value": value, "entity_id": new_id, "taxonomy": scope.taxonomy},
        )
        return Ok(new_id)

    def _sideload(self, url: str, fdef: FieldDefinition) -> Outcome:
        try:
            attachment_id = self._repository.sideload(url)
        except SideloadError as exc:
            return Fail.of(exc.code.lower(), str(exc), fdef.key, value=url)
        logger.info("entity_sideloaded", extra={"url": url, "entity_id": attachment_id})
        return Ok(attachment_id)
