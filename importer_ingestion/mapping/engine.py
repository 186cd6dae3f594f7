"""
Row mapping and the per-field pipeline.

Pure transformation from a raw source row to a mapped row, and from a mapped
row to a processed (typed, validated, resolved) row. The only side effects
are the entity resolver's creates and sideloads in process mode.

Pipeline per field, later stages only after earlier ones pass:

    trim -> default -> transform -> split -> cast        (coercion)
    -> built-in validation -> field validate hook         (dry stops here)
    -> field process hook -> entity resolution            (process mode)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from importer_kernel.domain.dtos import Fail, Ok, Outcome, ValidationError, freeze_row
from importer_kernel.exceptions import ConfigurationError

from importer_ingestion.domain.types import FieldDefinition, RawRow
from importer_ingestion.domain.validators import validate_field
from importer_ingestion.mapping.coercion import coerce_value
from importer_ingestion.resolution.resolver import EntityResolver, not_found_code

IDENTIFIER_FIELDS: tuple[str, ...] = ("id", "sku", "email", "name", "title", "slug", "code")


# -----------------------------------------------------------------------------
# Row mapping (pure)
# -----------------------------------------------------------------------------


def _cell(raw: RawRow | Mapping[str, Any], column: str | None) -> Any:
    if not column:
        return None
    return raw.get(column)


def extract_cells(
    raw: RawRow | Mapping[str, Any],
    field_map: Mapping[str, str],
) -> dict[str, Any]:
    """Source cells for every mapped field, before defaults."""
    return {key: _cell(raw, column) for key, column in field_map.items()}


def map_row(
    raw: RawRow | Mapping[str, Any],
    field_map: Mapping[str, str],
    fields: Mapping[str, FieldDefinition],
) -> dict[str, Any]:
    """
    Produce a mapped row covering every declared field.

    Columns absent from the headers read as null. Null or empty cells, and
    unmapped fields, take the field default when one is configured.
    """
    cells = extract_cells(raw, field_map)
    mapped: dict[str, Any] = {}
    for key, fdef in fields.items():
        value = cells.get(key)
        if (value is None or value == "") and fdef.default is not None:
            value = fdef.default
        mapped[key] = value
    return mapped


def is_empty_row(row: Mapping[str, Any]) -> bool:
    """Every value is null or the empty string."""
    return all(v is None or v == "" for v in row.values())


def is_blank_row(mapped: Mapping[str, Any]) -> bool:
    """True when every value of a mapped row, defaults included, is blank.

    Whitespace-only strings count as blank.
    """
    return is_empty_row({k: v.strip() if isinstance(v, str) else v for k, v in mapped.items()})


def row_identifier(row: Mapping[str, Any]) -> str:
    """Best-effort human label for a row in error tables."""
    for key in IDENTIFIER_FIELDS:
        value = row.get(key)
        if value:
            return str(value)
    for value in row.values():
        if value:
            return str(value)
    return "Unknown"


# -----------------------------------------------------------------------------
# Hook results
# -----------------------------------------------------------------------------


def as_failure(result: Any, fdef_key: str | None, label: str) -> Fail | None:
    """Interpret a hook's return value: ``Fail``, ``ValidationError`` or ``False`` fail."""
    if isinstance(result, Fail):
        return result
    if isinstance(result, ValidationError):
        return Fail(result)
    if result is False:
        return Fail.of("invalid_value", f"{label} is invalid.", fdef_key)
    return None


# -----------------------------------------------------------------------------
# Field pipeline
# -----------------------------------------------------------------------------


class FieldPipeline:
    """
    Runs field values through coercion, validation, hooks and resolution.

    ``validate_*`` methods (dry mode) stop before the process hook and entity
    resolution, so they touch no external state. ``process_*`` methods run the
    full pipeline and need a resolver when entity fields are present.
    """

    def __init__(self, resolver: EntityResolver | None = None):
        self._resolver = resolver

    def _checked(self, value: Any, fdef: FieldDefinition, row: Mapping[str, Any]) -> Outcome:
        value = coerce_value(value, fdef)

        outcome = validate_field(value, fdef)
        if not outcome.is_ok:
            return outcome

        if fdef.validate_callback is not None:
            failure = as_failure(fdef.validate_callback(value, row), fdef.key, fdef.label)
            if failure is not None:
                return failure

        return Ok(value)

    def validate_field(
        self, value: Any, fdef: FieldDefinition, row: Mapping[str, Any] | None = None,
    ) -> Outcome:
        """Dry mode: coercion, validation and the validate hook only."""
        return self._checked(value, fdef, row if row is not None else {})

    def process_field(
        self, value: Any, fdef: FieldDefinition, row: Mapping[str, Any] | None = None,
    ) -> Outcome:
        """Live mode: the full pipeline, including entity resolution."""
        row = row if row is not None else {}
        outcome = self._checked(value, fdef, row)
        if not outcome.is_ok:
            return outcome
        value = outcome.value

        if fdef.process_callback is not None:
            result = fdef.process_callback(value, row)
            # False is a legitimate replacement value here, not a rejection
            if isinstance(result, (Fail, ValidationError)):
                return as_failure(result, fdef.key, fdef.label)
            value = result

        if fdef.is_entity:
            if self._resolver is None:
                raise ConfigurationError(
                    f"Field '{fdef.key}' is a {fdef.type.value} field but no entity repository is configured"
                )
            resolved = self._resolver.resolve(value, fdef)
            if not resolved.is_ok:
                if not fdef.required and resolved.code == not_found_code(fdef.type):
                    return Ok(None)
                return resolved
            value = resolved.value

        return Ok(value)

    def process_row(
        self, row: Mapping[str, Any], fields: Mapping[str, FieldDefinition],
    ) -> Outcome:
        """Process every field; ``Ok(read-only row)`` or the first field failure."""
        processed: dict[str, Any] = {}
        for key, fdef in fields.items():
            outcome = self.process_field(row.get(key), fdef, row)
            if not outcome.is_ok:
                return outcome
            processed[key] = outcome.value
        return Ok(freeze_row(processed))

    def validate_row(
        self, row: Mapping[str, Any], fields: Mapping[str, FieldDefinition],
    ) -> Outcome:
        """Dry counterpart of ``process_row``; values are coerced but unresolved."""
        checked: dict[str, Any] = {}
        for key, fdef in fields.items():
            outcome = self.validate_field(row.get(key), fdef, row)
            if not outcome.is_ok:
                return outcome
            checked[key] = outcome.value
        return Ok(freeze_row(checked))
