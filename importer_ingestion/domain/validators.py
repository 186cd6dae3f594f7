"""
Field rule validation and cross-row duplicate detection.

Record-level: ``validate_field`` judges one coerced value against its
field's declared constraints and never mutates it. Cross-record:
``check_duplicates`` scans a whole dataset for repeated unique values.

Architecture: importer_ingestion/domain. ZERO I/O. Imports only from
importer_kernel and this package's domain.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from importer_kernel.domain.dtos import Fail, Ok, Outcome

from importer_ingestion.domain.currency import CurrencyRegistry
from importer_ingestion.domain.patterns import compile_pattern
from importer_ingestion.domain.types import FieldDefinition, FieldType, RowError

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_DIGITS_RE = re.compile(r"^[0-9]+$")
_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)+$"
)
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")


# -----------------------------------------------------------------------------
# Value predicates
# -----------------------------------------------------------------------------


def is_empty(value: Any) -> bool:
    """Null, empty string, or empty list."""
    return value is None or value == "" or (isinstance(value, (list, tuple)) and not value)


def is_numeric(value: Any) -> bool:
    """True for ints/floats (not bools) and numeric strings like ``-1.5e3``."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_NUMERIC_RE.match(value))


def is_integer_like(value: Any) -> bool:
    """An int, or a token made of digits after any leading minus signs."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return bool(_DIGITS_RE.match(str(value).lstrip("-")))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and len(value) >= 6 and bool(_EMAIL_RE.match(value))


def is_url(value: Any) -> bool:
    """Absolute URL with a scheme and a host."""
    if not isinstance(value, str) or not value or any(c.isspace() for c in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and _SCHEME_RE.match(parts.scheme) and parts.hostname)


def _fmt(bound: Any) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)


# -----------------------------------------------------------------------------
# Field validation
# -----------------------------------------------------------------------------


def _format_failure(value: Any, fdef: FieldDefinition) -> Fail | None:
    label = fdef.label
    ftype = fdef.type
    if ftype == FieldType.NUMBER and not is_numeric(value):
        return Fail.of("invalid_number", f"{label} must be a valid number.", fdef.key)
    if ftype == FieldType.INTEGER and not is_integer_like(value):
        return Fail.of("invalid_integer", f"{label} must be a whole number.", fdef.key)
    if ftype == FieldType.EMAIL and not is_email(value):
        return Fail.of("invalid_email", f"{label} must be a valid email address.", fdef.key)
    if ftype == FieldType.URL and not is_url(value):
        return Fail.of("invalid_url", f"{label} must be a valid URL.", fdef.key)
    if ftype == FieldType.CURRENCY and not CurrencyRegistry.is_valid(str(value)):
        return Fail.of(
            "invalid_currency",
            f"{label} must be a valid ISO 4217 currency code (e.g., USD, EUR, GBP).",
            fdef.key,
        )
    return None


def validate_field(value: Any, fdef: FieldDefinition) -> Outcome:
    """
    Judge a coerced value against ``fdef``. Short-circuits on first failure.

    Order: required, empty-optional pass, type format, range, length,
    options, pattern. Returns ``Ok(value)`` unchanged on success.
    """
    label = fdef.label

    if fdef.required and is_empty(value):
        return Fail.of("required_field", f"{label} is required.", fdef.key)

    if value is None or value == "":
        return Ok(value)

    items = list(value) if isinstance(value, (list, tuple)) else [value]
    for item in items:
        failure = _format_failure(item, fdef)
        if failure is not None:
            return failure

    if fdef.is_entity:
        return Ok(value)

    if fdef.minimum is not None and is_numeric(value):
        if float(value) < float(fdef.minimum):
            return Fail.of(
                "below_minimum",
                f"{label} must be at least {_fmt(fdef.minimum)}.",
                fdef.key,
                minimum=fdef.minimum,
            )

    if fdef.maximum is not None and is_numeric(value):
        if float(value) > float(fdef.maximum):
            return Fail.of(
                "above_maximum",
                f"{label} must be no more than {_fmt(fdef.maximum)}.",
                fdef.key,
                maximum=fdef.maximum,
            )

    if fdef.min_length is not None and isinstance(value, str):
        if len(value) < fdef.min_length:
            return Fail.of(
                "too_short",
                f"{label} must be at least {fdef.min_length} characters.",
                fdef.key,
            )

    if fdef.max_length is not None and isinstance(value, str):
        if len(value) > fdef.max_length:
            return Fail.of(
                "too_long",
                f"{label} must be no more than {fdef.max_length} characters.",
                fdef.key,
            )

    if fdef.options is not None:
        for item in items:
            if item not in fdef.options:
                allowed = ", ".join(str(o) for o in fdef.options)
                return Fail.of(
                    "invalid_option",
                    f"{label} must be one of: {allowed}.",
                    fdef.key,
                    value=item,
                )

    if fdef.pattern and isinstance(value, str):
        if not compile_pattern(fdef.pattern).search(value):
            return Fail.of("invalid_pattern", f"{label} format is invalid.", fdef.key)

    return Ok(value)


# -----------------------------------------------------------------------------
# Cross-record validator (whole dataset)
# -----------------------------------------------------------------------------


def check_duplicates(
    rows: Iterable[Mapping[str, Any]],
    fields: Mapping[str, FieldDefinition] | Iterable[FieldDefinition],
    first_row_number: int = 1,
) -> list[RowError]:
    """
    Flag rows whose unique-marked field repeats an earlier value.

    Single pass; values are compared after trimming and blanks are never
    flagged. Errors are in append order. ``first_row_number`` is the number
    given to the first row (2 when a header line precedes the data).
    """
    defs = list(fields.values()) if isinstance(fields, Mapping) else list(fields)
    unique = [f for f in defs if f.unique]
    if not unique:
        return []

    seen: dict[str, dict[str, int]] = {f.key: {} for f in unique}
    errors: list[RowError] = []

    for row_number, row in enumerate(rows, start=first_row_number):
        for fdef in unique:
            raw = row.get(fdef.key)
            value = "" if raw is None else str(raw).strip()
            if not value:
                continue
            first = seen[fdef.key].get(value)
            if first is not None:
                errors.append(
                    RowError(
                        row=row_number,
                        item=value,
                        message=f'Duplicate {fdef.label} "{value}" (first seen on row {first}).',
                        code="duplicate_value",
                    )
                )
            else:
                seen[fdef.key][value] = row_number

    return errors
