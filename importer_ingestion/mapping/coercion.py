"""
Value coercion: turn a raw cell into a normalized scalar or list without
judging validity. Pure functions, ZERO I/O.

Stages, in order: trim, default substitution, case transform, separator
split, type cast. ``coerce_value`` runs all five.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from importer_ingestion.domain.types import SCALAR_TYPES, FieldDefinition, FieldType
from importer_ingestion.domain.validators import is_numeric

_NUMBER_STRIP = ("$", "€", "£", ",", " ")
_INTEGER_STRIP = (",", " ")
_TRUTHY = frozenset({"1", "true", "yes", "on", "y"})


# -----------------------------------------------------------------------------
# Stages
# -----------------------------------------------------------------------------


def trim(value: Any) -> Any:
    """Strip surrounding whitespace from strings; other values pass through."""
    return value.strip() if isinstance(value, str) else value


def apply_default(value: Any, fdef: FieldDefinition) -> Any:
    """Substitute the configured default for a null or empty value."""
    if (value is None or value == "") and fdef.default is not None:
        return fdef.default
    return value


def apply_transforms(value: Any, fdef: FieldDefinition) -> Any:
    """Upper/lower-case non-empty strings."""
    if not isinstance(value, str) or value == "":
        return value
    if fdef.uppercase:
        value = value.upper()
    if fdef.lowercase:
        value = value.lower()
    return value


def split_value(value: str, separator: str) -> list[str]:
    """
    Split ``value`` into trimmed, non-empty pieces.

    A multi-character separator is a set of candidate delimiters: the first
    candidate present in ``value`` is used, else the whole separator string.
    """
    sep = separator
    if len(separator) > 1:
        for candidate in separator:
            if candidate in value:
                sep = candidate
                break
    return [piece for piece in (p.strip() for p in value.split(sep)) if piece]


def _strip_chars(text: str, chars: tuple[str, ...]) -> str:
    for ch in chars:
        text = text.replace(ch, "")
    return text


def cast_type(value: Any, field_type: FieldType) -> Any:
    """
    Cast a scalar to ``field_type``.

    Null and empty string pass through. Number and integer casts leave the
    original value unchanged when the cleaned text is not numeric.
    """
    if value is None or value == "":
        return value

    if field_type == FieldType.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        cleaned = _strip_chars(str(value), _NUMBER_STRIP)
        return float(cleaned) if is_numeric(cleaned) else value

    if field_type == FieldType.INTEGER:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        cleaned = _strip_chars(str(value), _INTEGER_STRIP)
        if not is_numeric(cleaned):
            return value
        try:
            return int(Decimal(cleaned.strip()))
        except (InvalidOperation, ValueError, OverflowError):
            return value

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUTHY

    if field_type == FieldType.CURRENCY:
        return str(value).strip().upper()

    if field_type in (FieldType.STRING, FieldType.URL, FieldType.EMAIL):
        return value if isinstance(value, str) else str(value)

    return value


# -----------------------------------------------------------------------------
# Composite
# -----------------------------------------------------------------------------


def coerce_value(value: Any, fdef: FieldDefinition) -> Any:
    """Run trim, default, transform, split and cast for one field."""
    value = trim(value)
    value = apply_default(value, fdef)
    value = apply_transforms(value, fdef)
    if fdef.separator and isinstance(value, str) and value != "":
        value = split_value(value, fdef.separator)
    if fdef.type in SCALAR_TYPES and not isinstance(value, (list, tuple)):
        value = cast_type(value, fdef.type)
    return value
