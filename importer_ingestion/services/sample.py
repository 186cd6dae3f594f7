"""
Sample file generation: one header row of field labels plus one example row.

Example value precedence: explicit default, first option, a type-specific
canned example, a key-name heuristic, then the literal ``Example``.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping
from typing import Any

from importer_ingestion.domain.types import FieldDefinition, FieldType

_EXAMPLE_URL = "https://example.com/image.jpg"
_EXAMPLE_EMAIL = "user@example.com"

# (type, match_by that yields a human example, that example)
_ENTITY_EXAMPLES: Mapping[FieldType, tuple[str, str]] = {
    FieldType.POST: ("title", "My Post Title"),
    FieldType.TERM: ("name", "Category Name"),
    FieldType.USER: ("email", _EXAMPLE_EMAIL),
    FieldType.ATTACHMENT: ("url", _EXAMPLE_URL),
}

_KEY_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("name",), "Example Name"),
    (("description",), "A brief description of the item."),
    (("email",), _EXAMPLE_EMAIL),
    (("url", "image"), _EXAMPLE_URL),
    (("price", "amount"), "9.99"),
)


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def example_value(fdef: FieldDefinition) -> str:
    """Plausible cell text for ``fdef``."""
    if fdef.default is not None and fdef.default != "":
        return _text(fdef.default)

    if fdef.options:
        return _text(fdef.options[0])

    ftype = fdef.type
    if ftype == FieldType.NUMBER:
        return _text(fdef.minimum) if fdef.minimum is not None else "9.99"
    if ftype == FieldType.INTEGER:
        return _text(fdef.minimum) if fdef.minimum is not None else "1"
    if ftype == FieldType.BOOLEAN:
        return "true"
    if ftype == FieldType.EMAIL:
        return _EXAMPLE_EMAIL
    if ftype == FieldType.URL:
        return _EXAMPLE_URL
    if ftype == FieldType.CURRENCY:
        return "USD"
    if ftype in _ENTITY_EXAMPLES:
        match_by, example = _ENTITY_EXAMPLES[ftype]
        return example if fdef.match_by == match_by else "1"

    key = fdef.key.lower()
    for needles, example in _KEY_HINTS:
        if any(n in key for n in needles):
            return example

    return "Example"


def generate_sample(fields: Mapping[str, FieldDefinition] | Iterable[FieldDefinition]) -> str:
    """CSV text with a label header row and one example row."""
    defs = list(fields.values()) if isinstance(fields, Mapping) else list(fields)
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow([f.label for f in defs])
    writer.writerow([example_value(f) for f in defs])
    return out.getvalue()


def sample_filename(operation_id: str) -> str:
    return f"{operation_id}-sample.csv"
