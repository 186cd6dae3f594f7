"""
importer_ingestion.domain.types -- Pure frozen dataclasses for operations.

ZERO I/O. Imports only from importer_kernel and domain.patterns.

Field and operation definitions are validated when they are constructed so
that configuration mistakes surface before any row is read.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

from importer_kernel.exceptions import (
    FieldConfigurationError,
    MissingMetaKeyError,
)

from importer_ingestion.domain.patterns import compile_pattern


# =============================================================================
# Field types
# =============================================================================


class FieldType(str, Enum):
    """Declared type of a field; selects casting, format checks and resolution."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    URL = "url"
    EMAIL = "email"
    CURRENCY = "currency"
    POST = "post"
    TERM = "term"
    USER = "user"
    ATTACHMENT = "attachment"

    @property
    def is_entity(self) -> bool:
        return self in ENTITY_TYPES


SCALAR_TYPES: frozenset[FieldType] = frozenset({
    FieldType.STRING,
    FieldType.NUMBER,
    FieldType.INTEGER,
    FieldType.BOOLEAN,
    FieldType.URL,
    FieldType.EMAIL,
    FieldType.CURRENCY,
})

ENTITY_TYPES: frozenset[FieldType] = frozenset({
    FieldType.POST,
    FieldType.TERM,
    FieldType.USER,
    FieldType.ATTACHMENT,
})

IDENTIFIER = "identifier"

# Accepted match_by values per entity type ("identifier" cascades).
MATCH_BY_CHOICES: Mapping[FieldType, frozenset[str]] = MappingProxyType({
    FieldType.POST: frozenset({IDENTIFIER, "id", "slug", "title", "meta"}),
    FieldType.TERM: frozenset({IDENTIFIER, "id", "slug", "name"}),
    FieldType.USER: frozenset({IDENTIFIER, "id", "email", "login", "slug"}),
    FieldType.ATTACHMENT: frozenset({IDENTIFIER, "id", "url", "filename"}),
})


def label_from_key(key: str) -> str:
    """``product_name`` -> ``Product name``."""
    text = key.replace("_", " ").replace("-", " ")
    return text[:1].upper() + text[1:]


# =============================================================================
# Capability interfaces implemented by the host application
# =============================================================================


@runtime_checkable
class FieldHook(Protocol):
    """Per-field validate/process hook: a pure function of value and row.

    A validate hook fails by returning ``False``, a ``Fail`` or a
    ``ValidationError``; anything else passes. A process hook returns the
    replacement value, or a ``Fail``/``ValidationError`` to reject it.
    """

    def __call__(self, value: Any, row: Mapping[str, Any]) -> Any: ...


@runtime_checkable
class RowValidator(Protocol):
    """Operation-level check of a fully processed row."""

    def __call__(self, row: Mapping[str, Any]) -> Any: ...


@runtime_checkable
class RowProcessor(Protocol):
    """Persists one processed row.

    Returns ``"created"``, ``"updated"`` or ``"skipped"``; any other
    non-failure value counts as created. Returning a ``Fail`` or
    ``ValidationError`` (or raising) marks the row failed.
    """

    def __call__(self, row: Mapping[str, Any]) -> Any: ...


@runtime_checkable
class LifecycleHook(Protocol):
    """before_import / after_import hook receiving the run context."""

    def __call__(self, context: RunContext) -> Any: ...


@runtime_checkable
class DataSource(Protocol):
    """Pulls one page of records for a sync operation."""

    def __call__(self, cursor: Any, batch_size: int) -> SyncPage | Mapping[str, Any]: ...


# =============================================================================
# Definitions
# =============================================================================


@dataclass(frozen=True)
class FieldDefinition:
    """
    Static, author-supplied description of one field.

    Contract:
        ``type`` selects which constraints are meaningful: scalar constraints
        (minimum, maximum, lengths, options, pattern) are ignored for entity
        types and the resolution options are ignored for scalar types.

    Raises:
        FieldConfigurationError: unknown type, both case transforms set,
            match_by not valid for the entity type, bad numeric bounds.
        MissingMetaKeyError: post field with match_by="meta" and no meta_key.
    """

    key: str
    label: str = ""
    type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None
    group: str | None = None
    uppercase: bool = False
    lowercase: bool = False
    separator: str | None = None
    minimum: float | int | None = None
    maximum: float | int | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    options: tuple[Any, ...] | None = None
    unique: bool = False
    match_by: str = IDENTIFIER
    create: bool = False
    taxonomy: str = "category"
    post_type: str = "post"
    post_status: str = "any"
    meta_key: str | None = None
    sideload: bool = False
    validate_callback: FieldHook | None = None
    process_callback: FieldHook | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise FieldConfigurationError("", "field key must not be empty")
        if not isinstance(self.type, FieldType):
            try:
                object.__setattr__(self, "type", FieldType(self.type))
            except ValueError:
                raise FieldConfigurationError(
                    self.key, f"unknown type '{self.type}'"
                ) from None
        if not self.label:
            object.__setattr__(self, "label", label_from_key(self.key))
        if self.options is not None and not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))
        if self.uppercase and self.lowercase:
            raise FieldConfigurationError(
                self.key, "uppercase and lowercase cannot both be set"
            )
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise FieldConfigurationError(
                self.key, "minimum is greater than maximum"
            )
        if self.pattern:
            try:
                compile_pattern(self.pattern)
            except re.error as exc:
                raise FieldConfigurationError(
                    self.key, f"invalid pattern: {exc}"
                ) from None
        if self.type.is_entity:
            if self.match_by not in MATCH_BY_CHOICES[self.type]:
                raise FieldConfigurationError(
                    self.key,
                    f"match_by '{self.match_by}' is not valid for {self.type.value} fields",
                )
            if self.match_by == "meta" and not self.meta_key:
                raise MissingMetaKeyError(self.key)

    @property
    def is_entity(self) -> bool:
        return self.type.is_entity


@dataclass(frozen=True)
class OperationDefinition:
    """
    A named import (or sync) task.

    ``fields`` preserves declaration order; it is exposed as a read-only
    mapping keyed by field key.
    """

    operation_id: str
    fields: Mapping[str, FieldDefinition]
    title: str = ""
    description: str = ""
    kind: str = "import"
    batch_size: int = 100
    skip_empty_rows: bool = True
    validate_callback: RowValidator | None = None
    process_callback: RowProcessor | None = None
    before_import: LifecycleHook | None = None
    after_import: LifecycleHook | None = None
    data_callback: DataSource | None = None

    def __post_init__(self) -> None:
        fields = self.fields
        if isinstance(fields, Sequence):
            fields = {f.key: f for f in fields}
        for key, fdef in fields.items():
            if key != fdef.key:
                raise FieldConfigurationError(
                    key, f"registered under '{key}' but defines key '{fdef.key}'"
                )
        object.__setattr__(self, "fields", MappingProxyType(dict(fields)))
        if self.kind not in ("import", "sync"):
            raise FieldConfigurationError(
                self.operation_id, f"unknown operation type '{self.kind}'"
            )
        if self.batch_size <= 0:
            raise FieldConfigurationError(
                self.operation_id, "batch_size must be positive"
            )
        if not self.title:
            object.__setattr__(self, "title", label_from_key(self.operation_id))

    @property
    def unique_fields(self) -> tuple[FieldDefinition, ...]:
        return tuple(f for f in self.fields.values() if f.unique)


# =============================================================================
# Rows
# =============================================================================


@dataclass(frozen=True)
class RawRow:
    """One source line: ordered cells paired with the header sequence."""

    headers: tuple[str, ...]
    cells: tuple[Any, ...]

    @classmethod
    def from_cells(cls, headers: Sequence[str], cells: Sequence[Any]) -> RawRow:
        return cls(tuple(headers), tuple(cells))

    def get(self, column: str) -> Any:
        """Cell under ``column``, or None when absent or the row is short."""
        try:
            idx = self.headers.index(column)
        except ValueError:
            return None
        return self.cells[idx] if idx < len(self.cells) else None

    def as_dict(self) -> dict[str, Any]:
        return {h: self.get(h) for h in self.headers}


@dataclass(frozen=True)
class RunContext:
    """What lifecycle hooks see about the run they belong to."""

    page_id: str
    operation_id: str
    source_file: str | None = None
    total: int = 0
    stats: Any = None


@dataclass(frozen=True)
class SyncPage:
    """One page pulled by a sync operation's data callback."""

    items: tuple[Mapping[str, Any], ...] = ()
    has_more: bool = False
    cursor: Any = None
    total: int | None = None

    @classmethod
    def from_value(cls, value: SyncPage | Mapping[str, Any]) -> SyncPage:
        if isinstance(value, SyncPage):
            return value
        return cls(
            items=tuple(value.get("items") or ()),
            has_more=bool(value.get("has_more", False)),
            cursor=value.get("cursor"),
            total=value.get("total"),
        )


@dataclass(frozen=True)
class RowError:
    """A row-scoped error record: line number, item identifier, message."""

    row: int
    item: str
    message: str
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "item": self.item, "message": self.message}


@dataclass(frozen=True)
class DryRunReport:
    """Outcome of validating a whole dataset without side effects."""

    total_rows: int
    valid_rows: int
    skipped_rows: int
    error_count: int
    errors: tuple[RowError, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "skipped_rows": self.skipped_rows,
            "error_count": self.error_count,
            "errors": [e.to_dict() for e in self.errors],
        }
