"""
DTOs -- Tagged results and validation errors for the field pipeline.

Responsibility:
    Every pipeline stage that can fail returns ``Ok(value)`` or
    ``Fail(error)`` instead of raising or overloading the return channel.
    ``ValidationError`` is the error payload: a machine code, a human
    message, the field key and optional structured details.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Results are immutable (frozen dataclasses).
    - ``freeze_row`` turns an assembled row into a read-only mapping whose
      list values are tuples, so row processors cannot mutate it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


def freeze_row(d: Mapping[str, Any]) -> MappingProxyType:
    """Read-only copy of ``d``: nested mappings become proxies, lists tuples."""
    return MappingProxyType({k: _freeze_value(v) for k, v in d.items()})


def _freeze_value(v: Any) -> Any:
    if isinstance(v, Mapping):
        return freeze_row(v)
    if isinstance(v, (list, tuple)):
        return tuple(_freeze_value(item) for item in v)
    return v


@dataclass(frozen=True)
class ValidationError:
    """Why one field or row was rejected.

    ``field`` is the field key when the failure belongs to a single column;
    row-level failures leave it unset.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful stage outcome carrying the (possibly transformed) value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Fail:
    """Failed stage outcome carrying the error that stopped the pipeline."""

    error: ValidationError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def code(self) -> str:
        return self.error.code

    @classmethod
    def of(
        cls,
        code: str,
        message: str,
        field: str | None = None,
        **details: Any,
    ) -> Fail:
        """Shorthand for ``Fail(ValidationError(...))``."""
        return cls(ValidationError(code, message, field, details or None))


Outcome = Union[Ok[Any], Fail]

