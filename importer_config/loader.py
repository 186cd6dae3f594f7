"""
Configuration loader (``importer_config.loader``).

Responsibility
--------------
Turns plain dicts (usually read from YAML page files) into
``FieldDefinition`` / ``OperationDefinition`` / ``ImporterPage`` objects,
applying the documented defaults and resolving callback references.

Shape
-----
::

    page_id: shop
    title: Shop Data
    operations:
      products_csv:
        type: import
        batch_size: 100
        process_callback: myapp.importers:import_product
        fields:
          sku: {label: SKU, required: true, unique: true}
          name: Product Name          # shorthand: label only
          price: {type: number, required: true, minimum: 0.01}

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Unknown field/operation keys, bad types, conflicting transforms ->
  ``FieldConfigurationError``.
* Unimportable callback reference -> ``CallbackResolutionError``.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any

import yaml

from importer_kernel.exceptions import CallbackResolutionError, FieldConfigurationError

from importer_config.schema import ImporterPage
from importer_ingestion.domain.types import FieldDefinition, OperationDefinition

_FIELD_KEYS = frozenset(f.name for f in dataclass_fields(FieldDefinition)) - {"key"}
_OPERATION_KEYS = frozenset({
    "title",
    "description",
    "type",
    "batch_size",
    "skip_empty_rows",
    "fields",
    "validate_callback",
    "process_callback",
    "before_import",
    "after_import",
    "data_callback",
})
_CALLBACK_KEYS = ("validate_callback", "process_callback", "before_import", "after_import", "data_callback")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def resolve_callback(reference: Any) -> Callable[..., Any] | None:
    """
    Resolve ``package.module:attribute`` (or ``package.module.attribute``)
    to the object it names. Callables and None pass through.
    """
    if reference is None or callable(reference):
        return reference
    if not isinstance(reference, str) or not reference.strip():
        raise CallbackResolutionError(str(reference), "expected 'module:attribute'")

    ref = reference.strip()
    if ":" in ref:
        module_name, _, attr_path = ref.partition(":")
    else:
        module_name, _, attr_path = ref.rpartition(".")
    if not module_name or not attr_path:
        raise CallbackResolutionError(ref, "expected 'module:attribute'")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise CallbackResolutionError(ref, str(exc)) from exc
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise CallbackResolutionError(ref, str(exc)) from exc
    if not callable(target):
        raise CallbackResolutionError(ref, "target is not callable")
    return target


def _number(key: str, name: str, value: Any) -> float | int | None:
    if value is None or isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        text = str(value).strip()
        return int(text) if text.lstrip("-").isdigit() else float(text)
    except ValueError:
        raise FieldConfigurationError(key, f"{name} must be a number, got {value!r}") from None


def compile_field(key: str, data: str | Mapping[str, Any] | None) -> FieldDefinition:
    """
    Build a FieldDefinition. A bare string is the label; defaults are type
    ``string``, not required, no default, label derived from the key.
    """
    if data is None:
        return FieldDefinition(key=key)
    if isinstance(data, str):
        return FieldDefinition(key=key, label=data)
    if not isinstance(data, Mapping):
        raise FieldConfigurationError(key, f"expected a mapping or a label, got {type(data).__name__}")

    unknown = set(data) - _FIELD_KEYS
    if unknown:
        raise FieldConfigurationError(key, f"unknown option(s): {', '.join(sorted(unknown))}")

    kwargs = dict(data)
    for name in ("minimum", "maximum"):
        if name in kwargs:
            kwargs[name] = _number(key, name, kwargs[name])
    for name in ("min_length", "max_length"):
        if kwargs.get(name) is not None:
            kwargs[name] = int(kwargs[name])
    if kwargs.get("options") is not None:
        options = kwargs["options"]
        if isinstance(options, Mapping):
            options = list(options)
        kwargs["options"] = tuple(options)
    for name in ("validate_callback", "process_callback"):
        if name in kwargs:
            kwargs[name] = resolve_callback(kwargs[name])
    return FieldDefinition(key=key, **kwargs)


def compile_operation(operation_id: str, data: Mapping[str, Any]) -> OperationDefinition:
    """Build an OperationDefinition from its dict form."""
    unknown = set(data) - _OPERATION_KEYS
    if unknown:
        raise FieldConfigurationError(operation_id, f"unknown option(s): {', '.join(sorted(unknown))}")

    fields = tuple(
        compile_field(key, fdata) for key, fdata in (data.get("fields") or {}).items()
    )
    callbacks = {name: resolve_callback(data.get(name)) for name in _CALLBACK_KEYS}
    return OperationDefinition(
        operation_id=operation_id,
        fields=fields,
        title=data.get("title") or "",
        description=data.get("description") or "",
        kind=data.get("type", "import"),
        batch_size=int(data.get("batch_size", 100)),
        skip_empty_rows=bool(data.get("skip_empty_rows", True)),
        **callbacks,
    )


def compile_page(data: Mapping[str, Any]) -> ImporterPage:
    """Build an ImporterPage; ``page_id`` is required."""
    try:
        page_id = data["page_id"]
    except KeyError:
        raise FieldConfigurationError("page_id", "page definition has no page_id") from None
    operations = {
        op_id: compile_operation(op_id, op_data or {})
        for op_id, op_data in (data.get("operations") or {}).items()
    }
    return ImporterPage(page_id=page_id, operations=operations, title=data.get("title") or "")


def load_page_file(path: Path | str) -> ImporterPage:
    return compile_page(load_yaml_file(Path(path)))


def load_pages(directory: Path | str) -> list[ImporterPage]:
    """Every ``*.yaml`` / ``*.yml`` page in ``directory``, sorted by file name."""
    root = Path(directory)
    paths = sorted([*root.glob("*.yaml"), *root.glob("*.yml")])
    return [load_page_file(p) for p in paths]
