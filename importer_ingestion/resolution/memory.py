"""In-memory entity repository for tests and local runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from itertools import count
from posixpath import basename
from typing import Any
from urllib.parse import urlsplit

from importer_kernel.exceptions import (
    EntityCreateError,
    EntityExistsError,
    SideloadError,
)

from importer_ingestion.domain.types import FieldType
from importer_ingestion.resolution.base import EntityScope
from importer_ingestion.resolution.strategies import slugify


@dataclass
class _Entity:
    id: int
    kind: FieldType
    attrs: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)


class InMemoryEntityRepository:
    """
    Dict-backed EntityRepository.

    ``add`` seeds entities; ``fail_creates`` and ``fail_sideloads`` make
    the corresponding backend calls raise. ``racing`` maps names to ids
    that a concurrent writer created first: create raises
    EntityExistsError carrying that id.
    """

    def __init__(self) -> None:
        self._ids = count(1)
        self._entities: list[_Entity] = []
        self.created: list[tuple[FieldType, str]] = []
        self.sideloaded: list[str] = []
        self.fail_creates: set[str] = set()
        self.fail_sideloads: set[str] = set()
        self.racing: dict[str, int] = {}

    def add(
        self,
        kind: FieldType | str,
        *,
        meta: Mapping[str, Any] | None = None,
        **attrs: Any,
    ) -> int:
        kind = FieldType(kind)
        entity_id = attrs.pop("id", None) or next(self._ids)
        if "slug" not in attrs:
            source = attrs.get("title") or attrs.get("name") or attrs.get("login")
            if source:
                attrs["slug"] = slugify(source)
        if "url" in attrs and "filename" not in attrs:
            attrs["filename"] = basename(urlsplit(attrs["url"]).path)
        self._entities.append(_Entity(entity_id, kind, dict(attrs), dict(meta or {})))
        return entity_id

    def _in_scope(self, entity: _Entity, scope: EntityScope) -> bool:
        if entity.kind == FieldType.TERM:
            return entity.attrs.get("taxonomy", "category") == scope.taxonomy
        if entity.kind == FieldType.POST:
            if entity.attrs.get("post_type", "post") != scope.post_type:
                return False
            return scope.post_status == "any" or entity.attrs.get("status", "publish") == scope.post_status
        return True

    def _matches(self, entity: _Entity, attribute: str, value: Any, scope: EntityScope) -> bool:
        if attribute == "id":
            return entity.id == value
        if attribute == "meta":
            return scope.meta_key is not None and str(entity.meta.get(scope.meta_key)) == str(value)
        current = entity.attrs.get(attribute)
        if current is None:
            return False
        if attribute == "email":
            return str(current).lower() == str(value).lower()
        if attribute == "filename":
            return str(current).endswith(str(value))
        return current == value

    def find_by(
        self,
        kind: FieldType,
        attribute: str,
        value: Any,
        scope: EntityScope,
    ) -> int | None:
        for entity in self._entities:
            if entity.kind != kind or not self._in_scope(entity, scope):
                continue
            if self._matches(entity, attribute, value, scope):
                return entity.id
        return None

    def create(self, kind: FieldType, value: str, scope: EntityScope) -> int:
        if value in self.fail_creates:
            raise EntityCreateError(kind.value, value, "backend refused")
        if value in self.racing:
            raise EntityExistsError(kind.value, value, self.racing[value])
        new_id = self.add(kind, name=value, taxonomy=scope.taxonomy)
        self.created.append((kind, value))
        return new_id

    def sideload(self, url: str) -> int:
        if url in self.fail_sideloads:
            raise SideloadError(url, "download failed")
        new_id = self.add(FieldType.ATTACHMENT, url=url)
        self.sideloaded.append(url)
        return new_id
