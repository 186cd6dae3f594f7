"""
Match strategies and the per-kind cascade table.

The identifier cascade is data: reordering priority or adding an entity
kind is an edit to ``CASCADES``, not to the resolver.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from importer_ingestion.domain.types import IDENTIFIER, FieldDefinition, FieldType
from importer_ingestion.domain.validators import is_email, is_url

_ID_RE = re.compile(r"^[0-9]+$")


def slugify(value: str) -> str:
    """Lower-case ASCII slug: ``"Blue Shirts!"`` -> ``"blue-shirts"``."""
    text = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^\w\s-]", "", text.lower())
    return re.sub(r"[\s_-]+", "-", text).strip("-")


def _always(value: Any) -> bool:
    return True


def _looks_like_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    return bool(_ID_RE.match(str(value).strip()))


@dataclass(frozen=True)
class MatchStrategy:
    """One way of finding an entity: a lookup attribute plus guards."""

    name: str
    attribute: str
    accepts: Callable[[Any], bool] = _always
    normalize: Callable[[Any], Any] = str

    def lookup_value(self, value: Any) -> Any:
        return self.normalize(value)


BY_ID = MatchStrategy("id", "id", _looks_like_id, lambda v: int(str(v).strip()))
BY_SLUG = MatchStrategy("slug", "slug", normalize=lambda v: slugify(str(v)))
BY_TITLE = MatchStrategy("title", "title")
BY_NAME = MatchStrategy("name", "name")
BY_EMAIL = MatchStrategy("email", "email", is_email)
BY_LOGIN = MatchStrategy("login", "login")
BY_URL = MatchStrategy("url", "url", is_url)
BY_FILENAME = MatchStrategy("filename", "filename")
BY_META = MatchStrategy("meta", "meta")


# Ordered identifier cascades. Meta matching needs a meta_key, so it is
# only reachable by naming it explicitly.
CASCADES: Mapping[FieldType, tuple[MatchStrategy, ...]] = MappingProxyType({
    FieldType.POST: (BY_ID, BY_SLUG, BY_TITLE),
    FieldType.TERM: (BY_ID, BY_SLUG, BY_NAME),
    FieldType.USER: (BY_ID, BY_EMAIL, BY_LOGIN, BY_SLUG),
    FieldType.ATTACHMENT: (BY_ID, BY_URL, BY_FILENAME),
})

EXPLICIT: Mapping[FieldType, Mapping[str, MatchStrategy]] = MappingProxyType({
    FieldType.POST: MappingProxyType(
        {s.name: s for s in (BY_ID, BY_SLUG, BY_TITLE, BY_META)}
    ),
    FieldType.TERM: MappingProxyType({s.name: s for s in CASCADES[FieldType.TERM]}),
    FieldType.USER: MappingProxyType({s.name: s for s in CASCADES[FieldType.USER]}),
    FieldType.ATTACHMENT: MappingProxyType(
        {s.name: s for s in CASCADES[FieldType.ATTACHMENT]}
    ),
})


def strategies_for(fdef: FieldDefinition) -> tuple[MatchStrategy, ...]:
    """The cascade for ``identifier`` mode, else the single named strategy."""
    if fdef.match_by == IDENTIFIER:
        return CASCADES[fdef.type]
    return (EXPLICIT[fdef.type][fdef.match_by],)
