"""
Entity repository protocol.

Contract:
    The resolver decides *how* to look things up (which attributes, in which
    order, when to create). A repository only answers "find entity of kind X
    whose attribute Y equals value V within scope S" and performs creates.

    Repositories signal backend failures by raising EntityError subclasses:
    EntityExistsError (a concurrent create won; carries existing_id),
    EntityCreateError, SideloadError. They never return error sentinels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from importer_ingestion.domain.types import FieldDefinition, FieldType


@dataclass(frozen=True)
class EntityScope:
    """Where to look: taxonomy for terms, post type/status for posts."""

    taxonomy: str = "category"
    post_type: str = "post"
    post_status: str = "any"
    meta_key: str | None = None

    @classmethod
    def from_field(cls, fdef: FieldDefinition) -> EntityScope:
        return cls(
            taxonomy=fdef.taxonomy,
            post_type=fdef.post_type,
            post_status=fdef.post_status,
            meta_key=fdef.meta_key,
        )


@runtime_checkable
class EntityRepository(Protocol):
    """Lookup/create records of an entity kind by an attribute."""

    def find_by(
        self,
        kind: FieldType,
        attribute: str,
        value: object,
        scope: EntityScope,
    ) -> int | None:
        """Identifier of the first match, or None."""
        ...

    def create(self, kind: FieldType, value: str, scope: EntityScope) -> int:
        """
        Create an entity named ``value``.

        Raises:
            EntityExistsError: The entity already exists (returns its id).
            EntityCreateError: The backend refused.
        """
        ...

    def sideload(self, url: str) -> int:
        """
        Fetch remote media into storage and return the new attachment id.

        Raises:
            SideloadError: The media could not be fetched.
        """
        ...
