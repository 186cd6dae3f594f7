"""
Entity resolution: map human-readable values (titles, slugs, emails, URLs)
to opaque integer identifiers held by an external entity repository.
"""

from importer_ingestion.resolution.base import EntityRepository, EntityScope
from importer_ingestion.resolution.memory import InMemoryEntityRepository
from importer_ingestion.resolution.resolver import EntityResolver

__all__ = [
    "EntityRepository",
    "EntityResolver",
    "EntityScope",
    "InMemoryEntityRepository",
]
