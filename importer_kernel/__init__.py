"""
Importer kernel: ambient core shared by every importer package.

Provides the typed exception hierarchy, structured JSON logging, the clock
abstraction, the tagged result DTOs used by the field pipeline, and the
SQLAlchemy base and engine helpers used by persistent stats stores.

Architecture position: leaf. The kernel imports nothing from
importer_ingestion, importer_config or importer_batch, except that
db.engine.create_tables loads the stats model to register its table.
"""

__version__ = "0.3.0"
