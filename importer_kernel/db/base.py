"""
Module: importer_kernel.db.base
Responsibility: Declarative base class for the importer ORM models.
Architecture position: Kernel > DB.  Lowest-level import target for models.
    MUST NOT import from importer_ingestion, importer_config or importer_batch.

Invariants enforced:
    - Integer surrogate primary keys; natural keys are unique constraints on
      the model.
    - datetime maps to DateTime(timezone=True); list/dict map to JSON.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import JSON, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all importer models.

    Guarantees:
        - ``id`` is an autoincrementing integer.
        - datetime annotations are timezone-aware columns.
        - list/dict annotations map to the generic JSON type, so SQLite and
          PostgreSQL both work.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: Integer,
        list: JSON,
        dict: JSON,
    }

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
