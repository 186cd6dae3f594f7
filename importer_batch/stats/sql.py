"""
SQLAlchemy-backed StatsStore.

Contract:
    RunStatsModel persists one row per (page_id, operation_id) in
    ``import_run_stats`` with ``to_dto()`` / ``update_from_dto()`` methods.
    SqlStatsStore reads and writes it through a caller-owned Session; the
    caller commits (typically via ``session_scope()``).

Architecture: importer_batch/stats.  Imports from importer_kernel.db.base
    and importer_batch.domain only.

Invariants enforced:
    - (page_id, operation_id) is UNIQUE.
    - Rows past ``expires_at`` read as the default RunStats.
    - Datetimes read back naive (SQLite) are treated as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from importer_kernel.db.base import Base
from importer_kernel.domain.clock import Clock, SystemClock
from importer_kernel.logging_config import get_logger

from importer_ingestion.domain.types import RowError

from importer_batch.domain.types import STATS_TTL, RunStats, RunStatus

logger = get_logger("batch.stats")


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _error_to_json(error: RowError) -> dict[str, Any]:
    return {"row": error.row, "item": error.item, "message": error.message, "code": error.code}


def _error_from_json(data: dict[str, Any]) -> RowError:
    return RowError(
        row=int(data["row"]),
        item=str(data["item"]),
        message=str(data["message"]),
        code=data.get("code"),
    )


class RunStatsModel(Base):
    """Persistent RunStats record."""

    __tablename__ = "import_run_stats"

    __table_args__ = (
        UniqueConstraint("page_id", "operation_id", name="uq_import_run_stats_key"),
    )

    page_id: Mapped[str] = mapped_column(String(100), nullable=False)
    operation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    source_file: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cursor: Mapped[Any] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self) -> RunStats:
        return RunStats(
            total=self.total,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            failed=self.failed,
            errors=tuple(_error_from_json(e) for e in self.errors or ()),
            last_run=_aware(self.last_run),
            last_status=RunStatus(self.last_status) if self.last_status else None,
            source_file=self.source_file,
            cancel_requested=self.cancel_requested,
            cursor=self.cursor,
        )

    def update_from_dto(self, dto: RunStats, expires_at: datetime) -> None:
        self.total = dto.total
        self.created = dto.created
        self.updated = dto.updated
        self.skipped = dto.skipped
        self.failed = dto.failed
        self.errors = [_error_to_json(e) for e in dto.errors]
        self.last_run = dto.last_run
        self.last_status = dto.last_status.value if dto.last_status else None
        self.source_file = dto.source_file
        self.cancel_requested = dto.cancel_requested
        self.cursor = dto.cursor
        self.expires_at = expires_at


class SqlStatsStore:
    """StatsStore over a SQLAlchemy Session.  Does not commit."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ttl: timedelta = STATS_TTL,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ttl = ttl

    def _row(self, page_id: str, operation_id: str) -> RunStatsModel | None:
        return self._session.execute(
            select(RunStatsModel).where(
                RunStatsModel.page_id == page_id,
                RunStatsModel.operation_id == operation_id,
            )
        ).scalar_one_or_none()

    def get(self, page_id: str, operation_id: str) -> RunStats:
        row = self._row(page_id, operation_id)
        if row is None:
            return RunStats()
        if self._clock.has_passed(_aware(row.expires_at)):
            logger.debug(
                "stats_expired",
                extra={"page_id": page_id, "operation_id": operation_id},
            )
            self._session.delete(row)
            self._session.flush()
            return RunStats()
        return row.to_dto()

    def save(self, page_id: str, operation_id: str, stats: RunStats) -> None:
        row = self._row(page_id, operation_id)
        if row is None:
            row = RunStatsModel(page_id=page_id, operation_id=operation_id)
            self._session.add(row)
        row.update_from_dto(stats, self._clock.expires_at(self._ttl))
        self._session.flush()

    def clear(self, page_id: str, operation_id: str) -> None:
        row = self._row(page_id, operation_id)
        if row is not None:
            self._session.delete(row)
            self._session.flush()
