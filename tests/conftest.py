"""
Pytest fixtures for the importer test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- Captured JSON log records
- DeterministicClock, in-memory entity/stats stores
- In-memory SQLite sessions for the SQL stats store
- CSV file writer
"""

import csv
import json
import logging
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path
from typing import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from importer_kernel.db.base import Base
from importer_kernel.domain.clock import DeterministicClock
from importer_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from importer_ingestion.resolution.memory import InMemoryEntityRepository

from importer_batch.stats.memory import InMemoryStatsStore
import importer_batch.stats.sql  # noqa: F401  registers RunStatsModel


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture importer logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.start_run("shop", "products")
            logs = captured_logs()
            assert any(r["message"] == "run_started" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("importers")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(
        fixed_time=datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def entity_repo() -> InMemoryEntityRepository:
    return InMemoryEntityRepository()


@pytest.fixture
def stats_store(clock) -> InMemoryStatsStore:
    return InMemoryStatsStore(clock)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite session for fast unit tests."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# =============================================================================
# File fixtures
# =============================================================================


@pytest.fixture
def write_csv(tmp_path) -> Callable[..., Path]:
    """Write rows (header first) to a CSV file under tmp_path."""

    def _write(rows: list[list[str]], name: str = "upload.csv", delimiter: str = ",") -> Path:
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as f:
            csv.writer(f, delimiter=delimiter).writerows(rows)
        return path

    return _write
