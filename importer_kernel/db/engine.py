"""
Module: importer_kernel.db.engine
Responsibility: Process-wide engine and session factory for the SQL-backed
    stats store, plus a commit-or-rollback session scope.
Architecture position: Kernel > DB.  create_tables() imports
    importer_batch.stats.sql lazily so the stats model is registered on
    Base.metadata before DDL runs.

Invariants enforced:
    - In-memory and file SQLite databases share one connection (StaticPool),
      so a ``sqlite://`` store survives across sessions.
    - Server databases get a pre-pinged connection pool.
    - Sessions do not expire attributes on commit; stats DTOs built after a
      commit do not trigger reloads.

Failure modes:
    - RuntimeError from get_engine/get_session before init_engine_from_url().
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from importer_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def _engine_options(url: str, *, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
    }


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """Create the engine for ``database_url`` and replace any previous one.

    Pool sizing only applies to server databases; SQLite always uses a
    single shared connection.
    """
    global _engine, _sessions

    reset_engine()
    _engine = create_engine(
        database_url,
        echo=echo,
        **_engine_options(database_url, pool_size=pool_size, max_overflow=max_overflow),
    )
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _sessions is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first.")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from importer_kernel.db.base import Base
    import importer_batch.stats.sql  # noqa: F401  registers RunStatsModel

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every importer table (tests)."""
    from importer_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the current engine, if any, and forget the session factory."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None
