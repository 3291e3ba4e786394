"""
ticketflow_kernel.db.engine -- Engine and session management.

One process-wide engine, set up from the configured database URL by
``init_engine_from_url``; request handlers and scripts take sessions from
it through ``session_scope``.  Tests and the SLA monitor build their own
engine with ``build_engine`` and pass a session factory around instead.

SQLite is used for local runs and the test suite.  An in-memory SQLite
database lives on one shared connection (StaticPool) so every session of
the engine sees the same tables.  Other dialects get a pre-pinged
QueuePool at READ COMMITTED; the definition store takes its row locks
explicitly.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ticketflow_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

_POOL_DEFAULTS: dict[str, Any] = {
    "pool_size": 10,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """An engine for ``database_url``; pool options apply to server databases only."""
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(database_url):
            options["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **options)

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
        **{**_POOL_DEFAULTS, **pool_options},
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options: Any) -> Engine:
    """Install the process-wide engine, replacing (and disposing) any previous one."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url, echo=echo, **pool_options)
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "database": _engine.url.database},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized; call init_engine_from_url() first")
    return _engine


def get_session() -> Session:
    """A new session bound to the process-wide engine."""
    if _sessions is None:
        raise RuntimeError("Database engine not initialized; call init_engine_from_url() first")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error, always close.

    Usage::

        with session_scope() as session:
            WorkflowDefinitionService(session).create(document)
    """
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


def create_tables(engine: Engine | None = None) -> None:
    """Create the workflow, ticket and approval tables (existing ones are kept)."""
    from ticketflow_kernel.db.base import Base
    import ticketflow_kernel.models  # noqa: F401  (registers the tables)

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    from ticketflow_kernel.db.base import Base
    import ticketflow_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
