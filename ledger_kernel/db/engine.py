"""
Module: ledger_kernel.db.engine
Responsibility: Build the ledger's Engine, hold the process-wide session
    factory, and give callers a commit-or-rollback unit of work.
Architecture position: Kernel > DB.  Imports db/base.py and, for table
    creation only, the models package.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; services take explicit row locks
      (FOR UPDATE / FOR SHARE) where they need more.
    - SQLite connections run with foreign keys on and an explicit BEGIN,
      so SAVEPOINTs and rollbacks behave as on PostgreSQL.
    - In-memory SQLite is refused: each pooled connection would open its
      own empty database.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
    - ValueError from create_ledger_engine for in-memory SQLite URLs.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _enable_sqlite_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite would otherwise open transactions lazily and skip SAVEPOINTs
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _is_memory_sqlite(url: str) -> bool:
    return ":memory:" in url or url.rstrip("/") == "sqlite:"


def create_ledger_engine(
    database_url: str,
    echo: bool = False,
    *,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """Build an Engine for ``database_url``.  Module state is not touched."""
    if database_url.startswith("sqlite"):
        if _is_memory_sqlite(database_url):
            raise ValueError("In-memory SQLite is not supported; use a file URL")
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": pool_timeout},
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        isolation_level="READ COMMITTED",
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
    )


def init_engine_from_url(database_url: str, echo: bool = False, **engine_options) -> Engine:
    """
    Install the process-wide engine and session factory.

    Calling it again disposes the previous engine first.  Extra keyword
    arguments go to create_ledger_engine().
    """
    global _engine, _session_factory

    reset_engine()
    _engine = create_ledger_engine(database_url, echo=echo, **engine_options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)


def _require_initialized() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def get_engine() -> Engine:
    _require_initialized()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The shared factory; threads each open their own session from it."""
    return _require_initialized()


def get_session() -> Session:
    return _require_initialized()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit when the block ends, roll back if it raises.

    Services only flush, so this is where their changes and the matching
    audit rows become durable together.

    Usage::

        with session_scope() as session:
            JournalService(session).post(entry_id, actor_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    import ledger_kernel.models  # noqa: F401  registers every table on Base.metadata

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every ledger table.  Tests and throwaway databases only."""
    _metadata().drop_all(engine or get_engine())
