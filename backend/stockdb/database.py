# backend/stockdb/database.py
"""
Database configuration for stockdb.

Key goals:
- One engine + session factory per application, built from `Settings`
  and kept on `app.state` (no module-level engine).
- Sensible connection pooling for PostgreSQL.
- SQLite (dev / tests) gets real transactions: BEGIN IMMEDIATE on every
  transaction so SAVEPOINT and writer serialisation behave.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from stockdb.config import Settings

# Declarative base for all models
Base = declarative_base()

SQLITE_BUSY_TIMEOUT_SEC = 30

# Execution options for sessions that write the ledger. On SQLite the
# transaction takes the write lock up front (BEGIN IMMEDIATE); reads use a
# plain BEGIN. Other backends ignore the option.
WRITE_TRANSACTION = {"stockdb_write": True}


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return url in {"sqlite://", "sqlite+pysqlite://"} or ":memory:" in url


def _install_sqlite_transactions(engine: Engine, *, wal: bool) -> None:
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # noqa: ARG001
        # pysqlite otherwise defers BEGIN and breaks SAVEPOINT.
        dbapi_connection.isolation_level = None
        if wal:
            # readers no longer block the writer
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get("stockdb_write"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_db_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if _is_sqlite(url):
        kwargs = {
            "connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SEC},
            "echo": settings.database_echo,
        }
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_transactions(engine, wal=not _is_memory_sqlite(url))
        return engine

    return create_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=True,                # detect dead connections
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def create_db_and_tables(engine: Engine) -> None:
    # Register every model on Base.metadata before create_all.
    from stockdb.apps.catalog import models as catalog_models  # noqa: F401
    from stockdb.apps.inventory import models as inventory_models  # noqa: F401

    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """Commit on success, roll back on error. Used by scripts and the engine."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# -------------------------------------------------------------------
# DEPENDENCIES (for FastAPI)
# -------------------------------------------------------------------

def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency for read-only endpoints and reference-data lookups.

    Ledger writes never go through this session; they go through the
    LedgerEngine, which owns its transactions.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_write_db(request: Request) -> Iterator[Session]:
    """Dependency for catalog writes; the transaction starts as a writer."""
    db = request.app.state.session_factory()
    try:
        db.connection(execution_options=WRITE_TRANSACTION)
        yield db
    finally:
        db.close()
