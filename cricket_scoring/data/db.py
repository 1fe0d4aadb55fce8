"""Database engine and session management utilities.

This module provides centralized database connection management including
engine creation, session handling, and database initialization. SQLite is the
default backend; setting DATABASE_URL points the engine at a hosted database.

Example:
    >>> from cricket_scoring.data.db import session_scope, init_db
    >>> init_db()  # Create all tables
    >>> with session_scope() as session:
    ...     session.add(some_model)
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event, make_url, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from cricket_scoring.config import get_settings
from cricket_scoring.data.schema import Base
from cricket_scoring.logging import get_logger

logger = get_logger(__name__)

# Module-level engine and session factory cache
_engine: Engine | None = None
_session_factory: scoped_session[Session] | None = None


def _set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
) -> None:
    """Set SQLite-specific pragmas for integrity and concurrent access.

    Args:
        dbapi_connection: Raw DBAPI connection object.
        connection_record: Connection pool record (unused).
    """
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside it
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    # Cascades on match/team deletion depend on this
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()
    logger.debug("SQLite pragmas applied: foreign_keys=ON, journal_mode=WAL")


def _begin_sqlite_transaction(conn: Any) -> None:
    """Start every transaction as a writer.

    SQLite allows one writer at a time. A deferred BEGIN lets two sessions
    read the same match and then fail with "database is locked" when the
    second one tries to write; taking the write lock up front makes the
    second session wait for the first to commit and then read its result.
    """
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, echo: bool = False, busy_timeout: float = 30.0) -> Engine:
    """Create an engine for the given URL, applying SQLite pragmas when needed.

    Args:
        url: SQLAlchemy database URL.
        echo: Log emitted SQL.
        busy_timeout: Seconds a SQLite connection waits for the write lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    if make_url(url).get_backend_name() == "sqlite":
        # Pooled connections are handed to whichever thread checks them out
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _begin_sqlite_transaction)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine from settings.

    Creates a new engine on first call and caches it for subsequent calls.

    Returns:
        SQLAlchemy Engine instance.

    Example:
        >>> engine = get_engine()
        >>> with engine.connect() as conn:
        ...     result = conn.execute(text("SELECT 1"))
    """
    global _engine
    if _engine is None:
        settings = get_settings()

        if settings.database_url is None:
            settings.db_path_obj.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensuring database directory exists: {settings.db_path_obj.parent}")

        _engine = create_db_engine(settings.sqlalchemy_url, busy_timeout=settings.db_busy_timeout)
        logger.debug(f"Created database engine: {_engine.url!r}")

    return _engine


def get_session() -> Session:
    """Get a new database session.

    Uses scoped_session pattern for thread safety. Each thread gets
    its own session instance.

    Returns:
        SQLAlchemy Session instance.
    """
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        factory = sessionmaker(bind=engine)
        _session_factory = scoped_session(factory)
        logger.debug("Created scoped session factory")

    return _session_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager for database sessions with auto-commit/rollback.

    Automatically commits on successful exit and rolls back on exception.
    The session is always closed after use.

    Yields:
        SQLAlchemy Session instance.

    Raises:
        Exception: Re-raises any exception after rollback.

    Example:
        >>> with session_scope() as session:
        ...     session.add(Club(name="Brookweald CC"))
        ... # Auto-commits on exit
    """
    session = get_session()
    try:
        logger.debug("Starting database session")
        yield session
        session.commit()
        logger.debug("Session committed successfully")
    except Exception:
        logger.debug("Session rolling back due to exception")
        session.rollback()
        raise
    finally:
        session.close()
        logger.debug("Session closed")


def init_db() -> None:
    """Initialize the database by creating all tables.

    Safe to call multiple times - won't recreate existing tables.
    """
    # Import models to ensure they're registered with Base
    from cricket_scoring.data import models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database initialized - all tables created")


def reset_engine() -> None:
    """Reset the engine and session factory (for testing)."""
    global _engine, _session_factory
    if _session_factory is not None:
        _session_factory.remove()
        _session_factory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
    logger.debug("Database engine and session factory reset")


def verify_foreign_keys_enabled() -> bool:
    """Verify that SQLite foreign key constraints are enabled.

    Returns:
        True if foreign keys are enabled (always True for non-SQLite backends).
    """
    engine = get_engine()
    if engine.dialect.name != "sqlite":
        return True
    with engine.connect() as conn:
        result = conn.execute(text("PRAGMA foreign_keys"))
        row = result.fetchone()
        return row is not None and row[0] == 1
