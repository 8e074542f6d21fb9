"""Database engine and session management for the table allocation engine."""

from typing import Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine as sa_create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from core.settings import settings


class DatabaseConfig:
    """Database configuration settings."""

    POOL_SIZE: int = settings.db_pool_size
    MAX_OVERFLOW: int = settings.db_max_overflow
    POOL_TIMEOUT: int = settings.db_pool_timeout
    POOL_RECYCLE: int = settings.db_pool_recycle
    POOL_PRE_PING: bool = True
    ECHO: bool = settings.db_echo

    # Seconds SQLite waits on a locked database before raising
    SQLITE_BUSY_TIMEOUT: float = settings.lock_timeout_seconds


def _configure_sqlite(engine: Engine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    pysqlite's own transaction handling is disabled so the write lock is
    taken before the first read, which serializes read-then-write
    allocation transactions at the store level.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(
    url: str = settings.database_url,
    pool_size: int = DatabaseConfig.POOL_SIZE,
    max_overflow: int = DatabaseConfig.MAX_OVERFLOW,
    echo: bool = DatabaseConfig.ECHO,
    busy_timeout: Optional[float] = None,
) -> Engine:
    """
    Create SQLAlchemy engine.

    Args:
        url: Database URL
        pool_size: Number of connections to maintain in pool
        max_overflow: Max number of connections to create beyond pool_size
        echo: Whether to log all SQL statements
        busy_timeout: SQLite only, seconds to wait for the write lock

    Returns:
        SQLAlchemy engine
    """
    if url.startswith("sqlite"):
        engine = sa_create_engine(
            url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": busy_timeout or DatabaseConfig.SQLITE_BUSY_TIMEOUT,
            },
            poolclass=NullPool,
        )
        _configure_sqlite(engine)
        return engine

    return sa_create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=DatabaseConfig.POOL_TIMEOUT,
        pool_recycle=DatabaseConfig.POOL_RECYCLE,
        pool_pre_ping=DatabaseConfig.POOL_PRE_PING,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory handed to the services; one session per transaction."""
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


# Process-wide engine and factory, created lazily so importing never connects
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    global _engine

    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


@contextmanager
def get_session_context(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for a session that commits on success.

    Yields:
        Session instance

    Example:
        with get_session_context() as session:
            # use session
            pass
    """
    factory = factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Initialize database by creating all tables."""
    from .base import Base
    from . import models_sqlalchemy  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def drop_db(engine: Optional[Engine] = None) -> None:
    """Drop all database tables. Use with caution!"""
    from .base import Base

    Base.metadata.drop_all(bind=engine or get_engine())


def close_db() -> None:
    """Close database engine and all connections."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
