"""Database connection and unit-of-work management for the box office."""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from festival_pass.config import settings
from festival_pass.domain.errors import (
    ContentionError,
    FestivalPassError,
    InternalStoreError,
)
from festival_pass.logging_config import get_logger

logger = get_logger(__name__)

# Base class for all ORM models
Base = declarative_base()

# Execution option read by the SQLite "begin" hook
BEGIN_MODE_OPTION = "festival_pass_begin_mode"

_LOCK_MESSAGES = ("database is locked", "database is busy", "lock timeout")


def _configure_sqlite(engine: Engine, lock_timeout_seconds: float) -> None:
    """Take over transaction control from pysqlite.

    pysqlite defers BEGIN until the first write, which turns every write
    unit into a read-then-upgrade and lets two writers deadlock. With the
    driver's own handling disabled we emit BEGIN ourselves, IMMEDIATE for
    units that are known to write.
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(lock_timeout_seconds * 1000)}")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def begin_sqlite_transaction(conn):  # type: ignore
        mode = conn.get_execution_options().get(BEGIN_MODE_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def create_db_engine(
    database_url: str | None = None,
    lock_timeout_seconds: float | None = None,
) -> Engine:
    """
    Create a SQLAlchemy engine for the box office store.

    Args:
        database_url: Connection URL. If None, uses settings.database_url
        lock_timeout_seconds: Wait-for-lock timeout. If None, uses settings

    Returns:
        Configured SQLAlchemy engine
    """
    url = database_url or settings.database_url
    timeout = (
        lock_timeout_seconds
        if lock_timeout_seconds is not None
        else settings.lock_timeout_seconds
    )

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
            echo=settings.debug,
        )
        _configure_sqlite(engine, timeout)
        return engine

    engine = create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.debug,
    )

    @event.listens_for(engine, "connect")
    def set_postgresql_pragma(dbapi_conn, connection_record):  # type: ignore
        cursor = dbapi_conn.cursor()
        cursor.execute("SET timezone='UTC'")
        cursor.execute(f"SET lock_timeout='{int(timeout * 1000)}'")
        cursor.close()

    return engine


# Global engine and session factory (initialized on first import)
engine = create_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SessionFactory = Callable[[], Session]


def _is_lock_error(error: OperationalError) -> bool:
    text = str(error.orig or error).lower()
    return any(message in text for message in _LOCK_MESSAGES)


@contextmanager
def unit_of_work(
    session_factory: SessionFactory | None = None,
    write: bool = True,
) -> Generator[Session, None, None]:
    """
    Run a block of work as one atomic unit.

    Usage:
        with unit_of_work(factory) as session:
            CardRepository(session).set_state(card_id, CardState.REVOKED)

    Write units take the store's write lock on entry. The unit commits on
    normal exit and rolls back on any exception; the session is always
    closed. Lock timeouts surface as ContentionError and other store
    failures as InternalStoreError. Domain errors pass through unchanged.
    """
    factory = session_factory or SessionLocal
    session = factory()
    try:
        if write:
            session.connection(execution_options={BEGIN_MODE_OPTION: "IMMEDIATE"})
        yield session
        session.commit()
    except FestivalPassError:
        session.rollback()
        raise
    except OperationalError as e:
        session.rollback()
        if _is_lock_error(e):
            logger.warning("store_contention", error=str(e.orig))
            raise ContentionError(str(e.orig)) from e
        logger.error("store_operational_error", error=str(e.orig))
        raise InternalStoreError(str(e.orig)) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("store_error", error=str(e))
        raise InternalStoreError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """
    Initialize database schema (create all tables).

    WARNING: This should only be used for testing. In production, use Alembic migrations.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    from festival_pass.infrastructure import models  # noqa: F401

    target_engine = engine or globals()["engine"]
    Base.metadata.create_all(bind=target_engine)


def drop_all_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables in the database.

    WARNING: This is destructive and should only be used for testing.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    target_engine = engine or globals()["engine"]
    Base.metadata.drop_all(bind=target_engine)
