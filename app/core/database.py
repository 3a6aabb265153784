"""Database configuration and session management.

The engine is created once per process from ``settings.database_url``.
Postgres is the production store; SQLite is used for local development
and tests.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Allows concurrent readers while writing,
      so the reconciliation job can repair rows while requests read them.

    - **Foreign Keys**: Disabled by default in SQLite. Enabled so that album
      links cannot point at deleted albums.

    - **check_same_thread=False**: Required for FastAPI, whose dependency
      injection may hand a connection to another thread.

All multi-row writes go through ``transaction()``. External Drive calls must
be made before entering it, never inside.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings
from app.core.errors import PersistenceError

logger = logging.getLogger(__name__)


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine, applying SQLite-only connection settings when needed."""
    if not is_sqlite(url):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    new_engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
    sa_event.listen(new_engine, "connect", set_sqlite_pragma)
    return new_engine


engine = make_engine(settings.database_url, echo=settings.debug)


def create_db_and_tables(target: Engine | None = None):
    """Create all database tables."""
    import app.models  # noqa: F401  (registers table metadata)

    SQLModel.metadata.create_all(target or engine)


@contextmanager
def transaction(target: Engine) -> Iterator[Session]:
    """Run a unit of work in one database transaction.

    Commits when the block exits normally. Database failures roll the
    transaction back and surface as ``PersistenceError``; any other
    exception rolls back and propagates unchanged.
    """
    with Session(target, expire_on_commit=False) as session:
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise PersistenceError(f"Database operation failed: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
