"""Database connection and session management."""
import logging
import os
from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool
from app.core.config import settings
from app.core.errors import StoreUnavailable
from app.models.wallet import Base

logger = logging.getLogger(__name__)


def use_immediate_transactions(sqlite_engine: Engine) -> Engine:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    The write lock is then taken up front, so concurrent writers queue on the
    busy timeout instead of failing with "database is locked" mid-transaction.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


def _create_engine():
    """Create engine: SQLite uses NullPool and check_same_thread=False; PostgreSQL uses pooling."""
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite":
        # File-based SQLite: ensure parent directory exists (skip for :memory:)
        database_path = url.database
        if database_path and database_path != ":memory:":
            parent = os.path.dirname(database_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        return use_immediate_transactions(create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            poolclass=NullPool,
        ))
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


engine = _create_engine()

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a unit of work: commit on success, roll back on any error.

    Connectivity failures surface as StoreUnavailable so callers can retry;
    everything else propagates unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except (OperationalError, DBAPIError) as e:
        db.rollback()
        if isinstance(e, OperationalError) or e.connection_invalidated:
            logger.error(f"Database unavailable, transaction rolled back: {e}")
            raise StoreUnavailable() from e
        raise
    except Exception:
        db.rollback()
        raise
