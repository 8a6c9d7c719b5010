"""
Engine, sessions and table definitions for pomotrack.

- ``TEST_DATABASE_URL`` wins over ``DATABASE_URL`` so the test run never
  touches a real database.
- PostgreSQL gets a bounded QueuePool; SQLite (local runs, tests) uses a
  single file shared across request threads.
- ``upsert`` hands back the dialect INSERT that understands ON CONFLICT.
"""
import logging
import os
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool
from sqlalchemy.sql import func

from pomotrack.core.config import settings
from pomotrack.core.errors import StorageUnavailableError

logger = logging.getLogger("pomotrack")

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_RECYCLE_SECONDS = 3600
CONNECT_TIMEOUT_SECONDS = 10

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL when set, otherwise the configured DATABASE_URL."""
    return os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": settings.DB_POOL_TIMEOUT}}
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE_SECONDS,
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": CONNECT_TIMEOUT_SECONDS},
    }


def init_engine(database_url: Optional[str] = None):
    """Build the engine and session factory; ``database_url`` overrides the environment."""
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set it in the environment or pomotrack/.env.")

    _engine = create_engine(url, echo=False, **_engine_options(url))
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False)
    return _engine


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def dispose_engine() -> None:
    """Drop the cached engine so the next call re-reads the database URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Yield a session whose work commits as one unit on clean exit.

    Any exception rolls everything back. Connectivity failures are re-raised
    as StorageUnavailableError so the API answers 503.
    """
    session: Session = get_session_factory()()
    try:
        yield session
        session.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        session.rollback()
        logger.error("storage.unavailable", extra={"error_code": "storage_unavailable"})
        raise StorageUnavailableError("Storage is temporarily unavailable") from exc
    except DBAPIError as exc:
        session.rollback()
        if exc.connection_invalidated:
            raise StorageUnavailableError("Storage connection was lost") from exc
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def upsert(session: Session, table: Table):
    """Dialect INSERT supporting ON CONFLICT for whatever the session is bound to."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Atomic upsert is not supported on {dialect}")


def create_all_tables() -> None:
    """Idempotent: existing tables are left alone."""
    metadata.create_all(bind=get_engine())


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except Exception as exc:
        logger.warning("db.check_failed", extra={"error": str(exc)})
        return False
    return True

# Users, with the embedded activity state (streak + timer presence)
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(320), nullable=True),
    Column('display_name', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Streak state
    Column('current_streak', Integer, nullable=False, server_default='0'),
    Column('longest_streak', Integer, nullable=False, server_default='0'),
    Column('last_active_day', String(10), nullable=True),
    Column('streak_version', Integer, nullable=False, server_default='0'),
    # Timer presence
    Column('pomodoro_running', Boolean, nullable=False, server_default='0'),
    Column('pomodoro_started_at', DateTime(timezone=True), nullable=True),
    Column('last_pomodoro_at', DateTime(timezone=True), nullable=True),
    Column('last_presence_day', String(10), nullable=True),
    CheckConstraint('current_streak <= longest_streak', name='ck_users_streak_bounds'),
    Index('idx_users_created_at', 'created_at'),
    Index('idx_users_email', 'email'),
)

# Append-only ledger of completed focus/break intervals
focus_sessions = Table(
    'focus_sessions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('kind', String(10), nullable=False),
    Column('duration_seconds', Integer, nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=False),
    CheckConstraint('duration_seconds > 0 AND duration_seconds <= 43200', name='ck_focus_sessions_duration'),
    CheckConstraint("kind IN ('focus', 'break')", name='ck_focus_sessions_kind'),
    # Composite index for per-user history ordered by completion
    Index('idx_focus_sessions_user_completed', 'user_id', 'completed_at'),
    Index('idx_focus_sessions_kind', 'kind'),
)

# One running total per (user, calendar day)
daily_aggregates = Table(
    'daily_aggregates',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('day', String(10), nullable=False),  # YYYY-MM-DD in the bucket time zone
    Column('total_focus_seconds', BigInteger, nullable=False, server_default='0'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    CheckConstraint('total_focus_seconds >= 0', name='ck_daily_aggregates_total'),
    UniqueConstraint('user_id', 'day', name='uq_daily_aggregates_user_day'),
    Index('idx_daily_aggregates_day', 'day'),
)

# Visit counters per (user, domain) from the browser extension
browse_stats = Table(
    'browse_stats',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('domain', String(255), nullable=False),
    Column('visit_count', Integer, nullable=False, server_default='0'),
    Column('first_seen_at', DateTime(timezone=True), nullable=True),
    Column('last_visited_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('user_id', 'domain', name='uq_browse_stats_user_domain'),
    Index('idx_browse_stats_user_count', 'user_id', 'visit_count'),
)
