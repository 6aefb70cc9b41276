"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Every request gets a session
from get_db().
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from campaign_ops.config import get_settings

settings = get_settings()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an offset-aware timestamp to naive UTC; naive values pass through."""
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# PostgreSQL lock_not_available
LOCK_NOT_AVAILABLE = "55P03"


def is_lock_timeout(exc: OperationalError) -> bool:
    """True when the store gave up waiting for a row or table lock."""
    if getattr(exc.orig, "pgcode", None) == LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(exc.orig).lower()


def configure_sqlite_locking(engine: Engine, busy_timeout_ms: int) -> None:
    """
    Make SQLite transactions take the write lock up front.

    SQLite ignores FOR UPDATE, so a locked read would otherwise
    let two redeemers observe the same row. BEGIN IMMEDIATE
    serializes writers for the whole file; the busy timeout
    bounds how long a second writer waits.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop pysqlite from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        dbapi_connection.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str, lock_timeout_ms: int, echo: bool = False
) -> Engine:
    """Create an engine, applying SQLite lock emulation when needed."""
    if database_url.startswith("sqlite"):
        new_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
        configure_sqlite_locking(new_engine, lock_timeout_ms)
        return new_engine

    # pool_pre_ping=True tests connections before using them,
    # which handles a restarted database or a stale connection.
    return create_engine(database_url, pool_pre_ping=True, echo=echo)


# --- Engine ---
engine = build_engine(
    settings.DATABASE_URL, settings.LOCK_TIMEOUT_MS, echo=settings.DEBUG
)

# --- Session Factory ---
# autocommit=False: services decide when changes are committed.
# autoflush=False: SQL is only sent on explicit flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even when
    the endpoint raises, so connections never leak from the pool.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
