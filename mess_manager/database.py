import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session

from mess_manager.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

if "sqlite" in settings.DATABASE_URL:
    # SQLite-specific settings
    _engine_options = {"connect_args": {"check_same_thread": False}}
else:
    _engine_options = {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
    }

# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,  # Verify connections before using
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    **_engine_options,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency for database sessions.

    Yields a database session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run one service operation as a single database transaction.

    Repositories only flush; the surrounding ``atomic`` block commits when the
    body returns and rolls back when it raises.

    Usage:
        with atomic(self.db):
            self.repo.create(entry)
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(
    db: Session, func: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.1
) -> T:
    """
    Execute a read-only DB operation with retry on transient store failures.

    Only used for operations that have no side effects; mutating operations
    surface the error to the caller instead.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            # A failed connection leaves the session unusable until rolled back
            db.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Transient database error, retrying (attempt %d/%d)", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    raise RuntimeError("run_with_retry called with attempts < 1")
