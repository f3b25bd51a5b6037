"""
Database engine and session management using SQLAlchemy 2.x.
Provides connection pooling, the session factory and the unit-of-work
boundary used by every write path in the booking engine.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Generator, List, Optional

from sqlalchemy import DateTime, JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from marketplace.lib.settings import settings


# Base class for all SQLAlchemy models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always round-trips as UTC.

    Postgres stores ``timestamptz`` natively; SQLite drops the offset, so
    naive values read back are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes are not accepted; pass a timezone-aware value")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 5,
        "max_overflow": 10,
    }


engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_kwargs(settings.database_url),
)


# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @router.get("/example")
        def example(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI routes
    (scheduler sweeps, scripts).

    Usage:
        with get_db_context() as db:
            result = db.execute(select(Booking)).scalars().first()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class UnitOfWork:
    """
    One database transaction plus the work that must only run after it
    commits.

    Usage:
        with UnitOfWork(session) as uow:
            ...writes...
            uow.after_commit(lambda: dispatcher.dispatch(event_ids))

    On a clean exit the session is committed and post-commit hooks run in
    registration order; an exception rolls back and discards the hooks.
    Hook exceptions propagate to the caller after the commit.
    """

    def __init__(self, session: Session):
        self.session = session
        self._after_commit: List[Callable[[], None]] = []

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.session.rollback()
            self._after_commit.clear()
            return False

        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            self._after_commit.clear()
            raise

        hooks, self._after_commit = self._after_commit, []
        for hook in hooks:
            hook()
        return False

    def after_commit(self, hook: Callable[[], None]) -> None:
        """Register a callable to run once the transaction has committed."""
        self._after_commit.append(hook)


def init_db():
    """
    Initialize the database by creating all tables.
    Should be called after all models are imported.
    """
    Base.metadata.create_all(bind=engine)


def drop_db():
    """
    Drop all tables. Use with caution - for testing only.
    """
    Base.metadata.drop_all(bind=engine)
