"""
Database connection and session management.
"""
import logging
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from usage_monitor.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timestamp stored as naive UTC, returned as timezone-aware UTC.

    Aware values are converted to UTC before binding; naive values are assumed UTC.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def create_db_engine(url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    if url.startswith("sqlite"):
        # Sub-aggregations run on worker threads, each with its own pooled connection
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_size=10,
        max_overflow=20,
        pool_timeout=60,
        echo=False,
        connect_args={
            "connect_timeout": 30,
            "read_timeout": 300,
            "write_timeout": 300,
        } if "pymysql" in url else {}
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = create_db_engine(DATABASE_URL)

SessionLocal = create_session_factory(engine)


def init_db(bind: Engine = None):
    """Create all tables (used on startup for single-file SQLite deployments)."""
    # Import models so they register with Base.metadata
    from usage_monitor import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def get_db(request: Request):
    """Dependency for FastAPI to get database session from the app's session factory."""
    session_factory = getattr(request.app.state, "session_factory", None) or SessionLocal
    db = session_factory()
    try:
        yield db
    finally:
        try:
            db.close()
        except Exception as e:
            # Connection may already be lost; rollback and move on
            logger.warning(f"Error closing database session (connection may be lost): {str(e)}")
            try:
                db.rollback()
            except Exception as rollback_error:
                logger.debug(f"Rollback after failed close also failed: {rollback_error}")
