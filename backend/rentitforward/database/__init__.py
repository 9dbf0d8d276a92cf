"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    # Fail fast when the pool is exhausted rather than blocking request threads
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
    "future": True,
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options for the configured backend."""

    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "future": True}
    return dict(_DEFAULT_POOL_KWARGS)


db_url = settings.database_url
engine: Engine = create_engine(db_url, **_build_engine_kwargs(db_url))


# Log pool events for monitoring
@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = ["Base", "SessionLocal", "engine", "get_db"]
