"""Database configuration and session management."""

import logging
import time
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)


def is_in_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


def build_engine(database_url: str, echo: bool = False):
    """Create an engine tuned for the database behind ``database_url``."""
    if database_url.startswith("sqlite"):
        if is_in_memory_sqlite(database_url):
            # One shared connection so in-memory databases survive across sessions
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                echo=echo,
                poolclass=StaticPool
            )
        return create_engine(database_url, connect_args={"check_same_thread": False}, echo=echo)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=echo
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for models
Base = declarative_base()


def is_postgres(db: Session) -> bool:
    """Whether the session is bound to PostgreSQL."""
    return db.get_bind().dialect.name == "postgresql"


def get_db() -> Generator[Session, None, None]:
    """Database dependency for FastAPI endpoints."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key support for SQLite."""
    if settings.DATABASE_URL.startswith("sqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Remember when a statement started in debug mode."""
    if settings.DEBUG:
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine, "after_cursor_execute")
def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query execution time in debug mode."""
    if settings.DEBUG and conn.info.get("query_start_time"):
        total = time.perf_counter() - conn.info["query_start_time"].pop()
        logger.debug(f"Query executed in {total:.4f}s: {statement[:100]}...")


def init_db() -> None:
    """Initialize database tables."""
    from .. import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)


def close_db() -> None:
    """Close database connections."""
    engine.dispose()
