"""
Database utilities and connection management.

WHAT: SQLAlchemy engine, session factory and declarative base
WHY: Persist the parts catalog, purchase ledger, procurement tracking and chat sessions
HOW: SQLAlchemy sync engine with WAL mode on SQLite, scoped session context manager
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from contextlib import contextmanager
from pathlib import Path

from .config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Ensure data directory exists for file-backed SQLite
if _is_sqlite and ":memory:" not in settings.DATABASE_URL:
    data_dir = Path(settings.DATABASE_URL.replace("sqlite:///", "")).parent
    data_dir.mkdir(parents=True, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=settings.DEBUG,
    future=True
)


if _is_sqlite:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable WAL mode for concurrent webhook and chat writes."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)

# Base for models
Base = declarative_base()


@contextmanager
def get_db():
    """
    Context manager for database session.

    Usage:
        with get_db() as db:
            # use db session
            pass

    Yields:
        Session: SQLAlchemy session
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    """Create all tables (importing models registers them on Base)."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({'sqlite/WAL' if _is_sqlite else engine.dialect.name})")


def close_db():
    """Close database connections."""
    engine.dispose()
    logger.info("Database connections closed")
