"""
Database utilities and connection management.

WHAT: SQLite database setup with WAL mode
WHY: Durable storage for conversations, agreements, stats and the message stream
HOW: SQLAlchemy sync engine v2 with WAL mode, session management
"""

from sqlalchemy import create_engine, text, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from pathlib import Path

from .config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Base for models
Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.
    
    WHAT: Sync engine with SQLite pragmas applied on connect
    WHY: Same engine setup for the app database and isolated test databases
    HOW: In-memory URLs share one connection via StaticPool
    
    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL
    
    Returns:
        Configured Engine
    """
    kwargs = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            data_dir = Path(url.replace("sqlite:///", "")).parent
            data_dir.mkdir(parents=True, exist_ok=True)
    
    new_engine = create_engine(url, **kwargs)
    
    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode for better concurrency."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    
    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    """Session factory bound to an engine."""
    return sessionmaker(
        bind=bind,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = build_session_factory(engine)


@contextmanager
def get_db(session_factory: sessionmaker | None = None):
    """
    Context manager for database session.
    
    Usage:
        with get_db() as db:
            # use db session
            pass
    
    Args:
        session_factory: Optional factory (defaults to the app database)
    
    Yields:
        Session: SQLAlchemy session
    """
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping_database() -> dict:
    """
    Check database connectivity.
    
    Returns:
        Dict with status and info
    """
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        
        return {
            "available": True,
            "url": settings.DATABASE_URL,
            "error": None
        }
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return {
            "available": False,
            "url": settings.DATABASE_URL,
            "error": str(e)
        }


def init_db(bind: Engine | None = None):
    """Create all tables."""
    # Register ORM models on Base.metadata
    from . import models  # noqa: F401
    
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database initialized")


def close_db():
    """Close database connections."""
    engine.dispose()
    logger.info("Database connections closed")
