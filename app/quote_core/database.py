"""
Database connection and session management.
The engine is created on first use from the configured URL; tests and the
composition root may call init_engine() with their own URL.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quote_core.logging_config import get_logger
from quote_core.models import Base
from quote_core.paths import app_paths


logger = get_logger(__name__)

engine = None
SessionLocal = None
DATABASE_URL: Optional[str] = None


def default_database_url() -> str:
    return f"sqlite:///{app_paths.database_path.as_posix()}"


def init_engine(database_url: Optional[str] = None, echo: bool = False):
    """(Re)create the engine and session factory for the given URL."""
    global engine, SessionLocal, DATABASE_URL

    if engine is not None:
        engine.dispose()

    DATABASE_URL = database_url or default_database_url()
    kwargs = {"echo": echo}
    if DATABASE_URL.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            kwargs["poolclass"] = StaticPool

    engine = create_engine(DATABASE_URL, **kwargs)
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False  # Prevent detached instance errors
    )
    return engine


def get_db_session():
    """Get a database session."""
    if SessionLocal is None:
        init_engine()
    return SessionLocal()


def init_db(database_url: Optional[str] = None):
    """Initialize database tables."""
    if database_url is not None or engine is None:
        init_engine(database_url)

    logger.info(f"Initializing database at: {DATABASE_URL}")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully.")


def get_db_info():
    """Get database information for debugging."""
    return {
        "database_url": DATABASE_URL,
        "database_path": str(app_paths.database_path),
        "database_exists": app_paths.database_path.exists(),
        "data_dir": str(app_paths.data_dir),
        "exports_dir": str(app_paths.exports_dir),
    }
