"""
Database connection management for AirDesk.
Handles SQLAlchemy engine creation, session management, and connection verification.
"""

import os
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Get DATABASE_URL from environment
DATABASE_URL = os.environ.get('DATABASE_URL')

# Handle Render's postgres:// vs postgresql:// URL format
if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
    DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# SQLAlchemy Base for model declarations
Base = declarative_base()

# Engine and SessionLocal will be initialized when needed
engine = None
SessionLocal = None


def init_engine(url, **engine_options):
    """
    Bind the module to a specific database URL.
    Used by the app factory (URL from config) and by tests.
    """
    global engine, SessionLocal, DATABASE_URL

    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)

    if engine is not None:
        engine.dispose()

    if url.startswith('sqlite'):
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection, or every session sees an empty database
            engine_options.setdefault('poolclass', StaticPool)
        engine = create_engine(url, connect_args={'check_same_thread': False}, **engine_options)
    else:
        engine = create_engine(
            url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=300,    # Recycle connections after 5 minutes
            **engine_options
        )
    DATABASE_URL = url
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine():
    """Get or create the SQLAlchemy engine."""
    if engine is not None:
        return engine

    if not DATABASE_URL:
        logger.error("DATABASE_URL environment variable is not set!")
        raise RuntimeError(
            "DATABASE_URL not configured. Cannot connect to PostgreSQL database. "
            "Please set the DATABASE_URL environment variable."
        )

    return init_engine(DATABASE_URL)


def get_session_factory():
    """Get or create the session factory."""
    if SessionLocal is None:
        get_engine()
    return SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for getting a database session.

    Example:
        with get_db_session() as db:
            calls = db.query(Call).all()
    """
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection():
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db():
    """
    Create all tables. Production schemas are managed by Alembic;
    this is used for local development and tests.
    """
    from database import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created/verified")
