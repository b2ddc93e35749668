"""
Database Configuration
Engine, session factory and declarative base for the job, appraisal and
user tables. SQLite for local development, PostgreSQL in production.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Pipeline stages open sessions from worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create missing tables. Failures are logged and startup continues."""
    from app.models import AppraisalJob, Appraisal, User  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
    except Exception as e:
        # Managed databases may already carry the schema or refuse DDL
        logger.warning(f"Could not create database tables: {e}")
