"""
Base database model and session management
"""
import os
import sqlite3
from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import NullPool
from oms.config import get_settings
from oms.exceptions import PermissionDenied
from oms.utils.logger import log

settings = get_settings()

# Postgres "insufficient_privilege", raised for grants and row-level security
PG_INSUFFICIENT_PRIVILEGE = "42501"

# Resolve relative SQLite paths to absolute so cwd changes can't break it
_db_url = settings.database_url
if _db_url.startswith("sqlite:///") and not _db_url.startswith("sqlite:////"):
    rel_path = _db_url[len("sqlite:///"):]
    _db_url = "sqlite:///" + os.path.abspath(rel_path)

# Create database engine
if _db_url.startswith("sqlite"):
    engine = create_engine(
        _db_url,
        connect_args={"check_same_thread": False, "timeout": 60},
        poolclass=NullPool,
        pool_pre_ping=True
    )
else:
    engine = create_engine(
        _db_url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_recycle=300,
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_permission_error(exc: BaseException) -> bool:
    """True when the driver reports that the statement was refused for privileges."""
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == PG_INSUFFICIENT_PRIVILEGE:
        return True
    return getattr(orig, "sqlite_errorcode", None) in (sqlite3.SQLITE_READONLY, sqlite3.SQLITE_AUTH)


def commit(db: Session) -> None:
    """Commit the session, rolling back on failure.

    Privilege rejections surface as PermissionDenied; everything else propagates.
    """
    try:
        db.commit()
    except DBAPIError as e:
        db.rollback()
        if is_permission_error(e):
            log.warning(f"Database refused write: {e.orig}")
            raise PermissionDenied("Permission denied by database policy") from e
        raise
    except Exception:
        db.rollback()
        raise


def init_db():
    """Create any missing tables."""
    # Register every model on Base.metadata
    from oms import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
