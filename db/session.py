# WORKFLOW: Database session management and connection handling.
# Used by: API endpoints, refresh CLI, orchestrator worker sessions
# Functions:
# 1. get_db() - Dependency injection for FastAPI endpoints
# 2. get_session_factory() - Session factory handed to the orchestrator
# 3. init_db() - Initialize database tables
# 4. check_db_connection() - Health check for database connectivity
#
# Database lifecycle:
# Startup: init_db() -> Create tables -> Check connection
# Runtime: get_db() -> Session -> Query -> Close session
# Health checks: check_db_connection() -> Monitor connectivity

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Lazy-loaded database engine and session factory
_engine = None
_SessionLocal = None


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "connect_args": {"options": "-c timezone=utc"},
    }


def get_engine() -> Engine:
    """Get database engine (lazy-loaded)."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            **_engine_options(settings.database_url),
        )
    return _engine


def get_session_factory():
    """Get session factory (lazy-loaded)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db():
    """
    Dependency to get database session.
    Yields a database session and ensures it's closed after use.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine = None) -> None:
    """
    Initialize database tables.
    """
    from db.models import Base

    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def check_db_connection(engine: Engine = None) -> bool:
    """
    Check if database connection is working.
    """
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
