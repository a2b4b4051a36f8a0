"""Database configuration and session management"""

from pathlib import Path

from alembic.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Any, Dict, Generator, Set
from blogauth.config import settings
import logging

logger = logging.getLogger(__name__)


def engine_options(url: str) -> Dict[str, Any]:
    """
    Engine keyword arguments for a database URL.

    SQLite needs cross-thread access for the threadpool FastAPI runs sync
    routes on, and in-memory databases must share one connection.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


DATABASE_URL = settings.get_database_url()

engine = create_engine(DATABASE_URL, echo=settings.DEBUG, **engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

# Import models after Base is defined so metadata is populated.
from blogauth import models  # noqa: E402,F401


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


ALEMBIC_DIR = Path(__file__).resolve().parents[2] / "alembic"


def migration_heads() -> Set[str]:
    """Head revisions shipped in the alembic scripts directory"""
    return set(ScriptDirectory(str(ALEMBIC_DIR)).get_heads())


def applied_revisions() -> Set[str]:
    """Revisions recorded in the database's alembic_version table"""
    with engine.connect() as conn:
        return set(MigrationContext.configure(conn).get_current_heads())


def init_db() -> None:
    """
    Initialize database according to configured strategy.

    DB_INIT_MODE:
      - migrate: the schema must be at the alembic head (run ``alembic upgrade head``)
      - create_all: create tables directly, for local development and tests
      - off: skip initialization check

    Raises:
        RuntimeError: Unknown mode, or the schema lags behind the migrations
            while DB_REQUIRE_HEAD is set
    """
    mode = settings.DB_INIT_MODE.lower().strip()
    if mode == "off":
        logger.info("DB initialization check skipped (DB_INIT_MODE=off)")
        return

    if mode == "create_all":
        Base.metadata.create_all(bind=engine)
        logger.warning("Using create_all database initialization (recommended only for local development).")
        return

    if mode != "migrate":
        raise RuntimeError(f"Unknown DB_INIT_MODE: {settings.DB_INIT_MODE}")

    applied, heads = applied_revisions(), migration_heads()
    if applied == heads:
        logger.info(f"Database schema at migration head {', '.join(sorted(heads))}")
        return

    problem = (
        f"Database schema at {', '.join(sorted(applied)) or 'no revision'}, "
        f"expected {', '.join(sorted(heads))}. Run `alembic upgrade head`."
    )
    if settings.DB_REQUIRE_HEAD:
        raise RuntimeError(problem)
    logger.warning(problem)
