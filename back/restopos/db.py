import logging
from collections.abc import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, text

from .settings import settings

logger = logging.getLogger(__name__)

# Process-wide engine, created on first use and reused afterwards.
_engine: Engine | None = None


def get_engine() -> Engine | None:
    """Return the shared engine, or None when no database is configured."""
    global _engine
    if _engine is None:
        url = settings.database_url
        if not url:
            logger.warning(
                "No database configured (set DATABASE_URL or DB_HOST). "
                "Running without a database: reads return empty results and writes fail."
            )
            return None
        _engine = create_engine(url, pool_pre_ping=True)
    return _engine


def set_engine(engine: Engine | None) -> None:
    """Replace the shared engine (used by scripts and tests)."""
    global _engine
    _engine = engine


def create_db_and_tables() -> None:
    engine = get_engine()
    if engine is None:
        return
    # Import for the side effect of registering every table on the metadata.
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def check_db_connection() -> None:
    engine = get_engine()
    if engine is None:
        raise RuntimeError("Database is not configured")
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def get_session() -> Iterator[Session | None]:
    """FastAPI dependency: a session per request, or None without a database."""
    engine = get_engine()
    if engine is None:
        yield None
        return
    with Session(engine) as session:
        yield session
