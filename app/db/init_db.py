import logging

from app.core import config
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Bring the schema up to date at startup.

    Production runs Alembic (RUN_MIGRATIONS=1); local development falls
    back to create_all so a fresh SQLite file works out of the box.
    """
    import app.db.models  # noqa: F401  (registers every table on Base.metadata)

    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
        return

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured via create_all")
