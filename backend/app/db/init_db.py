"""
Database bootstrapping.
Schema changes go through migrations in production; AUTO_CREATE_TABLES is for
local development only.
"""

from app.db.base import Base
from app.db import session as db_session
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_tables() -> None:
    """Create all tables registered on Base."""
    # Registers every model with Base.metadata
    import app.models  # noqa: F401

    async with db_session.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created", extra={"tables": sorted(Base.metadata.tables)})
