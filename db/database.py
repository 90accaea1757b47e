"""SQLite embedded database setup with async SQLAlchemy."""

import logging
import os

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)

_engine = None


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def init_db(db_path: str) -> async_sessionmaker[AsyncSession]:
    """Create the engine and missing tables, returning the session factory."""
    global _engine

    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    url = f"sqlite+aiosqlite:///{db_path}"
    _engine = create_async_engine(url, echo=False)
    # SQLite leaves foreign keys off unless asked per connection
    event.listen(_engine.sync_engine, "connect", _enable_foreign_keys)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database initialized at {db_path}")
    return async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    """Dispose of the engine opened by init_db."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
