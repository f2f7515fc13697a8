"""Async database engine and session management.

Uses SQLAlchemy 2.0 async with asyncpg driver. The engine is built in the
application lifespan and handed to the repository; nothing here is global.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> bool:
    """Create tables if they don't exist. Returns True on success."""
    from painpoint.models import Base

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.warning("Database unavailable at startup: %s", str(e)[:200])
        return False


async def ping_db(engine: AsyncEngine) -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database ping failed: %s", str(e)[:200])
        return False


async def close_db(engine: AsyncEngine):
    """Dispose engine connections on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
