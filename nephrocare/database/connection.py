"""
Database connection management for PostgreSQL and Redis.

Handles are created once at startup by the service container and passed to
the services that need them; nothing here is looked up globally.
"""

import logging
import pathlib
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
import redis.asyncio as redis

from .models import Base

logger = logging.getLogger(__name__)


def normalize_database_url(db_url: Optional[str]) -> str:
    """Return an async driver URL, defaulting to a local SQLite file."""
    if db_url:
        # Convert postgresql:// to postgresql+asyncpg:// for async
        if db_url.startswith("postgresql://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif db_url.startswith("postgres://"):
            db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return db_url

    db_path = pathlib.Path(__file__).parent.parent.parent / "nephrocare.db"
    return f"sqlite+aiosqlite:///{db_path}"


class Database:
    """Async engine plus session factory for one database URL."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = normalize_database_url(url)

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            engine_kwargs.update(pool_size=10, max_overflow=20)

        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional session: commits on success, rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database connection closed")


async def connect_redis(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """Connect to Redis, returning None when unconfigured or unreachable."""
    if not redis_url:
        logger.info("REDIS_URL not set. Continuing without Redis cache.")
        return None

    logger.info(f"Initializing Redis connection: {redis_url.split('@')[-1]}")
    try:
        client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        await client.ping()
        logger.info("✓ Redis connection established")
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Continuing without Redis cache.")
        return None
