"""Async database engine and session management.

Uses SQLAlchemy 2.0 async (asyncpg in production, aiosqlite in tests).
One Storage instance is built at startup and handed to every component.
Unlike a cache, the database is not optional: if it cannot be reached the
process exits.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aimode.errors import StorageUnavailable

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # In-memory SQLite lives inside one connection; share it
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}


class Storage:
    """Shared handle to the query database."""

    def __init__(self, url: str, create_tables: bool = True):
        self.url = url
        self.create_tables = create_tables
        self.engine = create_async_engine(url, echo=False, **_engine_options(url))
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def connect(self):
        """Ping the database and create tables if needed. Raises StorageUnavailable."""
        from aimode.models import Base

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.create_tables:
                    await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise StorageUnavailable("Database connection error", str(e)[:200]) from e
        logger.info("Connected to database | dialect=%s", self.engine.dialect.name)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def close(self):
        """Dispose engine connections on shutdown."""
        await self.engine.dispose()
        logger.info("Database connections closed")
