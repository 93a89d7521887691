"""
Database Connection and Session Management

Provides the async SQLAlchemy 2.0 engine and session factory as an
explicitly constructed object, so every component receives its database
instead of importing a module-level engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from deskbot.models.database import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns an async engine and its session factory.

    Usage:
        db = Database.from_url(settings.database_url)
        async with db.session() as session:
            result = await session.execute(select(QueueItem))
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(
        cls,
        url: str,
        echo: bool = False,
        engine_kwargs: Optional[dict] = None,
    ) -> "Database":
        """
        Build a database from a connection URL.

        Args:
            url: SQLAlchemy async URL
            echo: Log SQL statements
            engine_kwargs: Extra create_async_engine arguments (tests pass
                a StaticPool for in-memory SQLite)

        Returns:
            Database instance
        """
        kwargs = engine_kwargs or {"poolclass": NullPool}
        engine = create_async_engine(url, echo=echo, **kwargs)
        return cls(engine)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for a unit of work.

        Automatically handles:
        - Commit on success
        - Rollback on exception
        - Session cleanup

        Yields:
            AsyncSession: Database session
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """
        Create all database tables.

        WARNING: This is for development and tests only. In production,
        manage the schema with migrations.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose the connection pool. Call on shutdown."""
        await self.engine.dispose()

    async def check_health(self) -> bool:
        """
        Check database connectivity for health checks.

        Returns:
            bool: True if database is accessible, False otherwise
        """
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
