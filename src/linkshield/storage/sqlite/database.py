"""Database session management and connection handling."""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.asyncio.engine import AsyncEngine
from sqlalchemy.pool import StaticPool

from ...config.settings import DatabaseSettings
from ...utils.async_utils import AsyncContextManager
from ...utils.logging import get_structured_logger
from .models import Base

logger = get_structured_logger(__name__)


def to_async_url(url: str) -> str:
    """Map a plain SQLite URL onto the aiosqlite driver."""
    if url.startswith("sqlite+"):
        return url
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("sqlite:"):
        return url.replace("sqlite:", "sqlite+aiosqlite:", 1)
    return url


class DatabaseManager(AsyncContextManager):
    """Manages database connections and sessions."""

    def __init__(self, settings: DatabaseSettings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._initialized = False

    @property
    def is_memory(self) -> bool:
        return ":memory:" in self.settings.url

    async def setup(self) -> None:
        """Initialize database connection and session factory."""
        if self._initialized:
            return

        logger.info("Initializing database connection", url=self.settings.url)

        async_url = to_async_url(self.settings.url)
        engine_kwargs = {"echo": self.settings.echo}

        if async_url.startswith("sqlite"):
            self._ensure_sqlite_directory(async_url)
            engine_kwargs.update(
                {
                    "poolclass": StaticPool,
                    "connect_args": {"check_same_thread": False, "timeout": 30},
                }
            )
        else:
            engine_kwargs.update(
                {
                    "pool_size": self.settings.pool_size,
                    "max_overflow": self.settings.max_overflow,
                    "pool_pre_ping": True,
                    "pool_recycle": 3600,
                }
            )

        self.engine = create_async_engine(async_url, **engine_kwargs)

        if async_url.startswith("sqlite") and not self.is_memory:

            @event.listens_for(self.engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                # WAL lets readers proceed while a cache namespace is being written
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        await self.create_tables()

        self._initialized = True
        logger.info("Database initialization complete")

    async def cleanup(self) -> None:
        """Clean up database connections."""
        if self.engine:
            logger.info("Closing database connections")
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            self._initialized = False

    async def create_tables(self) -> None:
        """Create database tables."""
        if not self.engine:
            raise RuntimeError("Database engine not initialized")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Database tables ensured")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session with automatic commit or rollback."""
        if not self.session_factory:
            raise RuntimeError("Database not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error("Session error, rolling back", error=str(e))
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Perform database health check."""
        try:
            if not self.engine:
                return False

            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    def _ensure_sqlite_directory(self, async_url: str) -> None:
        if self.is_memory or ":///" not in async_url:
            return
        db_path = async_url.split(":///", 1)[1]
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
