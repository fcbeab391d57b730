"""
Database Connection Management

Provides the shared async SQLAlchemy engine and session factory used by the
bot registry store. The engine runs on the asyncpg driver and is created
lazily on first use.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy import text

from .config import get_manager_config, ManagerConfig


logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Owns the connection pool for the process.

    Sessions handed out by ``get_session`` commit when the block exits
    normally and roll back when it raises.
    """

    def __init__(self, config: Optional[ManagerConfig] = None):
        self._config = config
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._lock = asyncio.Lock()

    async def setup(self) -> None:
        """Create the engine and verify connectivity."""
        async with self._lock:
            if self._engine is not None:
                return

            if self._config is None:
                self._config = get_manager_config()

            self._engine = create_async_engine(
                self._config.database_url,
                pool_size=self._config.db_pool_size,
                max_overflow=self._config.db_max_overflow,
                pool_timeout=30,
                pool_recycle=3600,  # Recycle connections every hour
                pool_pre_ping=True,
                echo=self._config.db_echo,
            )

            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            try:
                async with self._engine.begin() as conn:
                    await conn.execute(text("SELECT 1"))
            except Exception as e:
                logger.error(f"Failed to connect to database {self._config.db_name}@{self._config.db_host}: {e}")
                await self._engine.dispose()
                self._engine = None
                self._session_factory = None
                raise

            logger.info(f"Database connection pool initialized ({self._config.db_host}:{self._config.db_port}/{self._config.db_name})")

    async def cleanup(self) -> None:
        """Dispose of the engine and its pooled connections."""
        async with self._lock:
            if self._engine:
                await self._engine.dispose()
                self._engine = None
                self._session_factory = None
                logger.info("Database connection pool closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        if self._session_factory is None:
            await self.setup()

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check health of the connection pool."""
        if self._engine is None:
            return False

        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    @property
    def is_connected(self) -> bool:
        """Check if the pool has been initialized."""
        return self._engine is not None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        """Get the engine instance."""
        return self._engine
