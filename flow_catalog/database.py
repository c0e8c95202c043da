"""Async database connection and session management utilities."""

import os
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.pool import NullPool
from sqlalchemy import text
import logging

from .models import Base
from .validators import validate_database_compatibility_async

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages async database connections with connection pooling."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database manager.

        Args:
            database_url: PostgreSQL connection string. If not provided,
                         will use DATABASE_URL environment variable.
        """
        self.database_url = database_url or os.getenv("DATABASE_URL")
        if not self.database_url:
            raise ValueError("DATABASE_URL not provided or set in environment")

        # Convert to async URL if needed
        if self.database_url.startswith("postgresql://"):
            self.database_url = self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        elif not self.database_url.startswith("postgresql+asyncpg://"):
            raise ValueError("Database URL must be PostgreSQL")

        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    async def initialize(self, validate: bool = True, **engine_kwargs):
        """Initialize the database engine and session factory.

        Args:
            validate: Check PostgreSQL version and extensions after connecting
            **engine_kwargs: Additional arguments for create_async_engine
        """
        if self._engine is not None:
            return

        # Default engine configuration
        default_config = {
            "echo": os.getenv("SQL_ECHO", "false").lower() == "true",
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "3600")),
            "pool_pre_ping": True,  # Verify connections before use
        }

        # Use NullPool for serverless environments
        if os.getenv("SERVERLESS", "false").lower() == "true":
            default_config["poolclass"] = NullPool
            default_config.pop("pool_size", None)
            default_config.pop("max_overflow", None)
            default_config.pop("pool_timeout", None)

        # Merge with provided kwargs
        config = {**default_config, **engine_kwargs}

        self._engine = create_async_engine(self.database_url, **config)

        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        # Test connection and validate compatibility
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Database connection established")

                if validate:
                    raw_conn = await conn.get_raw_connection()
                    asyncpg_conn = raw_conn.driver_connection  # Underlying asyncpg connection
                    await validate_database_compatibility_async(asyncpg_conn)

        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            await self.close()
            raise

    async def close(self):
        """Close the database engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("Database connection closed")

    async def create_all_tables(self):
        """Create every Flow Catalog table that does not exist yet."""
        if self._engine is None:
            await self.initialize()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Flow Catalog tables created")

    async def drop_all_tables(self):
        if self._engine is None:
            await self.initialize()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Flow Catalog tables dropped")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session.

        Yields:
            AsyncSession: Database session for executing queries

        Example:
            async with db_manager.get_session() as session:
                roles = await SqlRoleRepository(session).find_by_project_id(project_id)
        """
        if self._sessionmaker is None:
            await self.initialize()

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def transaction(self):
        """Get a session with explicit transaction control.

        Example:
            async with db_manager.transaction() as session:
                # All operations in transaction
                await session.execute(...)
                # Commits on exit, rolls back on exception
        """
        async with self.get_session() as session:
            async with session.begin():
                yield session

    async def health_check(self) -> bool:
        """Check if database is accessible.

        Returns:
            bool: True if database is healthy
        """
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False


# Global database manager instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get the global database manager instance.

    Returns:
        DatabaseManager: Global database manager
    """
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session from the global manager.

    Example:
        async with get_session() as session:
            flow = await SqlBusinessFlowRepository(session).find_by_id(flow_id)
    """
    db_manager = get_db_manager()
    async with db_manager.get_session() as session:
        yield session


async def init_db():
    """Initialize the global database manager.

    Should be called during application startup.
    """
    db_manager = get_db_manager()
    await db_manager.initialize()


async def close_db():
    """Close the global database manager.

    Should be called during application shutdown.
    """
    global _db_manager
    if _db_manager:
        await _db_manager.close()
        _db_manager = None
