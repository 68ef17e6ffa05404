"""
Database configuration and connection management for the user directory.
Async SQLAlchemy over SQLite (aiosqlite); one session per repository operation.
"""
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
import structlog

from .config import settings
from ..models import Base

logger = structlog.get_logger()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(database_url, echo=echo)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create the users table if it does not exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready", tables=sorted(Base.metadata.tables))


class DatabaseHealthCheck:
    """Health check utilities for database connections."""

    @staticmethod
    async def check_connection(session_factory: async_sessionmaker) -> bool:
        """Check if database connection is healthy."""
        try:
            async with session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except SQLAlchemyError as e:
            logger.error("Database health check failed", error=str(e))
            return False


async def close_db_connections(bind: AsyncEngine = engine) -> None:
    """Close all database connections on shutdown."""
    await bind.dispose()
    logger.info("Database connections closed")
