"""Async database connection using SQLAlchemy (supports SQLite and PostgreSQL)."""

import asyncio
import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, InvalidRequestError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Registers the tables on SQLModel.metadata
from freefruit import models  # noqa: F401

logger = logging.getLogger(__name__)


def get_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine with per-dialect pool settings."""
    url = get_database_url(database_url)
    engine_kwargs = {
        "echo": False,
    }

    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_pre_ping"] = True  # Verify connection before checkout
        engine_kwargs["pool_size"] = 10
        engine_kwargs["max_overflow"] = 20  # Projection batches open one session per player
        engine_kwargs["pool_recycle"] = 300
        engine_kwargs["pool_timeout"] = 30
        engine_kwargs["pool_reset_on_return"] = "rollback"

    return create_async_engine(url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the store and the ingestion pipeline."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    logger.info("Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully.")


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    logger.info("Closing database connections...")
    await engine.dispose()
    logger.info("Database connections closed.")


@asynccontextmanager
async def get_session_with_retry(session_factory, max_retries: int = 3, retry_delay: float = 1.0):
    """
    Context manager that provides a session with automatic retry on connection errors.

    Used by scheduled jobs that may hit a stale connection after a database
    restart. Retries only happen on session CREATION; a connection dropping
    mid-execution propagates to the caller.

    Example:
        async with get_session_with_retry(session_factory) as session:
            await session.execute(...)
            await session.commit()
    """
    current_delay = retry_delay
    session = None

    for attempt in range(max_retries):
        try:
            session = session_factory()
            # Test the connection is alive before yielding
            await session.connection()
            break
        except (InterfaceError, OperationalError, InvalidRequestError) as e:
            if session is not None:
                await session.close()
                session = None

            error_msg = str(e).lower()
            retryable = "closed" in error_msg or "connection" in error_msg or "terminated" in error_msg
            if retryable and attempt < max_retries - 1:
                logger.warning(
                    f"Database connection error (attempt {attempt + 1}/{max_retries}): {e}. "
                    f"Retrying in {current_delay}s..."
                )
                await asyncio.sleep(current_delay)
                current_delay *= 2
                continue
            raise

    try:
        yield session
    finally:
        await session.close()
