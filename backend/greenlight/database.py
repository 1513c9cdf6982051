"""
Greenlight — Database Session Management
=========================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   One engine per process with a bounded connection pool; one session per
       request that commits on success and rolls back on error.

Connection Pooling:
    pool_size     = DB_MAX_IDLE_CONNS   connections kept open between requests
    max_overflow  = DB_MAX_OPEN_CONNS - DB_MAX_IDLE_CONNS
    pool_recycle  = DB_MAX_IDLE_TIME    seconds before a connection is replaced
    pool_pre_ping                       stale connections are detected before use
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from greenlight.config import settings

logger = logging.getLogger(__name__)


def engine_options() -> Dict[str, Any]:
    """Keyword arguments for create_async_engine derived from settings."""
    options: Dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.log_level == "DEBUG",
    }
    # SQLite (used by ad-hoc local runs) does not accept QueuePool sizing.
    if not settings.database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=int(settings.db_max_idle_seconds),
        )
    return options


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **engine_options())

# expire_on_commit=False: response models are built from ORM objects after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic autogenerate."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    On success the transaction is committed; on any exception it is rolled
    back and the exception re-raised for the global handlers. The session is
    always closed, returning its connection to the pool.

    Example usage in a route:
        @router.get("/v1/movies/{movie_id}")
        async def show_movie(movie_id: str, db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def ping_database(timeout: float = 5.0) -> None:
    """
    Round-trip ``SELECT 1`` against the pool.

    Raises:
        asyncio.TimeoutError: The database did not answer within ``timeout``.
        sqlalchemy.exc.SQLAlchemyError / OSError: The connection failed.
    """
    async def _ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    await asyncio.wait_for(_ping(), timeout=timeout)


async def dispose_engine() -> None:
    """Close every pooled connection; called from the application lifespan."""
    await engine.dispose()
    logger.info("Database connection pool closed")
