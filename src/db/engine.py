"""Database and Redis connections for Tarifbot.

PostgreSQL holds three small tables (salary inquiries, form drafts, audit
log) and sees at most a couple of short writes per chat turn, so the pool is
sized for a request/response API rather than a worker fleet.

Redis is optional. It only backs the validation retry counters when
``INTERVIEW_VALIDATION_STORE=redis``; the client is created on first use and
never opened otherwise.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.config import settings

logger = logging.getLogger(__name__)

# ── PostgreSQL ───────────────────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=False,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    pool_timeout=settings.db.pool_timeout_seconds,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for the admin routes: one session per request.

    The admin routes only read, so nothing is committed here; an exception
    rolls back whatever the request touched.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# ── Redis (validation store only) ────────────────────────────────────

_redis_client: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """Return the shared Redis client, connecting lazily on first call."""
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(settings.db.redis_url, decode_responses=True)
        logger.info("Redis client created for the validation store")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


# ── Lifespan ─────────────────────────────────────────────────────────


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open the pool at startup and release every connection at shutdown.

    Outside production the tables are created directly from the models;
    production schemas come from the Alembic migration.
    """
    async with engine.begin() as conn:
        import src.models  # noqa: F401  registers every table on Base.metadata
        from src.models.base import Base

        if not settings.is_production:
            await conn.run_sync(Base.metadata.create_all)
    try:
        yield
    finally:
        await engine.dispose()
        await close_redis()
