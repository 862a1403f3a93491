"""Database connection management."""

import asyncio
import logging
import os

import asyncpg
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger("seabot.db")

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")

_pool: Optional[asyncpg.Pool] = None

# Backoff between connection attempts while PostgreSQL comes up
_RETRY_DELAYS = (2, 4, 8, 8, 8)


async def init_db(dsn: str, min_size: int = 2, max_size: int = 10) -> asyncpg.Pool:
    """Create the global connection pool, retrying while the server starts."""
    global _pool
    attempts = len(_RETRY_DELAYS)

    for attempt, delay in enumerate(_RETRY_DELAYS, start=1):
        try:
            _pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
            if attempt > 1:
                logger.info(f"Database connected after {attempt} attempts")
            return _pool
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            if attempt == attempts:
                logger.error(f"Database connection failed after {attempts} attempts: {e}")
                raise
            logger.warning(f"Database not ready (attempt {attempt}/{attempts}): {e}. Retrying in {delay}s...")
            await asyncio.sleep(delay)


async def apply_schema(pool: Optional[asyncpg.Pool] = None):
    """Run schema.sql. Safe to repeat: every statement is IF NOT EXISTS."""
    pool = pool or get_pool()
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        schema = f.read()
    async with pool.acquire() as conn:
        await conn.execute(schema)
    logger.info("Database schema applied")


async def close_db():
    """Close the database connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    """Get the current connection pool."""
    if _pool is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _pool


@asynccontextmanager
async def get_connection():
    """Borrow a connection from the pool."""
    async with get_pool().acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction():
    """Borrow a connection with an open transaction."""
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn
