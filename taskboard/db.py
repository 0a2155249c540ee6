"""
Database connection pool for the Postgres datastore.

All database access goes through connection().
Never use pool.acquire() directly outside this module.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from taskboard import config

pool: asyncpg.Pool | None = None


async def init_pool(dsn: str | None = None) -> asyncpg.Pool:
    """
    Initialize the connection pool.
    Called once at application startup when STORAGE_BACKEND=postgres.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=dsn or config.settings.DATABASE_URL,
        min_size=config.settings.DB_POOL_MIN_SIZE,
        max_size=config.settings.DB_POOL_MAX_SIZE,
        command_timeout=config.settings.DB_COMMAND_TIMEOUT,
    )
    return pool


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


@asynccontextmanager
async def connection():
    """
    Acquire a database connection wrapped in a transaction.

    One statement per document write keeps document-level atomicity;
    callers never span a transaction across several documents.

    Usage:
        async with connection() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)

    Yields:
        asyncpg.Connection
    """
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn
