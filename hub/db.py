"""
Database connection pool and the dedicated LISTEN connection.

All database access goes through conn() or listen_connection().
Never use pool.acquire() directly outside this module.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from hub.config import settings

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    """
    Initialize the connection pool.
    Called once at application startup.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=2,
        max_size=20,
        command_timeout=60,
        init=_init_connection,
    )


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """
    Initialize each new connection.
    Entry ids are opaque strings to the rest of the app, so UUIDs decode to str.
    """
    await conn.set_type_codec(
        "uuid",
        encoder=str,
        decoder=str,
        schema="pg_catalog",
    )


@asynccontextmanager
async def conn():
    """
    Acquire a pooled connection inside a transaction.

    Usage:
        async with conn() as c:
            rows = await c.fetch("SELECT * FROM entries")

    Everything done on the connection commits together or not at all.
    """
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as c:
        async with c.transaction():
            yield c


async def listen_connection() -> asyncpg.Connection:
    """
    Open a standalone connection for LISTEN.

    Kept out of the pool: a listening connection must stay checked out for
    the life of the subscription. The caller closes it.
    """
    c = await asyncpg.connect(dsn=settings.DATABASE_URL)
    await _init_connection(c)
    return c
