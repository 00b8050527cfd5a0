"""
Database connection and pool management for the remote participant table
"""

import asyncpg
import logging
from typing import Optional

from config.settings import DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_COMMAND_TIMEOUT

logger = logging.getLogger(__name__)


async def create_pool(database_url: str) -> asyncpg.Pool:
    """Create a connection pool and verify it with a trivial query"""
    pool = await asyncpg.create_pool(
        database_url,
        min_size=DB_POOL_MIN_SIZE,
        max_size=DB_POOL_MAX_SIZE,
        command_timeout=DB_COMMAND_TIMEOUT,
        statement_cache_size=0  # Fix for pgbouncer compatibility
    )

    # Test connection
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception:
        await pool.close()
        raise

    logger.info("Database pool initialized successfully")
    return pool


async def close_pool(pool: Optional[asyncpg.Pool]):
    """Close a connection pool if one was opened"""
    if pool:
        await pool.close()
    logger.info("Database connections closed")


async def open_listener_connection(database_url: str) -> asyncpg.Connection:
    """Open a dedicated connection for LISTEN/NOTIFY (pooled connections can't hold listeners)"""
    conn = await asyncpg.connect(database_url, statement_cache_size=0)
    logger.info("Database listener connection opened")
    return conn
