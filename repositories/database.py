# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Provide connection pooling for psycopg3 async
# CREATED: 03 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
One pool per application; services receive it explicitly.

Connection settings come from DATABASE_URL or the POSTGRES_* variables.

Usage:
    from repositories.database import init_pool

    pool = await init_pool()
    async with pool.connection() as conn:
        result = await conn.execute("SELECT 1")
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from psycopg import sql as psycopg_sql
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def _safe_conninfo(conninfo: str) -> str:
    """Strip credentials before logging."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: int = 2,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    conninfo = connection_string or get_connection_string()
    logger.info(f"Initializing connection pool: {_safe_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


@asynccontextmanager
async def get_connection():
    """
    Get a connection from the global pool.

    Usage:
        async with get_connection() as conn:
            await conn.execute(...)
    """
    pool = await get_pool()
    async with pool.connection() as conn:
        yield conn


# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

SCHEMA = os.environ.get("DB_SCHEMA", "traceability")

# Table identifiers, for use with psycopg sql.SQL().format()
TABLE_VTIS = psycopg_sql.Identifier(SCHEMA, "vti_registry")
TABLE_EVENTS = psycopg_sql.Identifier(SCHEMA, "traceability_events")
TABLE_FACTORS = psycopg_sql.Identifier(SCHEMA, "emission_factors")
TABLE_CARBON_RECORDS = psycopg_sql.Identifier(SCHEMA, "carbon_footprint_records")
TABLE_CALC_MARKERS = psycopg_sql.Identifier(SCHEMA, "carbon_calculation_markers")

# Platform-owned, read-only
TABLE_PRACTICES = psycopg_sql.Identifier(SCHEMA, "sustainable_practices")
TABLE_CERTIFICATIONS = psycopg_sql.Identifier(SCHEMA, "certifications")

OWNED_TABLES = (
    "vti_registry",
    "traceability_events",
    "emission_factors",
    "carbon_footprint_records",
    "carbon_calculation_markers",
)
