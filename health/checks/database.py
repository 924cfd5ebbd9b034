# ============================================================================
# DATABASE HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - PostgreSQL and schema checks
# PURPOSE: Pool connectivity and presence of the traceability tables
# CREATED: 06 OCT 2026
# ============================================================================
"""
Database Health Checks

- PostgresCheck: SELECT 1 through the application pool
- SchemaCheck: every table the core writes exists in the schema
"""

import logging
from typing import Optional

from psycopg_pool import AsyncConnectionPool

from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check
from repositories.database import OWNED_TABLES, SCHEMA

logger = logging.getLogger(__name__)

# Set by main app at startup
_pool: Optional[AsyncConnectionPool] = None


def set_pool(pool: Optional[AsyncConnectionPool]) -> None:
    """Set the connection pool used by database checks."""
    global _pool
    _pool = pool


@register_check(category="database", timeout_seconds=5.0)
class PostgresCheck(HealthCheckPlugin):
    """PostgreSQL connectivity through the shared pool."""

    name = "postgres"

    async def check(self) -> HealthCheckResult:
        if _pool is None:
            return HealthCheckResult.unhealthy(message="Connection pool not initialized")

        async with _pool.connection() as conn:
            result = await conn.execute("SELECT 1")
            row = await result.fetchone()

        if not row or row[0] != 1:
            return HealthCheckResult.unhealthy(message="PostgreSQL query returned unexpected result")

        stats = _pool.get_stats()
        return HealthCheckResult.healthy(
            message="PostgreSQL connected",
            pool_size=stats.get("pool_size"),
            pool_available=stats.get("pool_available"),
        )


@register_check(category="database", timeout_seconds=5.0)
class SchemaCheck(HealthCheckPlugin):
    """Owned tables present (run scripts/deploy_schema.py if not)."""

    name = "schema"

    async def check(self) -> HealthCheckResult:
        if _pool is None:
            return HealthCheckResult.unhealthy(message="Connection pool not initialized")

        async with _pool.connection() as conn:
            result = await conn.execute(
                """
                SELECT table_name FROM information_schema.tables
                WHERE table_schema = %s AND table_name = ANY(%s)
                """,
                (SCHEMA, list(OWNED_TABLES)),
            )
            rows = await result.fetchall()

        found = {row[0] for row in rows}
        missing = [t for t in OWNED_TABLES if t not in found]
        if missing:
            return HealthCheckResult.unhealthy(
                message=f"Missing tables in schema {SCHEMA}: {', '.join(missing)}",
                missing=missing,
                hint="Run scripts/deploy_schema.py",
            )

        return HealthCheckResult.healthy(message=f"Schema {SCHEMA} ready", tables=len(found))


__all__ = ["set_pool", "PostgresCheck", "SchemaCheck"]
