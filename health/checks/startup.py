# ============================================================================
# STARTUP HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Startup health checks
# PURPOSE: Basic process and configuration checks
# CREATED: 06 OCT 2026
# ============================================================================
"""
Startup Health Checks

- ProcessCheck: always healthy if the check runs
- ConfigCheck: a database connection is configured and the tunable
  settings parse
"""

import os
import platform
import sys

import psutil

from core.config import Defaults
from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check


@register_check(category="startup", timeout_seconds=1.0)
class ProcessCheck(HealthCheckPlugin):
    """Proves the event loop is serving requests."""

    name = "process"

    async def check(self) -> HealthCheckResult:
        memory = psutil.virtual_memory()
        process = psutil.Process()

        return HealthCheckResult.healthy(
            message="Process running",
            python_version=sys.version.split()[0],
            platform=platform.platform(),
            pid=process.pid,
            rss_mb=round(process.memory_info().rss / 1024 / 1024, 1),
            system_memory_percent=memory.percent,
        )


@register_check(category="startup", timeout_seconds=1.0)
class ConfigCheck(HealthCheckPlugin):
    """
    Configuration check.

    Requires DATABASE_URL, or POSTGRES_HOST plus POSTGRES_DB. Also re-reads
    every env-driven default so a malformed override shows up here.
    """

    name = "config"

    async def check(self) -> HealthCheckResult:
        has_url = bool(os.environ.get("DATABASE_URL"))
        has_parts = bool(os.environ.get("POSTGRES_HOST") and os.environ.get("POSTGRES_DB"))
        if not (has_url or has_parts):
            return HealthCheckResult.unhealthy(
                message="Database not configured",
                hint="Set DATABASE_URL or POSTGRES_HOST and POSTGRES_DB",
            )

        try:
            defaults = Defaults.from_env()
        except ValueError as e:
            return HealthCheckResult.unhealthy(message=f"Invalid configuration: {e}")

        return HealthCheckResult.healthy(
            message="Configuration valid",
            schema=defaults.database.schema,
            tie_break=defaults.resolver.tie_break.value,
            dispatcher_enabled=defaults.dispatcher.enabled,
        )


__all__ = ["ProcessCheck", "ConfigCheck"]
