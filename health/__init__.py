# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Health check plugin system
# PURPOSE: Kubernetes health checks and monitoring
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Check Module

- /livez: process alive
- /readyz: required checks pass
- /health: every check, with per-category summary

Usage:
    from health import health_router, register_check

    @register_check(category="application")
    class MyCheck(HealthCheckPlugin):
        name = "mine"

        async def check(self) -> HealthCheckResult:
            return HealthCheckResult.healthy()

    app.include_router(health_router)
"""

from health.core import (
    HealthStatus,
    HealthCheckResult,
    HealthCheckPlugin,
    HealthCheckCategory,
)
from health.registry import HealthCheckRegistry, register_check, get_registry
from health.executor import HealthCheckExecutor
from health.router import health_router

__all__ = [
    "HealthStatus",
    "HealthCheckResult",
    "HealthCheckPlugin",
    "HealthCheckCategory",
    "HealthCheckRegistry",
    "register_check",
    "get_registry",
    "HealthCheckExecutor",
    "health_router",
]
