# ============================================================================
# APPLICATION HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Application state checks
# PURPOSE: Ledger dispatcher liveness
# CREATED: 06 OCT 2026
# ============================================================================
"""
Application Health Checks

- DispatcherCheck: the ledger dispatcher loop is running and not stuck in
  consecutive failed cycles. Not required for /readyz: the HTTP surface
  works without it, calculations just lag.
"""

import logging

from core.config import get_defaults
from health.core import HealthCheckPlugin, HealthCheckResult
from health.registry import register_check

logger = logging.getLogger(__name__)

# Global reference to dispatcher (set by main app)
_dispatcher = None


def set_dispatcher(dispatcher) -> None:
    """Set dispatcher reference for health checks."""
    global _dispatcher
    _dispatcher = dispatcher


@register_check(category="application", timeout_seconds=2.0, required_for_ready=False)
class DispatcherCheck(HealthCheckPlugin):

    name = "dispatcher"

    async def check(self) -> HealthCheckResult:
        if not get_defaults().dispatcher.enabled:
            return HealthCheckResult.healthy(message="Dispatcher disabled (DISPATCHER_ENABLED=false)")

        if _dispatcher is None:
            return HealthCheckResult.unhealthy(message="Dispatcher not initialized")

        if not _dispatcher.is_running:
            return HealthCheckResult.unhealthy(message="Dispatcher loop not running")

        stats = _dispatcher.stats
        details = {
            "cycles": stats.get("cycles", 0),
            "delivered": stats.get("delivered", 0),
            "skipped": stats.get("skipped", 0),
            "errors": stats.get("errors", 0),
            "last_cycle_at": stats.get("last_cycle_at"),
        }

        consecutive = stats.get("consecutive_errors", 0)
        if consecutive >= get_defaults().dispatcher.max_consecutive_errors:
            return HealthCheckResult.degraded(
                message=f"Dispatcher failing ({consecutive} consecutive cycle errors)",
                **details,
            )

        return HealthCheckResult.healthy(
            message=f"Dispatcher running ({details['cycles']} cycles)",
            **details,
        )


__all__ = ["set_dispatcher", "DispatcherCheck"]
