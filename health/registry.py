# ============================================================================
# HEALTH CHECK REGISTRY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Health check plugin registration
# PURPOSE: Register and discover health check plugins
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Check Registry

Usage:
    @register_check(category="database")
    class PostgresCheck(HealthCheckPlugin):
        ...

    checks = get_registry().get_checks_by_priority()
"""

import logging
from typing import Dict, List, Optional, Type, Union

from health.core import HealthCheckCategory, HealthCheckPlugin

logger = logging.getLogger(__name__)


class HealthCheckRegistry:
    """Named collection of health check instances."""

    def __init__(self):
        self._checks: Dict[str, HealthCheckPlugin] = {}

    def register(self, check: HealthCheckPlugin) -> None:
        if check.name in self._checks:
            logger.warning(f"Overwriting health check: {check.name}")
        self._checks[check.name] = check
        logger.debug(f"Registered health check: {check.name} (priority={check.priority})")

    def unregister(self, name: str) -> bool:
        return self._checks.pop(name, None) is not None

    def get(self, name: str) -> Optional[HealthCheckPlugin]:
        return self._checks.get(name)

    def get_checks_by_priority(self) -> List[HealthCheckPlugin]:
        return sorted(self._checks.values(), key=lambda c: c.priority)

    def get_required_checks(self) -> List[HealthCheckPlugin]:
        """Checks that gate /readyz."""
        return [c for c in self.get_checks_by_priority() if c.required_for_ready]

    def clear(self) -> None:
        self._checks.clear()

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: str) -> bool:
        return name in self._checks


_registry: Optional[HealthCheckRegistry] = None


def get_registry() -> HealthCheckRegistry:
    """Get the global health check registry."""
    global _registry
    if _registry is None:
        _registry = HealthCheckRegistry()
    return _registry


def register_check(
    category: Union[str, HealthCheckCategory, None] = None,
    priority: Optional[int] = None,
    timeout_seconds: Optional[float] = None,
    required_for_ready: Optional[bool] = None,
):
    """
    Class decorator: apply overrides, instantiate, and register globally.

    Example:
        @register_check(category="database", timeout_seconds=5.0)
        class PostgresCheck(HealthCheckPlugin):
            name = "postgres"
    """
    def decorator(cls: Type[HealthCheckPlugin]) -> Type[HealthCheckPlugin]:
        if category is not None:
            cls.category = HealthCheckCategory(category)
        cls.priority = priority if priority is not None else cls.category.default_priority
        if timeout_seconds is not None:
            cls.timeout_seconds = timeout_seconds
        if required_for_ready is not None:
            cls.required_for_ready = required_for_ready

        get_registry().register(cls())
        return cls

    return decorator


__all__ = ["HealthCheckRegistry", "get_registry", "register_check"]
