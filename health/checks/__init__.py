# ============================================================================
# HEALTH CHECK PLUGINS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Health check implementations
# PURPOSE: Concrete checks for the traceability core
# CREATED: 06 OCT 2026
# ============================================================================
"""
Health Check Plugins

Startup (priority 10):      process, config
Database (priority 30):     postgres, schema
Application (priority 40):  dispatcher

Import this module to register all checks:
    import health.checks
"""

from health.checks.startup import ProcessCheck, ConfigCheck
from health.checks.database import PostgresCheck, SchemaCheck, set_pool
from health.checks.application import DispatcherCheck, set_dispatcher

__all__ = [
    "ProcessCheck",
    "ConfigCheck",
    "PostgresCheck",
    "SchemaCheck",
    "DispatcherCheck",
    "set_pool",
    "set_dispatcher",
]
