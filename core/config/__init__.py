# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 02 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the traceability core.
"""

from core.config.defaults import (
    DatabaseDefaults,
    TraceabilityDefaults,
    ResolverDefaults,
    CalculatorDefaults,
    DispatcherDefaults,
    AggregationDefaults,
    ApiDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "DatabaseDefaults",
    "TraceabilityDefaults",
    "ResolverDefaults",
    "CalculatorDefaults",
    "DispatcherDefaults",
    "AggregationDefaults",
    "ApiDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
