# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for graph walks, resolution, dispatch, aggregation
# CREATED: 02 OCT 2026
# ============================================================================
"""
Configuration Defaults

Sensible defaults for the traceability core, overridable via environment
variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional, Tuple

from core.contracts import FactorTieBreak, PeriodType, TraceEventType


@dataclass(frozen=True)
class DatabaseDefaults:
    """Connection pool sizing and schema name."""
    schema: str = "traceability"
    pool_min_size: int = 2
    pool_max_size: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseDefaults":
        return cls(
            schema=os.getenv("DB_SCHEMA", "traceability"),
            pool_min_size=int(os.getenv("DB_POOL_MIN", 2)),
            pool_max_size=int(os.getenv("DB_POOL_MAX", 10)),
        )


@dataclass(frozen=True)
class TraceabilityDefaults:
    """
    Defaults for the VTI registry and ledger.

    max_graph_depth bounds the cycle-detection walk; harvest_lookback_days
    bounds the pre-harvest provenance query.
    """
    max_graph_depth: int = 64
    harvest_lookback_days: int = 365
    event_page_size: int = 200
    public_batch_limit: int = 10

    @property
    def harvest_lookback(self) -> timedelta:
        return timedelta(days=self.harvest_lookback_days)

    @classmethod
    def from_env(cls) -> "TraceabilityDefaults":
        return cls(
            max_graph_depth=int(os.getenv("MAX_GRAPH_DEPTH", 64)),
            harvest_lookback_days=int(os.getenv("HARVEST_LOOKBACK_DAYS", 365)),
            event_page_size=int(os.getenv("EVENT_PAGE_SIZE", 200)),
            public_batch_limit=int(os.getenv("PUBLIC_BATCH_LIMIT", 10)),
        )


@dataclass(frozen=True)
class ResolverDefaults:
    """Emission factor resolution settings."""
    tie_break: FactorTieBreak = FactorTieBreak.LATEST_INSERTED

    @classmethod
    def from_env(cls) -> "ResolverDefaults":
        return cls(
            tie_break=FactorTieBreak(
                os.getenv("FACTOR_TIE_BREAK", FactorTieBreak.LATEST_INSERTED.value)
            ),
        )


@dataclass(frozen=True)
class CalculatorDefaults:
    """
    Carbon calculator settings.

    categories maps event type -> (category, subcategory) stamped on records.
    """
    region_lookup_timeout_sec: float = 2.0
    data_source: str = "traceability_event"
    categories: Dict[str, Tuple[str, str]] = field(default_factory=lambda: {
        TraceEventType.INPUT_APPLIED.value: ("Agriculture", "Input Application"),
        TraceEventType.TRANSPORTED.value: ("Logistics", "Transport"),
    })

    def category_for(self, event_type: str) -> Tuple[str, str]:
        return self.categories.get(event_type, ("Agriculture", "Other"))

    @classmethod
    def from_env(cls) -> "CalculatorDefaults":
        return cls(
            region_lookup_timeout_sec=float(os.getenv("REGION_LOOKUP_TIMEOUT_SEC", 2.0)),
        )


@dataclass(frozen=True)
class DispatcherDefaults:
    """Ledger dispatcher (calculation trigger) loop settings."""
    enabled: bool = True
    poll_interval_sec: float = 2.0
    batch_size: int = 50
    max_consecutive_errors: int = 10

    @classmethod
    def from_env(cls) -> "DispatcherDefaults":
        return cls(
            enabled=os.getenv("DISPATCHER_ENABLED", "true").lower() == "true",
            poll_interval_sec=float(os.getenv("DISPATCHER_POLL_INTERVAL", 2.0)),
            batch_size=int(os.getenv("DISPATCHER_BATCH_SIZE", 50)),
            max_consecutive_errors=int(os.getenv("DISPATCHER_MAX_ERRORS", 10)),
        )


@dataclass(frozen=True)
class AggregationDefaults:
    """Dashboard aggregation settings."""
    period_days: Dict[PeriodType, int] = field(default_factory=lambda: {
        PeriodType.MONTH: 30,
        PeriodType.QUARTER: 90,
        PeriodType.YEAR: 365,
    })
    default_period: PeriodType = PeriodType.MONTH
    practice_limit: int = 10
    directory_timeout_sec: float = 3.0
    unit: str = "kg CO2e"

    def window_for(self, period: PeriodType) -> timedelta:
        return timedelta(days=self.period_days[period])

    @classmethod
    def from_env(cls) -> "AggregationDefaults":
        return cls(
            practice_limit=int(os.getenv("DASHBOARD_PRACTICE_LIMIT", 10)),
            directory_timeout_sec=float(os.getenv("DIRECTORY_TIMEOUT_SEC", 3.0)),
        )


@dataclass(frozen=True)
class ApiDefaults:
    """HTTP surface settings."""
    identity_header: str = "X-Authenticated-User"
    profile_service_url: Optional[str] = None
    profile_service_timeout_sec: float = 2.0

    @classmethod
    def from_env(cls) -> "ApiDefaults":
        return cls(
            identity_header=os.getenv("IDENTITY_HEADER", "X-Authenticated-User"),
            profile_service_url=os.getenv("PROFILE_SERVICE_URL") or None,
            profile_service_timeout_sec=float(os.getenv("PROFILE_SERVICE_TIMEOUT_SEC", 2.0)),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    database: DatabaseDefaults = field(default_factory=DatabaseDefaults)
    traceability: TraceabilityDefaults = field(default_factory=TraceabilityDefaults)
    resolver: ResolverDefaults = field(default_factory=ResolverDefaults)
    calculator: CalculatorDefaults = field(default_factory=CalculatorDefaults)
    dispatcher: DispatcherDefaults = field(default_factory=DispatcherDefaults)
    aggregation: AggregationDefaults = field(default_factory=AggregationDefaults)
    api: ApiDefaults = field(default_factory=ApiDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            database=DatabaseDefaults.from_env(),
            traceability=TraceabilityDefaults.from_env(),
            resolver=ResolverDefaults.from_env(),
            calculator=CalculatorDefaults.from_env(),
            dispatcher=DispatcherDefaults.from_env(),
            aggregation=AggregationDefaults.from_env(),
            api=ApiDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


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
