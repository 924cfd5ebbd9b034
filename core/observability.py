# ============================================================================
# OBSERVABILITY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Metrics and warning signals
# PURPOSE: In-process metrics plus the soft-failure signal sink
# CREATED: 02 OCT 2026
# ============================================================================
"""
Observability

In-process metrics collection for the carbon pipeline, and the warning
signal used for soft failures (missing emission factor, malformed payload,
region lookup timeouts). Signals are both logged and counted so that an
exporter or the /health endpoint can surface them.

Usage:
    from core.observability import track_metric, signal_warning

    track_metric("carbon.records_created", tags={"event_type": "INPUT_APPLIED"})
    signal_warning("emission_factor_not_found", region="Kenya", input_type="urea")
"""

import os
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for observability."""
    service_name: str = "traceability-core"
    environment: str = "development"
    enable_metrics: bool = True
    max_points: int = 10_000

    @classmethod
    def from_env(cls) -> "ObservabilityConfig":
        """Create config from environment variables."""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "traceability-core"),
            environment=os.getenv("ENVIRONMENT", "development"),
            enable_metrics=os.getenv("ENABLE_METRICS", "true").lower() == "true",
            max_points=int(os.getenv("METRICS_MAX_POINTS", "10000")),
        )


# ============================================================================
# METRICS
# ============================================================================

@dataclass
class MetricPoint:
    """A single metric data point."""
    name: str
    value: float
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)
    unit: str = ""


def _counter_key(name: str, tags: Optional[Dict[str, str]]) -> str:
    if not tags:
        return name
    rendered = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """
    Collects counters and histograms.

    Points are kept in a bounded buffer; counters are cumulative.
    """

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self.config = config or ObservabilityConfig()
        self._metrics: List[MetricPoint] = []
        self._counters: Dict[str, float] = {}

    def _append(self, point: MetricPoint) -> None:
        if not self.config.enable_metrics:
            return
        self._metrics.append(point)
        overflow = len(self._metrics) - self.config.max_points
        if overflow > 0:
            del self._metrics[:overflow]

    def counter(
        self,
        name: str,
        value: float = 1.0,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        """Increment a counter metric."""
        key = _counter_key(name, tags)
        self._counters[key] = self._counters.get(key, 0) + value
        self._append(MetricPoint(name=name, value=value, tags=tags or {}))
        logger.debug(f"Metric counter: {key}+={value}")

    def histogram(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        unit: str = "ms",
    ) -> None:
        """Record a histogram value."""
        self._append(MetricPoint(name=name, value=value, tags=tags or {}, unit=unit))
        logger.debug(f"Metric histogram: {name}={value}{unit}")

    @contextmanager
    def timer(self, name: str, tags: Optional[Dict[str, str]] = None):
        """Time the enclosed block into a histogram (milliseconds)."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.histogram(name, (time.perf_counter() - start) * 1000, tags=tags, unit="ms")

    def counter_value(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        """Current cumulative value of a counter (0 if never incremented)."""
        return self._counters.get(_counter_key(name, tags), 0)

    def counters(self) -> Dict[str, float]:
        return dict(self._counters)

    def get_metrics(self) -> List[MetricPoint]:
        """Get all buffered metric points."""
        return self._metrics.copy()

    def clear(self) -> None:
        """Clear buffered points and counters."""
        self._metrics.clear()
        self._counters.clear()


# ============================================================================
# GLOBAL INSTANCES
# ============================================================================

_config: Optional[ObservabilityConfig] = None
_metrics: Optional[MetricsCollector] = None


def initialize(config: Optional[ObservabilityConfig] = None) -> None:
    """Initialize observability (uses env vars if no config is given)."""
    global _config, _metrics

    _config = config or ObservabilityConfig.from_env()
    _metrics = MetricsCollector(_config)

    logger.info(
        f"Observability initialized: service={_config.service_name}, "
        f"environment={_config.environment}, metrics={_config.enable_metrics}"
    )


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    if _metrics is None:
        initialize()
    return _metrics


def track_metric(
    name: str,
    value: float = 1.0,
    tags: Optional[Dict[str, str]] = None,
) -> None:
    """Increment a counter on the global collector."""
    get_metrics().counter(name, value, tags)


def signal_warning(signal: str, **details: Any) -> None:
    """
    Surface a soft failure.

    Logs at WARNING and increments ``warnings.<signal>``. Never raises.
    """
    logger.warning(f"Signal {signal}: {details}", extra={"extra": {"signal": signal, **details}})
    get_metrics().counter(f"warnings.{signal}")


__all__ = [
    "ObservabilityConfig",
    "MetricPoint",
    "MetricsCollector",
    "initialize",
    "get_metrics",
    "track_metric",
    "signal_warning",
]
