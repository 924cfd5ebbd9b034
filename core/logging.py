# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across registry, ledger and carbon pipeline
# CREATED: 02 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted logging for the traceability service.

Features:
- Contextual fields (vti_id, event_id, user_id, correlation_id)
- Context carried per asyncio task (contextvars), not per thread
- JSON output for log aggregation, human output for development
- Named checkpoints for pipeline milestones

Usage:
    from core.logging import configure_logging, log_context

    configure_logging(level="INFO", json_output=True)

    with log_context(event_id=event.event_id, vti_id=event.vti_id):
        logger.info("Calculating footprint")
"""

import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union


@dataclass
class LogContext:
    """Contextual fields attached to every log line emitted inside a log_context block."""
    vti_id: Optional[str] = None
    event_id: Optional[str] = None
    user_id: Optional[str] = None
    correlation_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_context_stack: contextvars.ContextVar[Tuple[LogContext, ...]] = contextvars.ContextVar(
    "traceability_log_context", default=()
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _context_stack.get()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Unknown keyword arguments land in ``extra``.

    Example:
        with log_context(vti_id="batch-1", event_id="evt-9"):
            logger.info("Appending event")
    """
    parent = get_current_context()
    known = {"vti_id", "event_id", "user_id", "correlation_id", "component", "operation"}
    new_context = LogContext(
        **{name: kwargs.get(name, getattr(parent, name)) for name in known},
        extra={
            **parent.extra,
            **kwargs.get("extra", {}),
            **{k: v for k, v in kwargs.items() if k not in known and k != "extra"},
        },
    )

    token = _context_stack.set(_context_stack.get() + (new_context,))
    try:
        yield new_context
    finally:
        _context_stack.reset(token)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_context: bool = True, include_source: bool = True):
        super().__init__()
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": _utc_now_iso(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if getattr(record, "extra", None):
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.vti_id:
            context_parts.append(f"vti={context.vti_id}")
        if context.event_id:
            context_parts.append(f"event={context.event_id}")
        if context.user_id:
            context_parts.append(f"user={context.user_id}")
        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        extra_str = ""
        if getattr(record, "extra", None):
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {record.getMessage()}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that attaches the current log_context to every record."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.update(get_current_context().to_dict())
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger (e.g. get_logger(__name__))."""
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    include_source: bool = True,
) -> None:
    """
    Configure root logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (also enabled by LOG_FORMAT=json)
        include_source: Include source file/line info in JSON output
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True, include_source=include_source)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # psycopg pool is chatty at INFO
    logging.getLogger("psycopg.pool").setLevel(max(level, logging.WARNING))


def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named pipeline milestone (e.g. "footprint_recorded").

    Context fields from the enclosing log_context are copied into the payload.
    """
    if logger is None:
        logger = logging.getLogger("checkpoint")

    checkpoint_data: Dict[str, Any] = {"checkpoint": name, "timestamp": _utc_now_iso()}
    checkpoint_data.update(get_current_context().to_dict())
    if data:
        checkpoint_data["data"] = data

    logger.info(f"CHECKPOINT: {name}", extra={"extra": checkpoint_data})


__all__ = [
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
