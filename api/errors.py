# ============================================================================
# API ERROR MAPPING
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Domain error to HTTP status translation
# PURPOSE: One place deciding which TraceabilityError becomes which status
# CREATED: 06 OCT 2026
# ============================================================================
"""
Domain errors to HTTP:

    NotFoundError          404
    CycleError             409
    InvalidActorError      400
    ValidationError        400
    PersistenceError       500
"""

import logging
from typing import Any, Dict

from fastapi import HTTPException

from core.errors import (
    CycleError,
    InvalidActorError,
    NotFoundError,
    PayloadValidationError,
    PersistenceError,
    ReferentialError,
    TraceabilityError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def status_for(error: TraceabilityError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, CycleError):
        return 409
    if isinstance(error, (InvalidActorError, ValidationError, ReferentialError)):
        return 400
    return 500


def http_error(error: TraceabilityError) -> HTTPException:
    """Build the HTTPException for a domain error."""
    status = status_for(error)
    detail: Dict[str, Any] = {"error": type(error).__name__, "message": str(error)}

    field = getattr(error, "field", None)
    if field:
        detail["field"] = field
    if isinstance(error, PayloadValidationError):
        detail["fields"] = error.fields
    if isinstance(error, CycleError):
        detail["path"] = error.path
    if isinstance(error, PersistenceError):
        logger.error(f"Persistence failure ({error.operation}): {error}")
        detail["retryable"] = True

    return HTTPException(status, detail)
