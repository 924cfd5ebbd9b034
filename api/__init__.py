# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for the traceability core
# CREATED: 06 OCT 2026
# ============================================================================
"""
API Module

FastAPI routers for the traceability core. Services are injected by
main.py at startup through set_services / set_traceability_services.
"""

from .routes import router, set_services
from .traceability_routes import router as traceability_router, set_traceability_services
from .errors import http_error, status_for

__all__ = [
    "router",
    "set_services",
    "traceability_router",
    "set_traceability_services",
    "http_error",
    "status_for",
]
