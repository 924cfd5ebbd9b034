# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# CREATED: 02 OCT 2026
# ============================================================================

from core.contracts import VtiType, VtiStatus, TraceEventType, CalculationStatus, PeriodType
from core.errors import (
    TraceabilityError,
    ValidationError,
    NotFoundError,
    CycleError,
    PersistenceError,
)
from core.models import Vti, TraceabilityEvent, EmissionFactor, CarbonFootprintRecord

__all__ = [
    # Enums
    "VtiType",
    "VtiStatus",
    "TraceEventType",
    "CalculationStatus",
    "PeriodType",
    # Errors
    "TraceabilityError",
    "ValidationError",
    "NotFoundError",
    "CycleError",
    "PersistenceError",
    # Models
    "Vti",
    "TraceabilityEvent",
    "EmissionFactor",
    "CarbonFootprintRecord",
]
