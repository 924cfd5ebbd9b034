# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Foundation - Core enums shared across layers
# PURPOSE: VTI types and states, event types, calculation outcomes, periods
# CREATED: 02 OCT 2026
# ============================================================================
"""
Base contracts for the traceability core.

These enums cross every boundary (PostgreSQL rows, HTTP bodies, Python
services) and are stored by value.
"""

from enum import Enum
from typing import Dict, FrozenSet


# ============================================================================
# VTI ENUMS
# ============================================================================

class VtiType(str, Enum):
    """Kinds of node in the provenance graph."""
    USER = "user"
    ORGANIZATION = "organization"
    FARM_FIELD = "farm_field"
    FARM_BATCH = "farm_batch"
    PRODUCT_LOT = "product_lot"
    PROCESSED_PRODUCT = "processed_product"

    def is_actor(self) -> bool:
        """Only users and organizations may perform ledger events."""
        return self in (VtiType.USER, VtiType.ORGANIZATION)


class VtiStatus(str, Enum):
    """
    VTI lifecycle states.

    State transitions:
        ACTIVE <-> IN_TRANSIT -> PROCESSED -> SOLD -> ARCHIVED
        any non-terminal state -> ARCHIVED
    """
    ACTIVE = "active"
    IN_TRANSIT = "in_transit"
    PROCESSED = "processed"
    SOLD = "sold"
    ARCHIVED = "archived"

    def is_terminal(self) -> bool:
        return self == VtiStatus.ARCHIVED


VTI_STATUS_TRANSITIONS: Dict[VtiStatus, FrozenSet[VtiStatus]] = {
    VtiStatus.ACTIVE: frozenset({
        VtiStatus.IN_TRANSIT, VtiStatus.PROCESSED, VtiStatus.SOLD, VtiStatus.ARCHIVED,
    }),
    VtiStatus.IN_TRANSIT: frozenset({
        VtiStatus.ACTIVE, VtiStatus.PROCESSED, VtiStatus.SOLD, VtiStatus.ARCHIVED,
    }),
    VtiStatus.PROCESSED: frozenset({
        VtiStatus.IN_TRANSIT, VtiStatus.SOLD, VtiStatus.ARCHIVED,
    }),
    VtiStatus.SOLD: frozenset({VtiStatus.ARCHIVED}),
    VtiStatus.ARCHIVED: frozenset(),
}


# ============================================================================
# LEDGER ENUMS
# ============================================================================

class TraceEventType(str, Enum):
    """
    Recognized ledger event types.

    The ledger's event_type column is an open string; these are the values
    the core knows how to interpret.
    """
    PLANTED = "PLANTED"
    INPUT_APPLIED = "INPUT_APPLIED"
    OBSERVED = "OBSERVED"
    HARVESTED = "HARVESTED"
    TRANSPORTED = "TRANSPORTED"
    PROCESSED = "PROCESSED"
    SOLD = "SOLD"


# Event types the carbon calculator acts on
CALCULABLE_EVENT_TYPES: FrozenSet[str] = frozenset({
    TraceEventType.INPUT_APPLIED.value,
    TraceEventType.TRANSPORTED.value,
})

# Event types linked into a harvest batch's provenance
PRE_HARVEST_EVENT_TYPES: FrozenSet[str] = frozenset({
    TraceEventType.PLANTED.value,
    TraceEventType.INPUT_APPLIED.value,
    TraceEventType.OBSERVED.value,
})


# ============================================================================
# EMISSION ENUMS
# ============================================================================

class EmissionActivityType(str, Enum):
    """Activity families an emission factor can apply to."""
    INPUT_APPLIED = "INPUT_APPLIED"
    TRANSPORTED = "TRANSPORTED"
    ENERGY_USE = "ENERGY_USE"
    WASTE = "WASTE"


class EmissionUnit(str, Enum):
    KG_CO2E = "kg CO2e"
    TON_CO2E = "ton CO2e"
    G_CO2E = "g CO2e"


GLOBAL_REGION = "Global"


class FactorTieBreak(str, Enum):
    """How to choose between active factors sharing the maximum year."""
    LATEST_INSERTED = "latest_inserted"
    EARLIEST_INSERTED = "earliest_inserted"
    HIGHEST_VALUE = "highest_value"


# ============================================================================
# CALCULATION ENUMS
# ============================================================================

class CalculationStatus(str, Enum):
    """Outcome of delivering one ledger event to the carbon calculator."""
    CALCULATED = "calculated"
    DUPLICATE = "duplicate"
    NOT_RELEVANT = "not_relevant"
    INVALID_PAYLOAD = "invalid_payload"
    FACTOR_NOT_FOUND = "factor_not_found"
    PENDING = "pending"

    def is_final(self) -> bool:
        """True if the event needs no further delivery."""
        return self in (
            CalculationStatus.CALCULATED,
            CalculationStatus.DUPLICATE,
            CalculationStatus.NOT_RELEVANT,
            CalculationStatus.PENDING,
        )


class MarkerStatus(str, Enum):
    """Audit marker for relevant events that produced no record."""
    PENDING = "pending"
    SKIPPED = "skipped"


# ============================================================================
# AGGREGATION ENUMS
# ============================================================================

class PeriodType(str, Enum):
    """Dashboard lookback window."""
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class CertificationStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    PENDING = "Pending"
    SUSPENDED = "Suspended"


__all__ = [
    "VtiType",
    "VtiStatus",
    "VTI_STATUS_TRANSITIONS",
    "TraceEventType",
    "CALCULABLE_EVENT_TYPES",
    "PRE_HARVEST_EVENT_TYPES",
    "EmissionActivityType",
    "EmissionUnit",
    "GLOBAL_REGION",
    "FactorTieBreak",
    "CalculationStatus",
    "MarkerStatus",
    "PeriodType",
    "CertificationStatus",
]
