# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# CREATED: 02 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the traceability core.
Models define SQL metadata via __sql_* ClassVar attributes for DDL generation.

Single Source of Truth Pattern:
    - Pydantic models define structure
    - PydanticToSQL reads __sql_* metadata
    - PostgreSQL schema generated from models
"""

from core.models.vti import Vti, FarmBatchMetadata, CARBON_FOOTPRINT_KEY
from core.models.events import (
    GeoLocation,
    EventPayload,
    InputAppliedPayload,
    TransportedPayload,
    PlantedPayload,
    ObservedPayload,
    HarvestedPayload,
    UnknownPayload,
    parse_payload,
    TraceEventInput,
    TraceabilityEvent,
    ActorSummary,
    HistoryEntry,
    VtiHistory,
    PublicBatchSummary,
)
from core.models.emission_factor import EmissionFactor, FactorQuery
from core.models.carbon import (
    EmissionFactorSnapshot,
    CarbonFootprintRecord,
    CalculationMarker,
    CalculationOutcome,
)
from core.models.sustainability import (
    WindowTotals,
    SustainabilitySummary,
    PracticeImpact,
    SustainablePractice,
    Certification,
    SustainabilityDashboard,
)

__all__ = [
    # Registry
    "Vti",
    "FarmBatchMetadata",
    "CARBON_FOOTPRINT_KEY",
    # Ledger
    "GeoLocation",
    "EventPayload",
    "InputAppliedPayload",
    "TransportedPayload",
    "PlantedPayload",
    "ObservedPayload",
    "HarvestedPayload",
    "UnknownPayload",
    "parse_payload",
    "TraceEventInput",
    "TraceabilityEvent",
    "ActorSummary",
    "HistoryEntry",
    "VtiHistory",
    "PublicBatchSummary",
    # Emission factors
    "EmissionFactor",
    "FactorQuery",
    # Carbon
    "EmissionFactorSnapshot",
    "CarbonFootprintRecord",
    "CalculationMarker",
    "CalculationOutcome",
    # Sustainability
    "WindowTotals",
    "SustainabilitySummary",
    "PracticeImpact",
    "SustainablePractice",
    "Certification",
    "SustainabilityDashboard",
]
