# ============================================================================
# CARBON FOOTPRINT MODELS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain model - Derived emission facts
# PURPOSE: Footprint records, calculation markers and calculator outcomes
# CREATED: 02 OCT 2026
# ============================================================================
"""
Carbon Footprint Models

CarbonFootprintRecord is an immutable fact derived from one ledger event.
``source_event_id`` is UNIQUE, so at most one record exists per event no
matter how many times the event is delivered.

CalculationMarker records that a relevant event produced no record
(transport pending, factor missing, malformed payload).

CalculationOutcome is what the calculator returns to its caller; it is
never persisted.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.contracts import CalculationStatus, MarkerStatus
from core.models.emission_factor import EmissionFactor


class EmissionFactorSnapshot(BaseModel):
    """Copy of the factor used, frozen into the record."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    factor_id: str
    value: float
    unit: str
    source: str

    @classmethod
    def of(cls, factor: EmissionFactor) -> "EmissionFactorSnapshot":
        return cls(
            factor_id=factor.factor_id,
            value=factor.value,
            unit=factor.unit,
            source=factor.source,
        )


class CarbonFootprintRecord(BaseModel):
    """
    Emissions attributed to one ledger event.

    Maps to: traceability.carbon_footprint_records
    """

    # SQL DDL METADATA
    __sql_table__: ClassVar[str] = "carbon_footprint_records"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["record_id"]
    __sql_unique__: ClassVar[List[tuple]] = [
        ("uq_carbon_records_source_event", ["source_event_id"]),
    ]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_carbon_records_user_time", ["user_ref", "timestamp"]),
        ("idx_carbon_records_vti", ["vti_id"], "vti_id IS NOT NULL"),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    record_id: str = Field(default_factory=lambda: str(uuid.uuid4()), max_length=64, alias="id")
    source_event_id: str = Field(..., max_length=64)
    vti_id: Optional[str] = Field(default=None, max_length=64)
    user_ref: str = Field(..., max_length=64)
    event_type: str = Field(..., max_length=64)
    timestamp: datetime
    calculated_emissions: float = Field(..., ge=0)
    unit: str = Field(..., max_length=32)
    emission_factor_used: EmissionFactorSnapshot
    data_source: str = Field(default="traceability_event", max_length=64)
    region: str = Field(..., max_length=100)
    category: str = Field(..., max_length=100)
    subcategory: str = Field(..., max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CalculationMarker(BaseModel):
    """
    Audit row for a relevant event with no footprint record.

    Maps to: traceability.carbon_calculation_markers
    """

    # SQL DDL METADATA
    __sql_table__: ClassVar[str] = "carbon_calculation_markers"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["event_id"]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_calc_markers_pending", ["status"], "status = 'pending'"),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    event_id: str = Field(..., max_length=64)
    vti_id: Optional[str] = Field(default=None, max_length=64)
    event_type: str = Field(..., max_length=64)
    status: MarkerStatus
    reason: str = Field(..., max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CalculationOutcome(BaseModel):
    """Result of delivering one event to the calculator."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    event_id: str
    status: CalculationStatus
    message: str
    record: Optional[CarbonFootprintRecord] = None
    marker: Optional[CalculationMarker] = None
    invalid_fields: List[str] = Field(default_factory=list)
    region: Optional[str] = None


__all__ = [
    "EmissionFactorSnapshot",
    "CarbonFootprintRecord",
    "CalculationMarker",
    "CalculationOutcome",
]
