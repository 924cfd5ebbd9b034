# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation (camelCase on the wire)
# CREATED: 06 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API. Field names are snake_case in
Python and camelCase in JSON; both spellings are accepted on input.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from core.models.events import GeoLocation


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ============================================================================
# CARBON FOOTPRINT TRIGGER
# ============================================================================

class CarbonEventData(ApiModel):
    """Ledger event as delivered to POST /carbon-footprint."""
    event_type: str = Field(..., min_length=1, max_length=64)
    vti_id: str = Field(..., min_length=1, max_length=64)
    actor_ref: Optional[str] = Field(default=None, max_length=64)
    user_ref: Optional[str] = Field(default=None, max_length=64)
    timestamp: Optional[datetime] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    farm_field_id: Optional[str] = None

    @model_validator(mode="after")
    def _require_actor(self) -> "CarbonEventData":
        if not (self.actor_ref or self.user_ref):
            raise ValueError("actorRef or userRef is required")
        return self


class CarbonFootprintRequest(ApiModel):
    event_id: str = Field(..., min_length=1, max_length=64)
    event_data: CarbonEventData

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        json_schema_extra={
            "examples": [
                {
                    "eventId": "evt-001",
                    "eventData": {
                        "eventType": "INPUT_APPLIED",
                        "vtiId": "field-42",
                        "actorRef": "farmer-7",
                        "payload": {"inputType": "Nitrogen Fertilizer", "quantity": 50, "unit": "kg"},
                    },
                }
            ]
        },
    )


# ============================================================================
# VTI REGISTRY
# ============================================================================

class VtiCreate(ApiModel):
    """Request to register a VTI."""
    type: str = Field(..., description="user | organization | farm_field | farm_batch | ...")
    linked_vtis: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_public_traceable: bool = False
    id: Optional[str] = Field(default=None, max_length=64, description="Client-chosen id")


class VtiStatusUpdate(ApiModel):
    status: str


class VtiLinkRequest(ApiModel):
    linked_vtis: List[str] = Field(..., min_length=1)


# ============================================================================
# LEDGER / FIELD ACTIVITY
# ============================================================================

class FieldActivityRequest(ApiModel):
    """Planting, input application or observation on a farm field."""
    actor_ref: str = Field(..., max_length=64)
    timestamp: Optional[datetime] = None
    geo_location: Optional[GeoLocation] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class HarvestRequest(ApiModel):
    actor_ref: str = Field(..., max_length=64)
    crop_type: str = Field(..., min_length=1)
    yield_kg: Optional[float] = Field(default=None, ge=0)
    quality_grade: Optional[str] = None
    is_public_traceable: bool = False
    geo_location: Optional[GeoLocation] = None
    batch_id: Optional[str] = Field(default=None, max_length=64, description="Repeat on retry to reuse the batch")


class EventAppendResponse(ApiModel):
    event_id: str
    sequence: Optional[int] = None
    recorded_at: datetime
