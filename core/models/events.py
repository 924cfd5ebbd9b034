# ============================================================================
# TRACEABILITY EVENT MODEL
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core model - Append-only ledger entries
# PURPOSE: Ledger event plus typed payload variants per event type
# CREATED: 02 OCT 2026
# ============================================================================
"""
Traceability Event Model

TraceabilityEvent is one append-only ledger row describing something that
happened to a VTI. ``timestamp`` is event time as reported by the actor;
``recorded_at`` is ledger write time. ``sequence`` is assigned by the
database and orders events that share a timestamp.

Payloads are a tagged union keyed by event type. Unknown event types parse
to UnknownPayload; every variant keeps keys it does not declare.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.contracts import TraceEventType
from core.errors import PayloadValidationError
from core.models.vti import Vti


class GeoLocation(BaseModel):
    """WGS84 coordinate pair."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# ============================================================================
# PAYLOAD VARIANTS
# ============================================================================

class EventPayload(BaseModel):
    """Base for typed payloads. Extra keys are preserved."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, as stored in the ledger."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InputAppliedPayload(EventPayload):
    input_type: str = Field(..., min_length=1)
    quantity: float = Field(..., gt=0, allow_inf_nan=False)
    unit: str = Field(..., min_length=1)
    input_id: Optional[str] = None
    application_date: Optional[str] = None
    method: Optional[str] = None


class TransportedPayload(EventPayload):
    distance: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    distance_unit: Optional[str] = None
    transport_mode: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None


class PlantedPayload(EventPayload):
    crop_type: Optional[str] = None
    variety: Optional[str] = None
    planting_date: Optional[str] = None


class ObservedPayload(EventPayload):
    observation_type: str = Field(..., min_length=1)
    details: Any = None
    media_urls: List[str] = Field(default_factory=list)


class HarvestedPayload(EventPayload):
    farm_field_id: Optional[str] = None
    crop_type: Optional[str] = None
    yield_kg: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    quality_grade: Optional[str] = None


class UnknownPayload(EventPayload):
    """Payload of an event type this core does not interpret."""


PAYLOAD_TYPES: Dict[str, Type[EventPayload]] = {
    TraceEventType.INPUT_APPLIED.value: InputAppliedPayload,
    TraceEventType.TRANSPORTED.value: TransportedPayload,
    TraceEventType.PLANTED.value: PlantedPayload,
    TraceEventType.OBSERVED.value: ObservedPayload,
    TraceEventType.HARVESTED.value: HarvestedPayload,
}


def _error_path(error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    return "payload." + ".".join(loc) if loc else "payload"


def parse_payload(event_type: str, raw: Optional[Dict[str, Any]]) -> EventPayload:
    """
    Parse a raw payload into its typed variant.

    Raises:
        PayloadValidationError: naming every offending ``payload.<field>``
    """
    payload_cls = PAYLOAD_TYPES.get(event_type, UnknownPayload)
    try:
        return payload_cls.model_validate(raw or {})
    except PydanticValidationError as e:
        fields = []
        for error in e.errors():
            path = _error_path(error)
            if path not in fields:
                fields.append(path)
        raise PayloadValidationError(event_type, fields) from e


# ============================================================================
# LEDGER EVENT
# ============================================================================

class TraceEventInput(BaseModel):
    """An event as submitted to the ledger, before ids and write time are assigned."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    vti_id: str = Field(..., max_length=64)
    event_type: str = Field(..., max_length=64)
    actor_ref: str = Field(..., max_length=64)
    timestamp: Optional[datetime] = None
    geo_location: Optional[GeoLocation] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    farm_field_id: Optional[str] = Field(default=None, max_length=64)
    is_public_traceable: bool = False


class TraceabilityEvent(BaseModel):
    """
    A single ledger entry.

    Maps to: traceability.traceability_events
    """

    # SQL DDL METADATA
    __sql_table__: ClassVar[str] = "traceability_events"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["event_id"]
    __sql_serial_columns__: ClassVar[List[str]] = ["sequence"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "vti_id": "traceability.vti_registry(vti_id)",
    }
    __sql_unique__: ClassVar[List[tuple]] = [
        ("uq_traceability_events_sequence", ["sequence"]),
    ]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_trace_events_vti_order", ["vti_id", "timestamp", "sequence"]),
        ("idx_trace_events_field_time", ["farm_field_id", "timestamp"], "farm_field_id IS NOT NULL"),
        ("idx_trace_events_type", ["event_type"]),
        ("idx_trace_events_actor", ["actor_ref"]),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    event_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        max_length=64,
        alias="id",
    )
    sequence: Optional[int] = Field(
        default=None,
        description="Database-assigned append order (SERIAL)",
    )
    vti_id: str = Field(..., max_length=64)
    event_type: str = Field(..., max_length=64)
    timestamp: datetime
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor_ref: str = Field(..., max_length=64)
    geo_location: Optional[GeoLocation] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    farm_field_id: Optional[str] = Field(default=None, max_length=64)
    is_public_traceable: bool = False

    def typed_payload(self) -> EventPayload:
        return parse_payload(self.event_type, self.payload)


# ============================================================================
# HISTORY VIEW
# ============================================================================

class ActorSummary(BaseModel):
    """Who performed an event, resolved from the actor VTI."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    actor_ref: str
    actor_type: Optional[str] = None
    display_name: Optional[str] = None


class HistoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    event: TraceabilityEvent
    actor: ActorSummary


class VtiHistory(BaseModel):
    """A VTI plus its full event history, oldest first."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    vti: Vti
    events: List[HistoryEntry] = Field(default_factory=list)


class PublicBatchSummary(BaseModel):
    """Public listing entry for a traceable VTI."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    vti_id: str = Field(..., alias="id")
    product_name: str
    producer_name: str
    harvest_date: datetime


__all__ = [
    "GeoLocation",
    "EventPayload",
    "InputAppliedPayload",
    "TransportedPayload",
    "PlantedPayload",
    "ObservedPayload",
    "HarvestedPayload",
    "UnknownPayload",
    "PAYLOAD_TYPES",
    "parse_payload",
    "TraceEventInput",
    "TraceabilityEvent",
    "ActorSummary",
    "HistoryEntry",
    "VtiHistory",
    "PublicBatchSummary",
]
