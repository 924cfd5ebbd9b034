# ============================================================================
# TRACEABILITY ROUTES
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Registry, ledger and field activity HTTP endpoints
# PURPOSE: HTTP API over VtiRegistryService, TraceabilityLedger, FieldActivityService
# CREATED: 06 OCT 2026
# ============================================================================
"""
Traceability Routes

Endpoints:
- POST  /api/v1/vtis                              Register a VTI
- GET   /api/v1/vtis/public/recent                Newest publicly traceable VTIs
- GET   /api/v1/vtis/{vti_id}                     Get a VTI
- PATCH /api/v1/vtis/{vti_id}/metadata            Merge metadata keys
- POST  /api/v1/vtis/{vti_id}/status              Change lifecycle status
- POST  /api/v1/vtis/{vti_id}/links               Add links (cycle-checked)
- GET   /api/v1/vtis/{vti_id}/events              Ledger events, oldest first
- GET   /api/v1/vtis/{vti_id}/history             Events with actor details
- POST  /api/v1/events                            Append a ledger event
- GET   /api/v1/fields/{farm_field_id}/events     Field events in a time window
- POST  /api/v1/fields/{farm_field_id}/harvests   Harvest -> farm batch
- POST  /api/v1/fields/{farm_field_id}/inputs     INPUT_APPLIED on the field
- POST  /api/v1/fields/{farm_field_id}/observations  OBSERVED on the field
- GET   /api/v1/emission-factors/resolve          Resolve an emission factor
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query

from core.contracts import PRE_HARVEST_EVENT_TYPES
from core.errors import TraceabilityError
from .errors import http_error
from .schemas import (
    EventAppendResponse,
    FieldActivityRequest,
    HarvestRequest,
    VtiCreate,
    VtiLinkRequest,
    VtiStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Traceability"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

_registry = None
_ledger = None
_field_activity = None
_resolver = None


def set_traceability_services(registry, ledger, field_activity, resolver):
    """Called by main.py at startup to inject the traceability services."""
    global _registry, _ledger, _field_activity, _resolver
    _registry = registry
    _ledger = ledger
    _field_activity = field_activity
    _resolver = resolver


def _require(service, name: str):
    if service is None:
        raise HTTPException(503, f"{name} not initialized")
    return service


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


# ============================================================================
# VTIS
# ============================================================================

@router.post("/vtis", status_code=201)
async def create_vti(request: VtiCreate):
    registry = _require(_registry, "VTI registry")
    try:
        vti = await registry.create(
            request.type,
            linked_vtis=request.linked_vtis,
            metadata=request.metadata,
            is_public_traceable=request.is_public_traceable,
            vti_id=request.id,
        )
    except TraceabilityError as e:
        raise http_error(e)
    return _dump(vti)


@router.get("/vtis/public/recent")
async def list_recent_public_batches(limit: Optional[int] = Query(None, ge=1, le=100)):
    """Newest publicly traceable VTIs with product, producer and harvest date."""
    ledger = _require(_ledger, "Ledger")
    try:
        batches = await ledger.recent_public_batches(limit)
    except TraceabilityError as e:
        raise http_error(e)
    return {"batches": [_dump(b) for b in batches]}


@router.get("/vtis/{vti_id}")
async def get_vti(vti_id: str):
    registry = _require(_registry, "VTI registry")
    try:
        return _dump(await registry.get(vti_id))
    except TraceabilityError as e:
        raise http_error(e)


@router.patch("/vtis/{vti_id}/metadata")
async def update_vti_metadata(vti_id: str, patch: Dict[str, Any] = Body(...)):
    """Top-level keys of the body replace the stored ones."""
    registry = _require(_registry, "VTI registry")
    try:
        return _dump(await registry.update_metadata(vti_id, patch))
    except TraceabilityError as e:
        raise http_error(e)


@router.post("/vtis/{vti_id}/status")
async def update_vti_status(vti_id: str, request: VtiStatusUpdate):
    registry = _require(_registry, "VTI registry")
    try:
        return _dump(await registry.update_status(vti_id, request.status))
    except TraceabilityError as e:
        raise http_error(e)


@router.post("/vtis/{vti_id}/links")
async def link_vtis(vti_id: str, request: VtiLinkRequest):
    registry = _require(_registry, "VTI registry")
    try:
        return _dump(await registry.link_vtis(vti_id, request.linked_vtis))
    except TraceabilityError as e:
        raise http_error(e)


@router.get("/vtis/{vti_id}/events")
async def list_vti_events(vti_id: str, limit: Optional[int] = Query(None, ge=1, le=10000)):
    ledger = _require(_ledger, "Ledger")
    try:
        events = await ledger.query_by_vti(vti_id).to_list(limit)
    except TraceabilityError as e:
        raise http_error(e)
    return {"vtiId": vti_id, "events": [_dump(e) for e in events], "count": len(events)}


@router.get("/vtis/{vti_id}/history")
async def get_vti_history(vti_id: str):
    ledger = _require(_ledger, "Ledger")
    try:
        return _dump(await ledger.history(vti_id))
    except TraceabilityError as e:
        raise http_error(e)


# ============================================================================
# LEDGER
# ============================================================================

@router.post("/events", status_code=201, response_model=EventAppendResponse, response_model_by_alias=True)
async def append_event(body: Dict[str, Any] = Body(...)):
    """Append one event. The carbon dispatcher picks calculable events up asynchronously."""
    ledger = _require(_ledger, "Ledger")
    try:
        event = await ledger.append(body)
    except TraceabilityError as e:
        raise http_error(e)
    return EventAppendResponse(
        event_id=event.event_id,
        sequence=event.sequence,
        recorded_at=event.recorded_at,
    )


@router.get("/fields/{farm_field_id}/events")
async def list_field_events(
    farm_field_id: str,
    since: Optional[datetime] = Query(None, description="Inclusive lower bound (required)"),
    until: Optional[datetime] = Query(None),
    event_types: Optional[str] = Query(None, alias="eventTypes", description="Comma-separated"),
    limit: Optional[int] = Query(None, ge=1, le=10000),
):
    ledger = _require(_ledger, "Ledger")
    if event_types:
        types = [t.strip() for t in event_types.split(",") if t.strip()]
    else:
        types = sorted(PRE_HARVEST_EVENT_TYPES)

    try:
        events = await ledger.query_by_field(farm_field_id, types, since, until).to_list(limit)
    except TraceabilityError as e:
        raise http_error(e)
    return {"farmFieldId": farm_field_id, "events": [_dump(e) for e in events], "count": len(events)}


# ============================================================================
# FIELD ACTIVITY
# ============================================================================

@router.post("/fields/{farm_field_id}/harvests", status_code=201)
async def record_harvest(farm_field_id: str, request: HarvestRequest):
    """Create a farm batch linked to the field and its pre-harvest events."""
    field_activity = _require(_field_activity, "Field activity service")
    try:
        batch, event = await field_activity.record_harvest(
            farm_field_id,
            actor_ref=request.actor_ref,
            crop_type=request.crop_type,
            yield_kg=request.yield_kg,
            quality_grade=request.quality_grade,
            is_public_traceable=request.is_public_traceable,
            geo_location=request.geo_location,
            batch_id=request.batch_id,
        )
    except TraceabilityError as e:
        raise http_error(e)
    return {"batch": _dump(batch), "event": _dump(event)}


@router.post("/fields/{farm_field_id}/inputs", status_code=201)
async def record_input_application(farm_field_id: str, request: FieldActivityRequest):
    field_activity = _require(_field_activity, "Field activity service")
    try:
        event = await field_activity.record_input_application(
            farm_field_id,
            request.actor_ref,
            request.payload,
            timestamp=request.timestamp,
            geo_location=request.geo_location,
        )
    except TraceabilityError as e:
        raise http_error(e)
    return _dump(event)


@router.post("/fields/{farm_field_id}/observations", status_code=201)
async def record_observation(farm_field_id: str, request: FieldActivityRequest):
    field_activity = _require(_field_activity, "Field activity service")
    try:
        event = await field_activity.record_observation(
            farm_field_id,
            request.actor_ref,
            request.payload,
            timestamp=request.timestamp,
            geo_location=request.geo_location,
        )
    except TraceabilityError as e:
        raise http_error(e)
    return _dump(event)


# ============================================================================
# EMISSION FACTORS
# ============================================================================

@router.get("/emission-factors/resolve")
async def resolve_emission_factor(
    region: str = Query(...),
    activity_type: str = Query(..., alias="activityType"),
    input_type: Optional[str] = Query(None, alias="inputType"),
    factor_type: Optional[str] = Query(None, alias="factorType"),
):
    """The factor the calculator would use (Global fallback included)."""
    resolver = _require(_resolver, "Emission factor resolver")
    try:
        factor = await resolver.resolve(region, activity_type, input_type, factor_type)
    except TraceabilityError as e:
        raise http_error(e)
    if factor is None:
        raise HTTPException(404, {"message": "not found", "region": region, "activityType": activity_type})
    return _dump(factor)
