# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - FastAPI route definitions
# PURPOSE: Carbon footprint trigger, sustainability dashboard, dispatcher status
# CREATED: 06 OCT 2026
# ============================================================================
"""
API Routes

Endpoints:
- POST /api/v1/carbon-footprint    Calculate the footprint of one ledger event
- GET  /api/v1/dashboard           Sustainability dashboard of the caller
- GET  /api/v1/dispatcher/status   Dispatcher loop statistics

The dashboard identifies the caller by a header set by the authenticating
proxy (IDENTITY_HEADER, default X-Authenticated-User).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query, Request
from pydantic import ValidationError as PydanticValidationError

from core.config import get_defaults
from core.contracts import CalculationStatus
from core.errors import NotFoundError, PayloadValidationError, TraceabilityError
from core.models.carbon import CalculationOutcome
from core.models.events import TraceabilityEvent, parse_payload
from .errors import http_error
from .schemas import CarbonEventData, CarbonFootprintRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_calculator = None
_aggregator = None
_dispatcher = None
_ledger = None


def set_services(calculator, aggregator, dispatcher=None, ledger=None):
    """Set service instances for dependency injection."""
    global _calculator, _aggregator, _dispatcher, _ledger
    _calculator = calculator
    _aggregator = aggregator
    _dispatcher = dispatcher
    _ledger = ledger


def get_calculator():
    if _calculator is None:
        raise HTTPException(503, "Carbon calculator not initialized")
    return _calculator


def get_ledger():
    if _ledger is None:
        raise HTTPException(503, "Ledger not initialized")
    return _ledger


def get_aggregator():
    if _aggregator is None:
        raise HTTPException(503, "Sustainability aggregator not initialized")
    return _aggregator


# ============================================================================
# CARBON FOOTPRINT
# ============================================================================

def _outcome_body(outcome: CalculationOutcome) -> Dict[str, Any]:
    body: Dict[str, Any] = {"eventId": outcome.event_id, "status": outcome.status.value}
    if outcome.record is not None:
        body["emissions"] = outcome.record.calculated_emissions
        body["unit"] = outcome.record.unit
        body["carbonDataId"] = outcome.record.record_id
    if outcome.marker is not None:
        body["marker"] = outcome.marker.model_dump(mode="json", by_alias=True)
    return body


async def _stored_event(ledger, event_id: str) -> Optional[TraceabilityEvent]:
    try:
        return await ledger.get_event(event_id)
    except NotFoundError:
        return None


def _conflicting_fields(stored: TraceabilityEvent, data: CarbonEventData) -> List[str]:
    """eventData fields that disagree with the ledger's copy of the event."""
    conflicts = []
    if data.event_type != stored.event_type:
        conflicts.append("eventData.eventType")
    if data.vti_id != stored.vti_id:
        conflicts.append("eventData.vtiId")
    if data.actor_ref and data.actor_ref != stored.actor_ref:
        conflicts.append("eventData.actorRef")
    if data.user_ref and data.user_ref != stored.actor_ref:
        conflicts.append("eventData.userRef")
    if data.farm_field_id and data.farm_field_id != stored.farm_field_id:
        conflicts.append("eventData.farmFieldId")
    if data.timestamp and _as_utc(data.timestamp) != stored.timestamp:
        conflicts.append("eventData.timestamp")
    if data.payload:
        try:
            payload = parse_payload(stored.event_type, data.payload).to_document()
        except PayloadValidationError:
            payload = None
        if payload != stored.payload:
            conflicts.append("eventData.payload")
    return conflicts


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.post("/carbon-footprint", tags=["Carbon"])
async def calculate_carbon_footprint(body: Optional[Dict[str, Any]] = Body(default=None)):
    """
    Calculate the carbon footprint of one ledger event.

    Idempotent by eventId: repeating the call returns the stored result
    with ``duplicate: true``. When eventId names a ledger event the
    calculation uses the ledger's copy, and an eventData that disagrees
    with it is rejected with 409.
    """
    calculator = get_calculator()
    ledger = get_ledger()

    try:
        request = CarbonFootprintRequest.model_validate(body or {})
    except PydanticValidationError as e:
        raise HTTPException(400, {"error": "ValidationError", "message": "Invalid request", "errors": [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()
        ]})

    data = request.event_data
    try:
        stored = await _stored_event(ledger, request.event_id)
        if stored is None:
            event = TraceabilityEvent(
                event_id=request.event_id,
                vti_id=data.vti_id,
                event_type=data.event_type,
                timestamp=data.timestamp or datetime.now(timezone.utc),
                actor_ref=data.actor_ref or data.user_ref,
                payload=data.payload,
                farm_field_id=data.farm_field_id,
            )
            user_ref = data.user_ref or data.actor_ref
        else:
            conflicts = _conflicting_fields(stored, data)
            if conflicts:
                raise HTTPException(409, {
                    "error": "EventMismatchError",
                    "message": f"eventData does not match ledger event {request.event_id}",
                    "fields": conflicts,
                })
            event, user_ref = stored, None

        outcome = await calculator.on_event_appended(event, user_ref=user_ref)
    except HTTPException:
        raise
    except TraceabilityError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"Carbon calculation failed for {request.event_id}: {e}")
        raise HTTPException(500, f"Carbon calculation failed: {e}")

    result = _outcome_body(outcome)
    status = outcome.status

    if status == CalculationStatus.CALCULATED:
        return {"success": True, **result}
    if status == CalculationStatus.DUPLICATE:
        return {"success": True, "duplicate": True, **result}
    if status == CalculationStatus.NOT_RELEVANT:
        return {"message": "not relevant", **result}
    if status == CalculationStatus.PENDING:
        return {"message": "pending calculation", **result}
    if status == CalculationStatus.FACTOR_NOT_FOUND:
        return {"message": "not found", "detail": outcome.message, "region": outcome.region, **result}
    if status == CalculationStatus.INVALID_PAYLOAD:
        raise HTTPException(400, {
            "error": "PayloadValidationError",
            "message": outcome.message,
            "fields": outcome.invalid_fields,
        })

    raise HTTPException(500, f"Unhandled calculation status: {status.value}")


# ============================================================================
# DASHBOARD
# ============================================================================

@router.get("/dashboard", tags=["Sustainability"])
async def get_dashboard(
    request: Request,
    period: Optional[str] = Query(None, description="month | quarter | year"),
):
    """Footprint summary, trend, practices and certifications of the caller."""
    aggregator = get_aggregator()

    header = get_defaults().api.identity_header
    user_id = request.headers.get(header)
    if not user_id:
        raise HTTPException(401, f"Missing identity header {header}")

    try:
        dashboard = await aggregator.dashboard(user_id, period)
    except TraceabilityError as e:
        raise http_error(e)

    return dashboard.model_dump(mode="json", by_alias=True)


# ============================================================================
# DISPATCHER STATUS
# ============================================================================

@router.get("/dispatcher/status", tags=["Dispatcher"])
async def get_dispatcher_status():
    """Running state, cycles, deliveries and errors of the ledger dispatcher."""
    if _dispatcher is None:
        raise HTTPException(503, "Dispatcher not initialized")
    return _dispatcher.stats
