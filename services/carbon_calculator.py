# ============================================================================
# CARBON FOOTPRINT CALCULATOR
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain service - Event-driven emission calculation
# PURPOSE: Turn ledger events into footprint records, once per event
# CREATED: 05 OCT 2026
# ============================================================================
"""
CarbonFootprintCalculator

Delivered an appended ledger event, decides whether it carries emissions
and, if so, records them:

    INPUT_APPLIED  quantity * factor.value -> CarbonFootprintRecord,
                   plus an atomic bump of the VTI's carbonFootprintKgCO2e
    TRANSPORTED    pending marker (no transport model yet)
    anything else  not_relevant

Delivery is at-least-once. The calculator is idempotent by event id: an
existing record or marker short-circuits to DUPLICATE, and the UNIQUE
constraint on source_event_id catches concurrent deliveries.

Only PersistenceError propagates; every other failure is an outcome.
"""

import asyncio
from typing import List, Optional

from psycopg_pool import AsyncConnectionPool

from core.config import CalculatorDefaults, get_defaults
from core.contracts import (
    CALCULABLE_EVENT_TYPES,
    GLOBAL_REGION,
    CalculationStatus,
    EmissionActivityType,
    MarkerStatus,
    TraceEventType,
)
from core.errors import PayloadValidationError
from core.logging import get_logger, log_checkpoint, log_context
from core.models.carbon import (
    CalculationMarker,
    CalculationOutcome,
    CarbonFootprintRecord,
    EmissionFactorSnapshot,
)
from core.models.events import InputAppliedPayload, TraceabilityEvent, parse_payload
from core.observability import signal_warning, track_metric
from repositories import CarbonRepository
from services.factor_resolver import EmissionFactorResolver
from services.region_resolver import RegionResolver, StaticRegionResolver

logger = get_logger(__name__)

TRANSPORT_PENDING_REASON = "transport_calculation_not_implemented"


class CarbonFootprintCalculator:
    """Computes footprint records from ledger events."""

    def __init__(
        self,
        pool: Optional[AsyncConnectionPool],
        carbon_repo: Optional[CarbonRepository] = None,
        resolver: Optional[EmissionFactorResolver] = None,
        region_resolver: Optional[RegionResolver] = None,
        defaults: Optional[CalculatorDefaults] = None,
    ):
        self.pool = pool
        self.carbon_repo = carbon_repo or CarbonRepository(pool)
        self.resolver = resolver or EmissionFactorResolver(pool)
        self.region_resolver = region_resolver or StaticRegionResolver()
        self.defaults = defaults or get_defaults().calculator

    async def on_event_appended(
        self,
        event: TraceabilityEvent,
        user_ref: Optional[str] = None,
    ) -> CalculationOutcome:
        """
        Calculate the footprint of one event.

        Args:
            event: The ledger event
            user_ref: Who the emissions are attributed to (defaults to actor_ref)

        Raises:
            PersistenceError: storage failure; redeliver later
        """
        with log_context(event_id=event.event_id, vti_id=event.vti_id, component="carbon"):
            if event.event_type not in CALCULABLE_EVENT_TYPES:
                return self._outcome(event, CalculationStatus.NOT_RELEVANT, "not relevant")

            duplicate = await self._existing_outcome(event)
            if duplicate is not None:
                return duplicate

            if event.event_type == TraceEventType.TRANSPORTED.value:
                return await self._mark_transport_pending(event)

            return await self._calculate_input(event, user_ref or event.actor_ref)

    async def record_skip(
        self,
        event: TraceabilityEvent,
        outcome: CalculationOutcome,
    ) -> CalculationMarker:
        """Persist a skipped marker so the dispatcher stops redelivering the event."""
        details = {}
        if outcome.invalid_fields:
            details["invalidFields"] = outcome.invalid_fields
        if outcome.region:
            details["region"] = outcome.region
        marker, _ = await self.carbon_repo.create_marker(
            CalculationMarker(
                event_id=event.event_id,
                vti_id=event.vti_id,
                event_type=event.event_type,
                status=MarkerStatus.SKIPPED,
                reason=outcome.status.value,
                details=details,
            )
        )
        return marker

    # ================================================================
    # STEPS
    # ================================================================

    async def _existing_outcome(self, event: TraceabilityEvent) -> Optional[CalculationOutcome]:
        record = await self.carbon_repo.get_by_source_event(event.event_id)
        if record is not None:
            logger.info(f"Event {event.event_id} already calculated ({record.record_id})")
            return self._outcome(event, CalculationStatus.DUPLICATE, "already calculated", record=record)

        marker = await self.carbon_repo.get_marker(event.event_id)
        if marker is not None:
            logger.info(f"Event {event.event_id} already marked {marker.status.value}")
            return self._outcome(
                event, CalculationStatus.DUPLICATE, f"already marked {marker.status.value}", marker=marker,
            )
        return None

    async def _mark_transport_pending(self, event: TraceabilityEvent) -> CalculationOutcome:
        missing = [key for key in ("distance", "transportMode") if event.payload.get(key) in (None, "")]
        marker, created = await self.carbon_repo.create_marker(
            CalculationMarker(
                event_id=event.event_id,
                vti_id=event.vti_id,
                event_type=event.event_type,
                status=MarkerStatus.PENDING,
                reason=TRANSPORT_PENDING_REASON,
                details={"missingFields": missing},
            )
        )
        if not created:
            return self._outcome(event, CalculationStatus.DUPLICATE, "already marked pending", marker=marker)

        track_metric("carbon.pending", tags={"event_type": event.event_type})
        return self._outcome(event, CalculationStatus.PENDING, "pending calculation", marker=marker)

    async def _calculate_input(self, event: TraceabilityEvent, user_ref: str) -> CalculationOutcome:
        try:
            payload: InputAppliedPayload = parse_payload(event.event_type, event.payload)
        except PayloadValidationError as e:
            signal_warning("carbon.invalid_payload", event_id=event.event_id, fields=e.fields)
            return self._outcome(
                event, CalculationStatus.INVALID_PAYLOAD, str(e), invalid_fields=e.fields,
            )

        region = await self._region_for(user_ref)
        factor = await self.resolver.resolve(
            region,
            EmissionActivityType.INPUT_APPLIED.value,
            input_type=payload.input_type,
            factor_type=payload.unit,
        )
        if factor is None:
            signal_warning(
                "carbon.factor_not_found",
                event_id=event.event_id,
                region=region,
                input_type=payload.input_type,
                unit=payload.unit,
            )
            return self._outcome(
                event,
                CalculationStatus.FACTOR_NOT_FOUND,
                f"not found: no emission factor for {payload.input_type} ({payload.unit}) in {region}",
                region=region,
            )

        category, subcategory = self.defaults.category_for(event.event_type)
        record = CarbonFootprintRecord(
            source_event_id=event.event_id,
            vti_id=event.vti_id,
            user_ref=user_ref,
            event_type=event.event_type,
            timestamp=event.timestamp,
            calculated_emissions=payload.quantity * factor.value,
            unit=factor.unit,
            emission_factor_used=EmissionFactorSnapshot.of(factor),
            data_source=self.defaults.data_source,
            region=region,
            category=category,
            subcategory=subcategory,
            details=payload.to_document(),
        )

        stored, created = await self.carbon_repo.create_if_absent(record)
        if not created:
            return self._outcome(event, CalculationStatus.DUPLICATE, "already calculated", record=stored)

        track_metric("carbon.calculated", tags={"event_type": event.event_type, "region": region})
        log_checkpoint(
            "footprint_recorded",
            {
                "record_id": stored.record_id,
                "emissions": stored.calculated_emissions,
                "unit": stored.unit,
                "factor_id": factor.factor_id,
            },
            logger=logger.logger,
        )
        return self._outcome(
            event,
            CalculationStatus.CALCULATED,
            f"{stored.calculated_emissions} {stored.unit}",
            record=stored,
            region=region,
        )

    async def _region_for(self, user_ref: str) -> str:
        """Region of the user, or Global on timeout, error or no answer."""
        timeout = self.defaults.region_lookup_timeout_sec
        try:
            region = await asyncio.wait_for(self.region_resolver.region_for(user_ref), timeout=timeout)
        except asyncio.TimeoutError:
            signal_warning("carbon.region_lookup_timeout", user_ref=user_ref, timeout_sec=timeout)
            return GLOBAL_REGION
        except Exception as e:
            signal_warning("carbon.region_lookup_failed", user_ref=user_ref, error=str(e))
            return GLOBAL_REGION
        return region or GLOBAL_REGION

    @staticmethod
    def _outcome(
        event: TraceabilityEvent,
        status: CalculationStatus,
        message: str,
        record: Optional[CarbonFootprintRecord] = None,
        marker: Optional[CalculationMarker] = None,
        invalid_fields: Optional[List[str]] = None,
        region: Optional[str] = None,
    ) -> CalculationOutcome:
        return CalculationOutcome(
            event_id=event.event_id,
            status=status,
            message=message,
            record=record,
            marker=marker,
            invalid_fields=invalid_fields or [],
            region=region,
        )


__all__ = ["CarbonFootprintCalculator", "TRANSPORT_PENDING_REASON"]
