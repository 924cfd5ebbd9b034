# ============================================================================
# FIELD ACTIVITY SERVICE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain service - Farm field workflows
# PURPOSE: Planting, inputs, observations and harvest-derived batch creation
# CREATED: 05 OCT 2026
# ============================================================================
"""
FieldActivityService

Entry points for activity recorded against a farm_field VTI. Each one
validates the field and the actor and delegates to the ledger.

Harvest is the interesting one:
    1. Collect PLANTED / INPUT_APPLIED / OBSERVED events of the field in
       [now - lookback, now]
    2. Create a farm_batch VTI linked to the field, with their ids already
       in linkedPreHarvestEvents
    3. Append HARVESTED on the batch
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.config import TraceabilityDefaults, get_defaults
from core.contracts import PRE_HARVEST_EVENT_TYPES, TraceEventType, VtiType
from core.errors import NotFoundError, ValidationError
from core.logging import get_logger, log_context
from core.models.events import GeoLocation, TraceabilityEvent, TraceEventInput
from core.models.vti import FarmBatchMetadata, Vti
from services.ledger import TraceabilityLedger
from services.vti_registry import VtiRegistryService

logger = get_logger(__name__)


class FieldActivityService:
    """Farm field workflows on top of the registry and the ledger."""

    def __init__(
        self,
        registry: VtiRegistryService,
        ledger: TraceabilityLedger,
        defaults: Optional[TraceabilityDefaults] = None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.defaults = defaults or get_defaults().traceability

    async def _require_field(self, farm_field_id: str) -> Vti:
        field = await self.registry.get(farm_field_id)
        if field.vti_type != VtiType.FARM_FIELD:
            raise ValidationError(
                f"VTI {farm_field_id} is a {field.vti_type.value}, not a farm_field",
                field="farmFieldId",
                value=farm_field_id,
            )
        return field

    async def _record_on_field(
        self,
        farm_field_id: str,
        event_type: TraceEventType,
        actor_ref: str,
        payload: Dict[str, Any],
        timestamp: Optional[datetime] = None,
        geo_location: Optional[GeoLocation] = None,
    ) -> TraceabilityEvent:
        await self._require_field(farm_field_id)
        return await self.ledger.append(
            TraceEventInput(
                vti_id=farm_field_id,
                event_type=event_type.value,
                actor_ref=actor_ref,
                timestamp=timestamp,
                geo_location=geo_location,
                payload=payload,
                farm_field_id=farm_field_id,
            )
        )

    async def record_planting(
        self,
        farm_field_id: str,
        actor_ref: str,
        payload: Dict[str, Any],
        timestamp: Optional[datetime] = None,
        geo_location: Optional[GeoLocation] = None,
    ) -> TraceabilityEvent:
        return await self._record_on_field(
            farm_field_id, TraceEventType.PLANTED, actor_ref, payload, timestamp, geo_location,
        )

    async def record_input_application(
        self,
        farm_field_id: str,
        actor_ref: str,
        payload: Dict[str, Any],
        timestamp: Optional[datetime] = None,
        geo_location: Optional[GeoLocation] = None,
    ) -> TraceabilityEvent:
        """Append INPUT_APPLIED on the field; the calculator picks it up from the ledger."""
        return await self._record_on_field(
            farm_field_id, TraceEventType.INPUT_APPLIED, actor_ref, payload, timestamp, geo_location,
        )

    async def record_observation(
        self,
        farm_field_id: str,
        actor_ref: str,
        payload: Dict[str, Any],
        timestamp: Optional[datetime] = None,
        geo_location: Optional[GeoLocation] = None,
    ) -> TraceabilityEvent:
        return await self._record_on_field(
            farm_field_id, TraceEventType.OBSERVED, actor_ref, payload, timestamp, geo_location,
        )

    async def record_harvest(
        self,
        farm_field_id: str,
        actor_ref: str,
        crop_type: str,
        yield_kg: Optional[float] = None,
        quality_grade: Optional[str] = None,
        is_public_traceable: bool = False,
        geo_location: Optional[GeoLocation] = None,
        now: Optional[datetime] = None,
        batch_id: Optional[str] = None,
    ) -> Tuple[Vti, TraceabilityEvent]:
        """
        Create a farm batch from a harvest and link its pre-harvest provenance.

        The provenance query runs before anything is written, so a failed
        query leaves no batch behind. Passing the same ``batch_id`` again
        after a failure reuses the batch already created and only appends
        the missing HARVESTED event.

        Returns:
            (batch VTI, HARVESTED event)

        Raises:
            ValidationError: missing cropType, or batch_id names a VTI that
                is not a batch of this field
        """
        now = now or datetime.now(timezone.utc)
        if not crop_type or not crop_type.strip():
            raise ValidationError("cropType is required", field="cropType")

        await self.ledger.validate_actor(actor_ref)
        await self._require_field(farm_field_id)

        with log_context(vti_id=farm_field_id, operation="harvest"):
            batch = await self._existing_batch(batch_id, farm_field_id) if batch_id else None

            if batch is None:
                since = now - self.defaults.harvest_lookback
                pre_harvest = await self.ledger.query_by_field(
                    farm_field_id,
                    sorted(PRE_HARVEST_EVENT_TYPES),
                    since=since,
                    until=now,
                ).to_list()

                metadata = FarmBatchMetadata(
                    crop_type=crop_type,
                    farm_field_id=farm_field_id,
                    initial_yield_kg=yield_kg,
                    initial_quality_grade=quality_grade,
                    linked_pre_harvest_events=[e.event_id for e in pre_harvest],
                )
                batch = await self.registry.create(
                    VtiType.FARM_BATCH,
                    linked_vtis=[farm_field_id],
                    metadata=metadata.model_dump(by_alias=True, exclude_none=True),
                    is_public_traceable=is_public_traceable,
                    vti_id=batch_id,
                )
            else:
                harvest = await self._harvest_event(batch.vti_id)
                if harvest is not None:
                    logger.info(f"Harvest already recorded on batch {batch.vti_id}")
                    return batch, harvest
                logger.info(f"Resuming harvest on existing batch {batch.vti_id}")

            harvest = await self.ledger.append(
                TraceEventInput(
                    vti_id=batch.vti_id,
                    event_type=TraceEventType.HARVESTED.value,
                    actor_ref=actor_ref,
                    timestamp=now,
                    geo_location=geo_location,
                    payload={
                        "farmFieldId": farm_field_id,
                        "cropType": crop_type,
                        "yieldKg": yield_kg,
                        "qualityGrade": quality_grade,
                    },
                    farm_field_id=farm_field_id,
                    is_public_traceable=is_public_traceable,
                )
            )

            linked = batch.metadata.get("linkedPreHarvestEvents") or []
            logger.info(
                f"Harvest on field {farm_field_id}: batch {batch.vti_id} "
                f"with {len(linked)} pre-harvest events"
            )
        return batch, harvest

    async def _existing_batch(self, batch_id: str, farm_field_id: str) -> Optional[Vti]:
        try:
            batch = await self.registry.get(batch_id)
        except NotFoundError:
            return None
        if batch.vti_type != VtiType.FARM_BATCH or batch.metadata.get("farmFieldId") != farm_field_id:
            raise ValidationError(
                f"VTI id already exists and is not a batch of field {farm_field_id}: {batch_id}",
                field="batchId",
                value=batch_id,
            )
        return batch

    async def _harvest_event(self, batch_id: str) -> Optional[TraceabilityEvent]:
        async for event in self.ledger.query_by_vti(batch_id):
            if event.event_type == TraceEventType.HARVESTED.value:
                return event
        return None


__all__ = ["FieldActivityService"]
