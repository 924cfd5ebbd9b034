# ============================================================================
# TRACEABILITY LEDGER SERVICE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core service - Append-only event ledger
# PURPOSE: Validate and append events, stream per-VTI and per-field history
# CREATED: 04 OCT 2026
# ============================================================================
"""
TraceabilityLedger

Append path:
    1. Validate shape (TraceEventInput) and eventType
    2. Resolve vtiId, actorRef and farmFieldId in one lookup
    3. Validate payload against its event type's variant
    4. Stamp recorded_at (and timestamp when the actor sent none)
    5. Persist, then notify subscribers (the dispatcher wake-up)

Read path returns EventStream objects: lazy, keyset-paginated and
restartable, so a consumer can walk a long history without loading it all.
"""

from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Union,
)

from pydantic import ValidationError as PydanticValidationError
from psycopg_pool import AsyncConnectionPool

from core.config import TraceabilityDefaults, get_defaults
from core.contracts import TraceEventType
from core.errors import InvalidActorError, NotFoundError, ValidationError
from core.logging import get_logger, log_context
from core.models.events import (
    ActorSummary,
    HistoryEntry,
    PublicBatchSummary,
    TraceabilityEvent,
    TraceEventInput,
    VtiHistory,
    parse_payload,
)
from core.models.vti import Vti
from core.observability import track_metric
from repositories import EventRepository, VtiRepository
from repositories.event_repo import Cursor

logger = get_logger(__name__)

PageFetcher = Callable[[Optional[Cursor], int], Awaitable[List[TraceabilityEvent]]]
Subscriber = Callable[[TraceabilityEvent], Any]


class EventStream:
    """
    Lazy, finite, restartable async iterable of ledger events.

    Each ``async for`` starts again from the first page.
    """

    def __init__(self, fetch_page: PageFetcher, page_size: int):
        self._fetch_page = fetch_page
        self.page_size = page_size

    def __aiter__(self) -> AsyncIterator[TraceabilityEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[TraceabilityEvent]:
        cursor: Optional[Cursor] = None
        while True:
            page = await self._fetch_page(cursor, self.page_size)
            for event in page:
                yield event
            if len(page) < self.page_size:
                return
            last = page[-1]
            cursor = (last.timestamp, last.sequence)

    async def to_list(self, limit: Optional[int] = None) -> List[TraceabilityEvent]:
        events = []
        async for event in self:
            events.append(event)
            if limit is not None and len(events) >= limit:
                break
        return events


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _field_name(error: Dict[str, Any]) -> str:
    # loc is reported by alias, so already camelCase
    loc = [str(part) for part in error.get("loc", ())]
    return ".".join(loc) if loc else "event"


class TraceabilityLedger:
    """Append-only event ledger over VTIs."""

    def __init__(
        self,
        pool: Optional[AsyncConnectionPool],
        vti_repo: Optional[VtiRepository] = None,
        event_repo: Optional[EventRepository] = None,
        defaults: Optional[TraceabilityDefaults] = None,
    ):
        self.pool = pool
        self.vti_repo = vti_repo or VtiRepository(pool)
        self.event_repo = event_repo or EventRepository(pool)
        self.defaults = defaults or get_defaults().traceability
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        """Register a callback invoked after every successful append."""
        self._subscribers.append(callback)

    # ================================================================
    # APPEND
    # ================================================================

    async def append(self, event: Union[TraceEventInput, Dict[str, Any]]) -> TraceabilityEvent:
        """
        Validate and append one event.

        Returns:
            The stored event (``event_id`` is the new EventId)

        Raises:
            ValidationError: malformed event or payload
            NotFoundError: vtiId, actorRef or farmFieldId unknown
            InvalidActorError: actorRef is not a user or organization
            PersistenceError: storage failure
        """
        data = self._parse_input(event)

        if not data.event_type.strip():
            raise ValidationError("eventType is required", field="eventType", value=data.event_type)

        refs = {data.vti_id, data.actor_ref}
        if data.farm_field_id:
            refs.add(data.farm_field_id)
        vtis = await self.vti_repo.get_many(refs)

        if data.vti_id not in vtis:
            raise NotFoundError("VTI", data.vti_id, field="vtiId")
        self._check_actor(data.actor_ref, vtis.get(data.actor_ref))
        if data.farm_field_id and data.farm_field_id not in vtis:
            raise NotFoundError("VTI", data.farm_field_id, field="farmFieldId")

        payload = parse_payload(data.event_type, data.payload).to_document()

        recorded_at = datetime.now(timezone.utc)
        stored = await self.event_repo.append(
            TraceabilityEvent(
                vti_id=data.vti_id,
                event_type=data.event_type,
                timestamp=_as_utc(data.timestamp) if data.timestamp else recorded_at,
                recorded_at=recorded_at,
                actor_ref=data.actor_ref,
                geo_location=data.geo_location,
                payload=payload,
                farm_field_id=data.farm_field_id,
                is_public_traceable=data.is_public_traceable,
            )
        )

        with log_context(vti_id=stored.vti_id, event_id=stored.event_id):
            logger.info(f"Appended {stored.event_type} event (seq={stored.sequence})")
        track_metric("ledger.appended", tags={"event_type": stored.event_type})

        self._notify(stored)
        return stored

    def _parse_input(self, event: Union[TraceEventInput, Dict[str, Any]]) -> TraceEventInput:
        if isinstance(event, TraceEventInput):
            return event
        try:
            return TraceEventInput.model_validate(event)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = _field_name(first)
            raise ValidationError(f"Invalid event field {field}: {first.get('msg')}", field=field) from e

    def _check_actor(self, actor_ref: str, actor: Optional[Vti]) -> Vti:
        if actor is None:
            raise NotFoundError("VTI", actor_ref, field="actorRef")
        if not actor.vti_type.is_actor():
            raise InvalidActorError(actor_ref, actor.vti_type.value)
        return actor

    async def validate_actor(self, actor_ref: str) -> Vti:
        """Resolve an actorRef to a user or organization VTI."""
        return self._check_actor(actor_ref, await self.vti_repo.get(actor_ref))

    def _notify(self, event: TraceabilityEvent) -> None:
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.exception(f"Ledger subscriber failed for event {event.event_id}: {e}")

    # ================================================================
    # QUERIES
    # ================================================================

    def query_by_vti(self, vti_id: str) -> EventStream:
        """All events of a VTI in (timestamp, sequence) order."""

        async def fetch(after: Optional[Cursor], limit: int) -> List[TraceabilityEvent]:
            return await self.event_repo.list_for_vti(vti_id, after=after, limit=limit)

        return EventStream(fetch, self.defaults.event_page_size)

    def query_by_field(
        self,
        farm_field_id: str,
        event_types: Iterable[str],
        since: Optional[datetime],
        until: Optional[datetime] = None,
    ) -> EventStream:
        """
        Events of the given types tagged with a farm field, in [since, until].

        ``since`` is required so the scan is always bounded.
        """
        if since is None:
            raise ValidationError("since is required for field queries", field="since")
        types = list(event_types)
        if not types:
            raise ValidationError("at least one event type is required", field="eventTypes")
        since = _as_utc(since)
        until = _as_utc(until) if until else None

        async def fetch(after: Optional[Cursor], limit: int) -> List[TraceabilityEvent]:
            return await self.event_repo.list_for_field(
                farm_field_id, types, since, until=until, after=after, limit=limit,
            )

        return EventStream(fetch, self.defaults.event_page_size)

    async def get_event(self, event_id: str) -> TraceabilityEvent:
        event = await self.event_repo.get(event_id)
        if event is None:
            raise NotFoundError("Event", event_id, field="eventId")
        return event

    async def history(self, vti_id: str) -> VtiHistory:
        """A VTI and its events, each annotated with the acting VTI's type and name."""
        vti = await self.vti_repo.get(vti_id)
        if vti is None:
            raise NotFoundError("VTI", vti_id, field="vtiId")

        events = await self.query_by_vti(vti_id).to_list()
        actors = await self.vti_repo.get_many({e.actor_ref for e in events})

        entries = []
        for event in events:
            actor = actors.get(event.actor_ref)
            entries.append(
                HistoryEntry(
                    event=event,
                    actor=ActorSummary(
                        actor_ref=event.actor_ref,
                        actor_type=actor.vti_type.value if actor else None,
                        display_name=actor.display_name if actor else None,
                    ),
                )
            )
        return VtiHistory(vti=vti, events=entries)

    async def recent_public_batches(self, limit: Optional[int] = None) -> List[PublicBatchSummary]:
        """
        Newest publicly traceable VTIs for the public listing.

        The producer is the actor of the VTI's HARVESTED event and the
        harvest date its timestamp. Without a harvest event the producer is
        "Unknown" and the date falls back to the VTI's creation time.
        """
        limit = limit or self.defaults.public_batch_limit
        vtis = await self.vti_repo.list_public_recent(limit)
        harvests = await self.event_repo.first_of_type(
            [v.vti_id for v in vtis], TraceEventType.HARVESTED.value,
        )
        producers = await self.vti_repo.get_many({h.actor_ref for h in harvests.values()})

        summaries = []
        for vti in vtis:
            harvest = harvests.get(vti.vti_id)
            producer = producers.get(harvest.actor_ref) if harvest else None
            summaries.append(
                PublicBatchSummary(
                    vti_id=vti.vti_id,
                    product_name=str(vti.metadata.get("cropType") or "Unknown Product"),
                    producer_name=(producer.display_name if producer else None) or "Unknown",
                    harvest_date=harvest.timestamp if harvest else vti.creation_time,
                )
            )
        return summaries


__all__ = ["EventStream", "TraceabilityLedger"]
