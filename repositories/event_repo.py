# ============================================================================
# TRACEABILITY EVENT REPOSITORY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Append-only ledger storage
# PURPOSE: Database access for traceability_events table
# CREATED: 03 OCT 2026
# ============================================================================
"""
Traceability Event Repository

Insert and read operations for the ledger. There is deliberately no update
or delete method: the ledger is append-only.

Reads are keyset-paginated on (timestamp, sequence) so callers can stream
arbitrarily long histories page by page.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json

from core.models.events import GeoLocation, TraceabilityEvent
from .base import BaseRepository
from .database import TABLE_CALC_MARKERS, TABLE_CARBON_RECORDS, TABLE_EVENTS

logger = logging.getLogger(__name__)

# (timestamp, sequence) of the last row of the previous page
Cursor = Tuple[datetime, int]


class EventRepository(BaseRepository):
    """Repository for TraceabilityEvent entities."""

    async def append(self, event: TraceabilityEvent) -> TraceabilityEvent:
        """
        Persist a new event.

        Returns:
            The event with ``sequence`` populated
        """
        with self._error_context("event append", event.event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        INSERT INTO {} (
                            event_id, vti_id, event_type, timestamp, recorded_at,
                            actor_ref, geo_location, payload, farm_field_id,
                            is_public_traceable
                        ) VALUES (
                            %(event_id)s, %(vti_id)s, %(event_type)s, %(timestamp)s,
                            %(recorded_at)s, %(actor_ref)s, %(geo_location)s,
                            %(payload)s, %(farm_field_id)s, %(is_public_traceable)s
                        )
                        RETURNING sequence
                    """).format(TABLE_EVENTS),
                    {
                        "event_id": event.event_id,
                        "vti_id": event.vti_id,
                        "event_type": event.event_type,
                        "timestamp": event.timestamp,
                        "recorded_at": event.recorded_at,
                        "actor_ref": event.actor_ref,
                        "geo_location": Json(event.geo_location.model_dump()) if event.geo_location else None,
                        "payload": Json(event.payload),
                        "farm_field_id": event.farm_field_id,
                        "is_public_traceable": event.is_public_traceable,
                    },
                )
                row = await result.fetchone()
                event.sequence = row["sequence"]
                return event

    async def get(self, event_id: str) -> Optional[TraceabilityEvent]:
        """Get an event by id."""
        with self._error_context("event get", event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE event_id = %s").format(TABLE_EVENTS),
                    (event_id,),
                )
                row = await result.fetchone()
                return self._row_to_event(row) if row else None

    async def list_for_vti(
        self,
        vti_id: str,
        after: Optional[Cursor] = None,
        limit: int = 200,
    ) -> List[TraceabilityEvent]:
        """
        One page of a VTI's events, oldest first.

        Args:
            vti_id: VTI identifier
            after: Cursor of the previous page's last event
            limit: Page size
        """
        conditions = [sql.SQL("vti_id = %s")]
        params: List[Any] = [vti_id]
        return await self._page(conditions, params, after, limit, "event list_for_vti")

    async def list_for_field(
        self,
        farm_field_id: str,
        event_types: Iterable[str],
        since: datetime,
        until: Optional[datetime] = None,
        after: Optional[Cursor] = None,
        limit: int = 200,
    ) -> List[TraceabilityEvent]:
        """One page of a farm field's events of the given types inside [since, until]."""
        conditions = [
            sql.SQL("farm_field_id = %s"),
            sql.SQL("event_type = ANY(%s)"),
            sql.SQL("timestamp >= %s"),
        ]
        params: List[Any] = [farm_field_id, list(event_types), since]
        if until is not None:
            conditions.append(sql.SQL("timestamp <= %s"))
            params.append(until)
        return await self._page(conditions, params, after, limit, "event list_for_field")

    async def _page(
        self,
        conditions: List[sql.Composable],
        params: List[Any],
        after: Optional[Cursor],
        limit: int,
        operation: str,
    ) -> List[TraceabilityEvent]:
        if after is not None:
            conditions = conditions + [sql.SQL("(timestamp, sequence) > (%s, %s)")]
            params = params + [after[0], after[1]]

        query = sql.SQL("SELECT * FROM {} WHERE {} ORDER BY timestamp ASC, sequence ASC LIMIT %s").format(
            TABLE_EVENTS,
            sql.SQL(" AND ").join(conditions),
        )
        with self._error_context(operation):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(query, (*params, limit))
                rows = await result.fetchall()
                return [self._row_to_event(row) for row in rows]

    async def first_of_type(self, vti_ids: Iterable[str], event_type: str) -> Dict[str, TraceabilityEvent]:
        """
        Earliest event of ``event_type`` for each of several VTIs.

        Returns:
            {vti_id: event} for the VTIs that have one
        """
        ids = list(dict.fromkeys(vti_ids))
        if not ids:
            return {}
        with self._error_context("event first_of_type"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT DISTINCT ON (vti_id) * FROM {}
                        WHERE vti_id = ANY(%s) AND event_type = %s
                        ORDER BY vti_id, timestamp ASC, sequence ASC
                    """).format(TABLE_EVENTS),
                    (ids, event_type),
                )
                rows = await result.fetchall()
                return {row["vti_id"]: self._row_to_event(row) for row in rows}

    async def list_undelivered(
        self,
        event_types: Iterable[str],
        limit: int = 50,
    ) -> List[TraceabilityEvent]:
        """
        Events of the given types with neither a footprint record nor a marker.

        Ordered by ledger sequence, which keeps each VTI's events in append order.
        """
        with self._error_context("event list_undelivered"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT e.* FROM {events} e
                        WHERE e.event_type = ANY(%s)
                          AND NOT EXISTS (
                              SELECT 1 FROM {records} r WHERE r.source_event_id = e.event_id
                          )
                          AND NOT EXISTS (
                              SELECT 1 FROM {markers} m WHERE m.event_id = e.event_id
                          )
                        ORDER BY e.sequence ASC
                        LIMIT %s
                    """).format(
                        events=TABLE_EVENTS,
                        records=TABLE_CARBON_RECORDS,
                        markers=TABLE_CALC_MARKERS,
                    ),
                    (list(event_types), limit),
                )
                rows = await result.fetchall()
                return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row: Dict[str, Any]) -> TraceabilityEvent:
        """Convert database row to TraceabilityEvent model."""
        geo = row.get("geo_location")
        return TraceabilityEvent(
            event_id=row["event_id"],
            sequence=row.get("sequence"),
            vti_id=row["vti_id"],
            event_type=row["event_type"],
            timestamp=row["timestamp"],
            recorded_at=row["recorded_at"],
            actor_ref=row["actor_ref"],
            geo_location=GeoLocation(**geo) if geo else None,
            payload=row.get("payload") or {},
            farm_field_id=row.get("farm_field_id"),
            is_public_traceable=bool(row.get("is_public_traceable")),
        )
