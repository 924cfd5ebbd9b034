# ============================================================================
# CARBON FOOTPRINT REPOSITORY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain - Footprint records and calculation markers
# PURPOSE: Database access for carbon_footprint_records / carbon_calculation_markers
# CREATED: 03 OCT 2026
# ============================================================================
"""
Carbon Footprint Repository

Record creation is idempotent by source event id: the insert uses
ON CONFLICT (source_event_id) DO NOTHING, and the VTI footprint increment
runs in the same transaction only when a row was actually inserted. A
redelivered or concurrently delivered event therefore can neither create a
second record nor increment the VTI twice.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import MarkerStatus
from core.models.carbon import CalculationMarker, CarbonFootprintRecord, EmissionFactorSnapshot
from core.models.sustainability import WindowTotals
from .base import BaseRepository
from .database import TABLE_CALC_MARKERS, TABLE_CARBON_RECORDS
from .vti_repo import VtiRepository

logger = logging.getLogger(__name__)

# Conversion of record units to kg CO2e for aggregation
UNIT_TO_KG = {
    "kg CO2e": 1.0,
    "g CO2e": 0.001,
    "ton CO2e": 1000.0,
}


class CarbonRepository(BaseRepository):
    """Repository for CarbonFootprintRecord and CalculationMarker entities."""

    def __init__(self, pool: AsyncConnectionPool, vti_repo: Optional[VtiRepository] = None):
        super().__init__(pool)
        self.vti_repo = vti_repo or VtiRepository(pool)

    # =========================================================================
    # RECORDS
    # =========================================================================

    async def get_by_source_event(self, event_id: str) -> Optional[CarbonFootprintRecord]:
        """Get the record derived from an event, if any."""
        with self._error_context("carbon record lookup", event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE source_event_id = %s").format(TABLE_CARBON_RECORDS),
                    (event_id,),
                )
                row = await result.fetchone()
                return self._row_to_record(row) if row else None

    async def create_if_absent(
        self,
        record: CarbonFootprintRecord,
    ) -> Tuple[CarbonFootprintRecord, bool]:
        """
        Insert a record and bump the VTI aggregate, once per source event.

        Returns:
            (record, created). When created is False the returned record is
            the one already stored for the source event.
        """
        with self._error_context("carbon record insert", record.source_event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                async with conn.transaction():
                    result = await conn.execute(
                        sql.SQL("""
                            INSERT INTO {} (
                                record_id, source_event_id, vti_id, user_ref, event_type,
                                timestamp, calculated_emissions, unit, emission_factor_used,
                                data_source, region, category, subcategory, details,
                                created_at
                            ) VALUES (
                                %(record_id)s, %(source_event_id)s, %(vti_id)s, %(user_ref)s,
                                %(event_type)s, %(timestamp)s, %(calculated_emissions)s,
                                %(unit)s, %(emission_factor_used)s, %(data_source)s,
                                %(region)s, %(category)s, %(subcategory)s, %(details)s,
                                %(created_at)s
                            )
                            ON CONFLICT (source_event_id) DO NOTHING
                            RETURNING *
                        """).format(TABLE_CARBON_RECORDS),
                        {
                            "record_id": record.record_id,
                            "source_event_id": record.source_event_id,
                            "vti_id": record.vti_id,
                            "user_ref": record.user_ref,
                            "event_type": record.event_type,
                            "timestamp": record.timestamp,
                            "calculated_emissions": record.calculated_emissions,
                            "unit": record.unit,
                            "emission_factor_used": Json(record.emission_factor_used.model_dump()),
                            "data_source": record.data_source,
                            "region": record.region,
                            "category": record.category,
                            "subcategory": record.subcategory,
                            "details": Json(record.details),
                            "created_at": record.created_at,
                        },
                    )
                    row = await result.fetchone()

                    if row is None:
                        result = await conn.execute(
                            sql.SQL("SELECT * FROM {} WHERE source_event_id = %s").format(TABLE_CARBON_RECORDS),
                            (record.source_event_id,),
                        )
                        existing = await result.fetchone()
                        logger.info(f"Record for event {record.source_event_id} already exists, skipped")
                        return self._row_to_record(existing), False

                    if record.vti_id:
                        kg = record.calculated_emissions * UNIT_TO_KG.get(record.unit, 1.0)
                        await self.vti_repo.increment_carbon_footprint(record.vti_id, kg, conn=conn)

                    return self._row_to_record(row), True

    async def window_totals(
        self,
        user_ref: str,
        start: datetime,
        end: datetime,
        include_end: bool = True,
    ) -> WindowTotals:
        """
        Sum a user's emissions (kg CO2e) in [start, end] or [start, end).

        Returns:
            WindowTotals with per-category breakdown
        """
        end_op = sql.SQL("<=") if include_end else sql.SQL("<")
        with self._error_context("carbon window totals", user_ref):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT category, unit,
                               COALESCE(SUM(calculated_emissions), 0) AS total,
                               COUNT(*) AS n
                        FROM {}
                        WHERE user_ref = %s
                          AND timestamp >= %s
                          AND timestamp {} %s
                        GROUP BY category, unit
                    """).format(TABLE_CARBON_RECORDS, end_op),
                    (user_ref, start, end),
                )
                rows = await result.fetchall()

        totals = WindowTotals()
        for row in rows:
            unit = row["unit"]
            if unit not in UNIT_TO_KG:
                logger.warning(f"Unknown emission unit {unit!r} for {user_ref}, counted as kg CO2e")
            kg = float(row["total"]) * UNIT_TO_KG.get(unit, 1.0)
            totals.total += kg
            totals.count += int(row["n"])
            category = row["category"] or "Uncategorized"
            totals.by_category[category] = totals.by_category.get(category, 0.0) + kg
        return totals

    # =========================================================================
    # MARKERS
    # =========================================================================

    async def get_marker(self, event_id: str) -> Optional[CalculationMarker]:
        with self._error_context("calculation marker lookup", event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE event_id = %s").format(TABLE_CALC_MARKERS),
                    (event_id,),
                )
                row = await result.fetchone()
                return self._row_to_marker(row) if row else None

    async def create_marker(self, marker: CalculationMarker) -> Tuple[CalculationMarker, bool]:
        """Insert a marker once per event. Returns (marker, created)."""
        with self._error_context("calculation marker insert", marker.event_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        INSERT INTO {} (
                            event_id, vti_id, event_type, status, reason, details, created_at
                        ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (event_id) DO NOTHING
                        RETURNING *
                    """).format(TABLE_CALC_MARKERS),
                    (
                        marker.event_id,
                        marker.vti_id,
                        marker.event_type,
                        marker.status.value,
                        marker.reason,
                        Json(marker.details),
                        marker.created_at,
                    ),
                )
                row = await result.fetchone()
                if row is None:
                    existing = await self.get_marker(marker.event_id)
                    return existing or marker, False
                logger.info(f"Marked event {marker.event_id} as {marker.status.value} ({marker.reason})")
                return self._row_to_marker(row), True

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    def _row_to_record(self, row: Dict[str, Any]) -> CarbonFootprintRecord:
        return CarbonFootprintRecord(
            record_id=row["record_id"],
            source_event_id=row["source_event_id"],
            vti_id=row.get("vti_id"),
            user_ref=row["user_ref"],
            event_type=row["event_type"],
            timestamp=row["timestamp"],
            calculated_emissions=float(row["calculated_emissions"]),
            unit=row["unit"],
            emission_factor_used=EmissionFactorSnapshot.model_validate(row["emission_factor_used"]),
            data_source=row["data_source"],
            region=row["region"],
            category=row["category"],
            subcategory=row["subcategory"],
            details=row.get("details") or {},
            created_at=row["created_at"],
        )

    def _row_to_marker(self, row: Dict[str, Any]) -> CalculationMarker:
        return CalculationMarker(
            event_id=row["event_id"],
            vti_id=row.get("vti_id"),
            event_type=row["event_type"],
            status=MarkerStatus(row["status"]),
            reason=row["reason"],
            details=row.get("details") or {},
            created_at=row["created_at"],
        )
