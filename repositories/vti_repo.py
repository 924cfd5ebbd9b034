# ============================================================================
# VTI REPOSITORY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain - VTI CRUD and graph reads
# PURPOSE: Database access for vti_registry table
# CREATED: 03 OCT 2026
# ============================================================================
"""
VTI Repository

CRUD for the provenance graph nodes. All SQL uses psycopg sql.SQL
composition for injection safety.

Mutations that can race (metadata merge, link union, footprint increment)
are single UPDATE statements, never read-modify-write.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json

from core.contracts import VtiStatus, VtiType
from core.errors import ValidationError
from core.models.vti import CARBON_FOOTPRINT_KEY, Vti
from .base import BaseRepository
from .database import TABLE_VTIS

logger = logging.getLogger(__name__)


class VtiRepository(BaseRepository):
    """Repository for Vti entities."""

    async def create(self, vti: Vti) -> Vti:
        """
        Insert a new VTI.

        Raises:
            ValidationError: if the id is already taken
        """
        with self._error_context("vti insert", vti.vti_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        INSERT INTO {} (
                            vti_id, vti_type, status, linked_vtis, metadata,
                            is_public_traceable, creation_time, updated_at
                        ) VALUES (
                            %(vti_id)s, %(vti_type)s, %(status)s, %(linked_vtis)s,
                            %(metadata)s, %(is_public_traceable)s, %(creation_time)s,
                            %(updated_at)s
                        )
                        ON CONFLICT (vti_id) DO NOTHING
                        RETURNING *
                    """).format(TABLE_VTIS),
                    {
                        "vti_id": vti.vti_id,
                        "vti_type": vti.vti_type.value,
                        "status": vti.status.value,
                        "linked_vtis": Json(vti.linked_vtis),
                        "metadata": Json(vti.metadata),
                        "is_public_traceable": vti.is_public_traceable,
                        "creation_time": vti.creation_time,
                        "updated_at": vti.updated_at,
                    },
                )
                row = await result.fetchone()

        if row is None:
            raise ValidationError(f"VTI id already exists: {vti.vti_id}", field="vtiId", value=vti.vti_id)

        logger.info(f"Created VTI {vti.vti_id} (type={vti.vti_type.value}, links={len(vti.linked_vtis)})")
        return self._row_to_model(row)

    async def get(self, vti_id: str) -> Optional[Vti]:
        """Get a VTI by id."""
        with self._error_context("vti get", vti_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE vti_id = %s").format(TABLE_VTIS),
                    (vti_id,),
                )
                row = await result.fetchone()
                return self._row_to_model(row) if row else None

    async def get_many(self, vti_ids: Iterable[str]) -> Dict[str, Vti]:
        """Fetch several VTIs at once; missing ids are absent from the result."""
        ids = list(dict.fromkeys(vti_ids))
        if not ids:
            return {}
        with self._error_context("vti get_many"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE vti_id = ANY(%s)").format(TABLE_VTIS),
                    (ids,),
                )
                rows = await result.fetchall()
                return {row["vti_id"]: self._row_to_model(row) for row in rows}

    async def get_links(self, vti_ids: Iterable[str]) -> Dict[str, List[str]]:
        """
        Outgoing links for a frontier of VTIs (one round-trip per graph level).

        Returns:
            {vti_id: linked_vtis} for the ids that exist
        """
        ids = list(dict.fromkeys(vti_ids))
        if not ids:
            return {}
        with self._error_context("vti get_links"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT vti_id, linked_vtis FROM {} WHERE vti_id = ANY(%s)").format(TABLE_VTIS),
                    (ids,),
                )
                rows = await result.fetchall()
                return {row["vti_id"]: list(row.get("linked_vtis") or []) for row in rows}

    async def list_public_recent(self, limit: int = 10) -> List[Vti]:
        """Publicly traceable VTIs, newest first."""
        with self._error_context("vti list_public_recent"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT * FROM {}
                        WHERE is_public_traceable
                        ORDER BY creation_time DESC, vti_id ASC
                        LIMIT %s
                    """).format(TABLE_VTIS),
                    (limit,),
                )
                rows = await result.fetchall()
                return [self._row_to_model(row) for row in rows]

    async def merge_metadata(self, vti_id: str, patch: Dict[str, Any]) -> Optional[Vti]:
        """
        Shallow-merge ``patch`` into metadata (top-level keys replace).

        Returns:
            Updated VTI, or None if the id is unknown
        """
        with self._error_context("vti metadata merge", vti_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        UPDATE {} SET
                            metadata = metadata || %s::jsonb,
                            updated_at = %s
                        WHERE vti_id = %s
                        RETURNING *
                    """).format(TABLE_VTIS),
                    (Json(patch), datetime.now(timezone.utc), vti_id),
                )
                row = await result.fetchone()
                return self._row_to_model(row) if row else None

    async def update_status(
        self,
        vti_id: str,
        expected_status: VtiStatus,
        new_status: VtiStatus,
    ) -> Optional[Vti]:
        """
        Compare-and-set the status.

        Returns:
            Updated VTI, or None if the VTI is missing or its status changed
        """
        with self._error_context("vti status update", vti_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        UPDATE {} SET
                            status = %s,
                            updated_at = %s
                        WHERE vti_id = %s
                          AND status = %s
                        RETURNING *
                    """).format(TABLE_VTIS),
                    (new_status.value, datetime.now(timezone.utc), vti_id, expected_status.value),
                )
                row = await result.fetchone()
                return self._row_to_model(row) if row else None

    async def add_links(self, vti_id: str, linked_ids: List[str]) -> Optional[Vti]:
        """Union ``linked_ids`` into linked_vtis. Returns None if the id is unknown."""
        with self._error_context("vti add links", vti_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        UPDATE {} SET
                            linked_vtis = COALESCE(
                                (SELECT jsonb_agg(DISTINCT elem)
                                 FROM jsonb_array_elements(linked_vtis || %s::jsonb) AS elem),
                                '[]'::jsonb
                            ),
                            updated_at = %s
                        WHERE vti_id = %s
                        RETURNING *
                    """).format(TABLE_VTIS),
                    (Json(linked_ids), datetime.now(timezone.utc), vti_id),
                )
                row = await result.fetchone()
                return self._row_to_model(row) if row else None

    async def increment_carbon_footprint(
        self,
        vti_id: str,
        amount: float,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """
        Atomically add ``amount`` to metadata.carbonFootprintKgCO2e.

        Pass ``conn`` to run inside a caller's transaction.

        Returns:
            True if the VTI exists and was updated
        """
        if conn is not None:
            return await self._increment(conn, vti_id, amount)
        with self._error_context("vti footprint increment", vti_id):
            async with self.pool.connection() as own_conn:
                return await self._increment(own_conn, vti_id, amount)

    async def _increment(self, conn: AsyncConnection, vti_id: str, amount: float) -> bool:
        result = await conn.execute(
            sql.SQL("""
                UPDATE {} SET
                    metadata = jsonb_set(
                        metadata,
                        %s::text[],
                        to_jsonb(COALESCE((metadata ->> %s)::double precision, 0) + %s)
                    ),
                    updated_at = %s
                WHERE vti_id = %s
            """).format(TABLE_VTIS),
            (
                [CARBON_FOOTPRINT_KEY],
                CARBON_FOOTPRINT_KEY,
                float(amount),
                datetime.now(timezone.utc),
                vti_id,
            ),
        )
        if result.rowcount == 0:
            logger.warning(f"Footprint increment skipped, VTI {vti_id} not found")
            return False
        return True

    def _row_to_model(self, row: Dict[str, Any]) -> Vti:
        """Convert a database row to a Vti instance."""
        return Vti(
            vti_id=row["vti_id"],
            vti_type=VtiType(row["vti_type"]),
            status=VtiStatus(row["status"]),
            linked_vtis=list(row.get("linked_vtis") or []),
            metadata=row.get("metadata") or {},
            is_public_traceable=bool(row.get("is_public_traceable")),
            creation_time=row["creation_time"],
            updated_at=row.get("updated_at") or row["creation_time"],
        )
