# ============================================================================
# EMISSION FACTOR REPOSITORY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain - Emission factor store
# PURPOSE: Database access for emission_factors table
# CREATED: 03 OCT 2026
# ============================================================================
"""
Emission Factor Repository

Read path for the resolver plus the administrative write path used by the
seeding tool. The resolver never writes.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.rows import dict_row

from core.models.emission_factor import EmissionFactor, FactorQuery
from .base import BaseRepository
from .database import TABLE_FACTORS

logger = logging.getLogger(__name__)


class FactorRepository(BaseRepository):
    """Repository for EmissionFactor entities."""

    async def find_active(self, query: FactorQuery) -> List[EmissionFactor]:
        """
        Active factors matching the query.

        ``input_type`` and ``factor_type`` constrain only when set.
        Ordered newest year first, then by insertion order.
        """
        conditions = [
            sql.SQL("is_active"),
            sql.SQL("region = %s"),
            sql.SQL("activity_type = %s"),
        ]
        params: List[Any] = [query.region, query.activity_type]
        if query.input_type is not None:
            conditions.append(sql.SQL("input_type = %s"))
            params.append(query.input_type)
        if query.factor_type is not None:
            conditions.append(sql.SQL("factor_type = %s"))
            params.append(query.factor_type)

        with self._error_context("factor lookup", f"{query.region}/{query.activity_type}"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE {} ORDER BY year DESC, insert_seq ASC").format(
                        TABLE_FACTORS,
                        sql.SQL(" AND ").join(conditions),
                    ),
                    params,
                )
                rows = await result.fetchall()
                return [self._row_to_model(row) for row in rows]

    async def create(self, factor: EmissionFactor) -> EmissionFactor:
        """Insert a factor (administrative path). Returns it with insert_seq set."""
        with self._error_context("factor insert", factor.factor_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        INSERT INTO {} (
                            factor_id, region, activity_type, input_type, factor_type,
                            year, value, unit, source, description, is_active, created_at
                        ) VALUES (
                            %(factor_id)s, %(region)s, %(activity_type)s, %(input_type)s,
                            %(factor_type)s, %(year)s, %(value)s, %(unit)s, %(source)s,
                            %(description)s, %(is_active)s, %(created_at)s
                        )
                        ON CONFLICT (factor_id) DO NOTHING
                        RETURNING *
                    """).format(TABLE_FACTORS),
                    factor.model_dump(exclude={"insert_seq"}),
                )
                row = await result.fetchone()
                if row is None:
                    logger.info(f"Factor {factor.factor_id} already present, skipped")
                    return factor
                logger.info(
                    f"Created emission factor {factor.factor_id} "
                    f"({factor.region}/{factor.activity_type}/{factor.input_type} {factor.year})"
                )
                return self._row_to_model(row)

    async def set_active(self, factor_id: str, is_active: bool) -> bool:
        """Soft-delete or restore a factor."""
        with self._error_context("factor set_active", factor_id):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL("UPDATE {} SET is_active = %s WHERE factor_id = %s").format(TABLE_FACTORS),
                    (is_active, factor_id),
                )
                return result.rowcount > 0

    async def list_factors(self, region: Optional[str] = None, limit: int = 500) -> List[EmissionFactor]:
        """List factors, optionally for one region."""
        with self._error_context("factor list"):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                if region:
                    query = sql.SQL(
                        "SELECT * FROM {} WHERE region = %s ORDER BY activity_type, year DESC LIMIT %s"
                    ).format(TABLE_FACTORS)
                    params = (region, limit)
                else:
                    query = sql.SQL(
                        "SELECT * FROM {} ORDER BY region, activity_type, year DESC LIMIT %s"
                    ).format(TABLE_FACTORS)
                    params = (limit,)
                result = await conn.execute(query, params)
                rows = await result.fetchall()
                return [self._row_to_model(row) for row in rows]

    def _row_to_model(self, row: Dict[str, Any]) -> EmissionFactor:
        return EmissionFactor(
            factor_id=row["factor_id"],
            insert_seq=row.get("insert_seq"),
            region=row["region"],
            activity_type=row["activity_type"],
            input_type=row.get("input_type"),
            factor_type=row.get("factor_type"),
            year=row["year"],
            value=float(row["value"]),
            unit=row["unit"],
            source=row.get("source") or "",
            description=row.get("description"),
            is_active=bool(row.get("is_active", True)),
            created_at=row["created_at"],
        )
