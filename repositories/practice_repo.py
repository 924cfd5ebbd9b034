# ============================================================================
# PRACTICE DIRECTORY REPOSITORY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Read model - Platform-owned sustainability data
# PURPOSE: Read access to sustainable_practices and certifications tables
# CREATED: 03 OCT 2026
# ============================================================================
"""
Practice Directory Repository

The surrounding platform owns practice and certification data; the
dashboard only reads it. No write methods exist here.
"""

import logging
from typing import Any, Dict, Iterable, List

from psycopg import sql
from psycopg.rows import dict_row

from core.contracts import CertificationStatus
from core.models.sustainability import Certification, PracticeImpact, SustainablePractice
from .base import BaseRepository
from .database import TABLE_CERTIFICATIONS, TABLE_PRACTICES

logger = logging.getLogger(__name__)


class PracticeRepository(BaseRepository):
    """Read-only repository for practices and certifications."""

    async def active_practices(self, user_ref: str, limit: int = 10) -> List[SustainablePractice]:
        """Active practices, most recently logged first."""
        with self._error_context("practice list", user_ref):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT * FROM {}
                        WHERE user_ref = %s AND is_active
                        ORDER BY last_logged DESC
                        LIMIT %s
                    """).format(TABLE_PRACTICES),
                    (user_ref, limit),
                )
                rows = await result.fetchall()
                return [self._row_to_practice(row) for row in rows]

    async def certifications(
        self,
        user_ref: str,
        statuses: Iterable[CertificationStatus] = (CertificationStatus.ACTIVE, CertificationStatus.PENDING),
    ) -> List[Certification]:
        """Certifications in the given statuses, soonest expiry first."""
        with self._error_context("certification list", user_ref):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                        SELECT * FROM {}
                        WHERE user_ref = %s AND status = ANY(%s)
                        ORDER BY expiry_date ASC NULLS LAST
                    """).format(TABLE_CERTIFICATIONS),
                    (user_ref, [s.value for s in statuses]),
                )
                rows = await result.fetchall()
                return [self._row_to_certification(row) for row in rows]

    def _row_to_practice(self, row: Dict[str, Any]) -> SustainablePractice:
        return SustainablePractice(
            practice_id=row["practice_id"],
            user_ref=row["user_ref"],
            practice=row["practice"],
            description=row.get("description"),
            category=row.get("category"),
            last_logged=row["last_logged"],
            frequency=row.get("frequency"),
            impact=PracticeImpact.model_validate(row.get("impact") or {}),
            is_active=bool(row.get("is_active", True)),
        )

    def _row_to_certification(self, row: Dict[str, Any]) -> Certification:
        return Certification(
            certification_id=row["certification_id"],
            user_ref=row["user_ref"],
            name=row["name"],
            issuing_body=row["issuing_body"],
            certification_number=row.get("certification_number"),
            status=CertificationStatus(row["status"]),
            issue_date=row.get("issue_date"),
            expiry_date=row.get("expiry_date"),
            category=row.get("category"),
        )
