# ============================================================================
# EMISSION FACTOR RESOLVER
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain service - Factor lookup with Global fallback
# PURPOSE: Pick the most recent active factor for region/activity/input
# CREATED: 04 OCT 2026
# ============================================================================
"""
EmissionFactorResolver

Resolution order:
    1. Active factors for the requested region; most recent year wins
    2. Same criteria for region "Global" (skipped if already Global)
    3. None. A missing factor is a soft outcome, never an exception

Several active factors can share the maximum year. Which one wins is the
configured FactorTieBreak, applied explicitly to the candidate list.
"""

from typing import List, Optional

from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults
from core.contracts import GLOBAL_REGION, FactorTieBreak
from core.logging import get_logger
from core.models.emission_factor import EmissionFactor, FactorQuery
from repositories import FactorRepository

logger = get_logger(__name__)


def select_factor(
    factors: List[EmissionFactor],
    tie_break: FactorTieBreak = FactorTieBreak.LATEST_INSERTED,
) -> Optional[EmissionFactor]:
    """Choose among candidate factors: active only, max year, then tie_break."""
    active = [f for f in factors if f.is_active]
    if not active:
        return None

    max_year = max(f.year for f in active)
    candidates = [f for f in active if f.year == max_year]

    def seq(f: EmissionFactor) -> int:
        return f.insert_seq if f.insert_seq is not None else -1

    if tie_break == FactorTieBreak.EARLIEST_INSERTED:
        return min(candidates, key=seq)
    if tie_break == FactorTieBreak.HIGHEST_VALUE:
        return max(candidates, key=lambda f: (f.value, seq(f)))
    return max(candidates, key=seq)


class EmissionFactorResolver:
    """Read-only factor resolution."""

    def __init__(
        self,
        pool: Optional[AsyncConnectionPool],
        repo: Optional[FactorRepository] = None,
        tie_break: Optional[FactorTieBreak] = None,
    ):
        self.pool = pool
        self.repo = repo or FactorRepository(pool)
        self.tie_break = tie_break or get_defaults().resolver.tie_break

    async def resolve(
        self,
        region: str,
        activity_type: str,
        input_type: Optional[str] = None,
        factor_type: Optional[str] = None,
    ) -> Optional[EmissionFactor]:
        """
        Resolve a factor, falling back to the Global region.

        Args:
            region: Region of the acting user
            activity_type: e.g. INPUT_APPLIED
            input_type: e.g. Nitrogen Fertilizer (omit to not constrain)
            factor_type: e.g. kg (omit to not constrain)

        Returns:
            The chosen factor, or None
        """
        query = FactorQuery(
            region=region,
            activity_type=activity_type,
            input_type=input_type,
            factor_type=factor_type,
        )

        factor = await self._resolve_in(query)
        if factor is None and region != GLOBAL_REGION:
            logger.debug(f"No factor for {region}/{activity_type}/{input_type}, trying {GLOBAL_REGION}")
            factor = await self._resolve_in(query.for_region(GLOBAL_REGION))

        if factor is None:
            logger.info(f"No emission factor for {region}/{activity_type}/{input_type}/{factor_type}")
        return factor

    async def _resolve_in(self, query: FactorQuery) -> Optional[EmissionFactor]:
        return select_factor(await self.repo.find_active(query), self.tie_break)


__all__ = ["select_factor", "EmissionFactorResolver"]
