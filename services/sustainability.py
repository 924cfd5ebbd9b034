# ============================================================================
# SUSTAINABILITY AGGREGATOR
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Read service - Footprint summaries and dashboard
# PURPOSE: Window totals, trend vs the previous window, practices/certifications
# CREATED: 05 OCT 2026
# ============================================================================
"""
SustainabilityAggregator

Windows for a period of length w ending at ``now``:

    current   [now - w,  now]       inclusive end
    previous  [now - 2w, now - w)   half-open, so a record sitting exactly
                                    on the boundary counts once (current)

trendPercent = (current - previous) / previous * 100, or 0 when previous
is 0. Totals, average and trend are rounded to 2 decimal places.

The dashboard adds the user's practices and certifications from the
platform-owned directory; a slow or failing directory degrades to empty
lists rather than failing the summary.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, List, Optional, Union

from psycopg_pool import AsyncConnectionPool

from core.config import AggregationDefaults, get_defaults
from core.contracts import PeriodType
from core.errors import PersistenceError, ValidationError
from core.logging import get_logger, log_context
from core.models.sustainability import SustainabilityDashboard, SustainabilitySummary
from core.observability import signal_warning
from repositories import CarbonRepository, PracticeRepository

logger = get_logger(__name__)


def trend_percent(current: float, previous: float) -> float:
    """Percent change from previous to current; 0 when there is no baseline."""
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 0.0


def parse_period(value: Union[PeriodType, str, None], default: PeriodType = PeriodType.MONTH) -> PeriodType:
    """Parse month|quarter|year (case-insensitive); None gives ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, PeriodType):
        return value
    try:
        return PeriodType(str(value).lower())
    except ValueError:
        raise ValidationError(
            f"Invalid period {value!r}, expected month, quarter or year",
            field="period",
            value=value,
        )


class SustainabilityAggregator:
    """Computes footprint summaries and assembles the dashboard."""

    def __init__(
        self,
        pool: Optional[AsyncConnectionPool],
        carbon_repo: Optional[CarbonRepository] = None,
        practice_repo: Optional[PracticeRepository] = None,
        defaults: Optional[AggregationDefaults] = None,
    ):
        self.pool = pool
        self.carbon_repo = carbon_repo or CarbonRepository(pool)
        self.practice_repo = practice_repo or PracticeRepository(pool)
        self.defaults = defaults or get_defaults().aggregation

    async def summarize(
        self,
        user_id: str,
        period: Union[PeriodType, str, None] = None,
        now: Optional[datetime] = None,
    ) -> SustainabilitySummary:
        """Footprint of ``user_id`` over the period ending at ``now``."""
        period_type = parse_period(period, self.defaults.default_period)
        now = now or datetime.now(timezone.utc)
        window = self.defaults.window_for(period_type)

        current_start = now - window
        previous_start = now - 2 * window

        current, previous = await asyncio.gather(
            self.carbon_repo.window_totals(user_id, current_start, now, include_end=True),
            self.carbon_repo.window_totals(user_id, previous_start, current_start, include_end=False),
        )

        total = round(current.total, 2)
        summary = SustainabilitySummary(
            user_id=user_id,
            period_type=period_type,
            period_start=current_start,
            period_end=now,
            total=total,
            unit=self.defaults.unit,
            count=current.count,
            average=round(current.total / current.count, 2) if current.count else 0.0,
            previous_total=round(previous.total, 2),
            trend_percent=trend_percent(current.total, previous.total),
            by_category={k: round(v, 2) for k, v in sorted(current.by_category.items())},
        )

        with log_context(user_id=user_id):
            logger.debug(
                f"Summary {period_type.value}: total={summary.total} count={summary.count} "
                f"trend={summary.trend_percent}%"
            )
        return summary

    async def dashboard(
        self,
        user_id: str,
        period: Union[PeriodType, str, None] = None,
        now: Optional[datetime] = None,
    ) -> SustainabilityDashboard:
        """Summary plus recent practices and Active/Pending certifications."""
        summary = await self.summarize(user_id, period, now)

        practices, certifications = await asyncio.gather(
            self._from_directory(
                "practices",
                user_id,
                self.practice_repo.active_practices(user_id, limit=self.defaults.practice_limit),
            ),
            self._from_directory("certifications", user_id, self.practice_repo.certifications(user_id)),
        )

        return SustainabilityDashboard(
            summary=summary,
            practices=practices,
            certifications=certifications,
        )

    async def _from_directory(self, name: str, user_id: str, call: Awaitable[List[Any]]) -> List[Any]:
        try:
            return await asyncio.wait_for(call, timeout=self.defaults.directory_timeout_sec)
        except asyncio.TimeoutError:
            signal_warning(f"dashboard.{name}_timeout", user_id=user_id)
        except PersistenceError as e:
            signal_warning(f"dashboard.{name}_unavailable", user_id=user_id, error=str(e))
        return []


__all__ = ["trend_percent", "parse_period", "SustainabilityAggregator"]
