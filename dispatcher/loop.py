# ============================================================================
# LEDGER DISPATCHER LOOP
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Calculation trigger
# PURPOSE: Poll the ledger for undelivered events and run the calculator
# CREATED: 06 OCT 2026
# ============================================================================
"""
Ledger Dispatcher

At-least-once delivery of INPUT_APPLIED / TRANSPORTED events to the
carbon calculator.

An event is undelivered while it has neither a footprint record nor a
calculation marker. Each cycle:

    1. Select up to batch_size undelivered events in ledger sequence order
    2. Run the calculator on each
    3. For invalid_payload / factor_not_found, write a skipped marker so
       the event leaves the undelivered set
    4. On error, log and count; the event is picked up again next cycle.
       Later events of the same VTI in this batch are held back so a
       VTI's events are still processed in ledger order

Between cycles the loop sleeps poll_interval seconds, or less when the
ledger signals an append through notify().
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import DispatcherDefaults, get_defaults
from core.contracts import CALCULABLE_EVENT_TYPES, CalculationStatus
from core.logging import get_logger, log_context
from core.models.events import TraceabilityEvent
from core.observability import track_metric
from repositories import EventRepository
from services.carbon_calculator import CarbonFootprintCalculator

logger = get_logger(__name__)

SKIP_STATUSES = (CalculationStatus.INVALID_PAYLOAD, CalculationStatus.FACTOR_NOT_FOUND)


class LedgerDispatcher:
    """
    Polling trigger between the ledger and the carbon calculator.

    Runs as a background asyncio task inside the API process.
    """

    STOP_TIMEOUT_SEC = 10.0

    def __init__(
        self,
        event_repo: EventRepository,
        calculator: CarbonFootprintCalculator,
        defaults: Optional[DispatcherDefaults] = None,
    ):
        self.event_repo = event_repo
        self.calculator = calculator
        self.defaults = defaults or get_defaults().dispatcher
        self.poll_interval = self.defaults.poll_interval_sec
        self.batch_size = self.defaults.batch_size

        # State
        self._running = False
        self._stop_event = asyncio.Event()
        self._wake_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        # Metrics
        self._started_at: Optional[datetime] = None
        self._last_cycle_at: Optional[datetime] = None
        self._cycles = 0
        self._delivered = 0
        self._skipped = 0
        self._errors = 0
        self._consecutive_errors = 0
        self._outcomes: Dict[str, int] = {}

    def notify(self, event: TraceabilityEvent) -> None:
        """Ledger subscriber: wake the loop early for calculable events."""
        if event.event_type in CALCULABLE_EVENT_TYPES:
            self._wake_event.set()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        if self._running:
            logger.warning("Dispatcher already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._main_loop(), name="ledger-dispatcher")
        logger.info(
            f"Dispatcher started (poll_interval={self.poll_interval}s, batch_size={self.batch_size})"
        )

    async def stop(self) -> None:
        """
        Stop the loop.

        The in-flight event finishes first; the task is cancelled only if
        it has not finished after STOP_TIMEOUT_SEC. A cancelled calculation
        leaves no partial write because record and increment share one
        transaction.
        """
        self._running = False
        self._stop_event.set()
        self._wake_event.set()

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=self.STOP_TIMEOUT_SEC)
            except asyncio.TimeoutError:
                logger.warning("Dispatcher did not stop in time, cancelled")
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(
            f"Dispatcher stopped (cycles={self._cycles}, delivered={self._delivered}, "
            f"skipped={self._skipped}, errors={self._errors})"
        )

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    async def _main_loop(self) -> None:
        logger.info("Starting dispatcher loop")

        while self._running and not self._stop_event.is_set():
            backlog = False
            try:
                processed = await self._cycle()
                backlog = processed >= self.batch_size
                self._consecutive_errors = 0
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                self._consecutive_errors += 1
                logger.exception(f"Error in dispatcher cycle: {e}")
                if self._consecutive_errors == self.defaults.max_consecutive_errors:
                    logger.error(
                        f"Dispatcher failed {self._consecutive_errors} cycles in a row, "
                        f"still retrying every {self.poll_interval}s"
                    )

            if backlog:
                continue

            try:
                await asyncio.wait_for(self._wake_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Dispatcher loop stopped")

    async def _cycle(self) -> int:
        """
        One delivery pass.

        Returns:
            Number of events delivered
        """
        self._wake_event.clear()
        self._cycles += 1
        self._last_cycle_at = datetime.now(timezone.utc)

        events = await self.event_repo.list_undelivered(
            sorted(CALCULABLE_EVENT_TYPES),
            limit=self.batch_size,
        )
        if not events:
            return 0

        delivered = 0
        held_vtis = set()
        for event in events:
            if self._stop_event.is_set():
                break
            if event.vti_id in held_vtis:
                continue
            if await self._deliver(event):
                delivered += 1
            else:
                held_vtis.add(event.vti_id)

        logger.debug(f"Dispatcher cycle {self._cycles}: {delivered}/{len(events)} events delivered")
        return delivered

    async def _deliver(self, event: TraceabilityEvent) -> bool:
        """Deliver one event. Returns False if it must be retried."""
        with log_context(event_id=event.event_id, vti_id=event.vti_id, component="dispatcher"):
            try:
                outcome = await self.calculator.on_event_appended(event)
                if outcome.status in SKIP_STATUSES:
                    await self.calculator.record_skip(event, outcome)
                    self._skipped += 1
            except Exception as e:
                self._errors += 1
                track_metric("dispatcher.errors")
                logger.exception(f"Delivery of event {event.event_id} failed, will retry: {e}")
                return False

        self._delivered += 1
        status = outcome.status.value
        self._outcomes[status] = self._outcomes.get(status, 0) + 1
        track_metric("dispatcher.delivered", tags={"status": status})
        return True

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "poll_interval": self.poll_interval,
            "batch_size": self.batch_size,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "delivered": self._delivered,
            "skipped": self._skipped,
            "errors": self._errors,
            "consecutive_errors": self._consecutive_errors,
            "outcomes": dict(self._outcomes),
        }


# ============================================================================
# SINGLE CYCLE EXECUTION (for testing/debugging)
# ============================================================================

async def run_single_cycle(
    event_repo: EventRepository,
    calculator: CarbonFootprintCalculator,
) -> Dict[str, Any]:
    """
    Run one delivery pass without starting the loop.

    Returns:
        Stats from the cycle
    """
    dispatcher = LedgerDispatcher(event_repo, calculator)
    await dispatcher._cycle()
    return dispatcher.stats
