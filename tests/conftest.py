# ============================================================================
# TEST FIXTURES
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tests - Shared in-memory repositories
# PURPOSE: Run services without PostgreSQL
# CREATED: 08 OCT 2026
# ============================================================================
"""
Shared fixtures.

The in-memory repositories mirror the SQL repositories' contracts (same
method names, arguments, ordering and return shapes) so services can be
exercised end to end without a database.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest

from core.config import (
    AggregationDefaults,
    CalculatorDefaults,
    DispatcherDefaults,
    TraceabilityDefaults,
    reset_defaults,
)
from core.contracts import CertificationStatus, VtiStatus, VtiType
from core.errors import PersistenceError, ValidationError
from core.models import (
    CARBON_FOOTPRINT_KEY,
    CalculationMarker,
    CarbonFootprintRecord,
    EmissionFactor,
    EmissionFactorSnapshot,
    FactorQuery,
    TraceabilityEvent,
    Vti,
    WindowTotals,
)
from core.observability import get_metrics
from repositories.carbon_repo import UNIT_TO_KG
from services import (
    CarbonFootprintCalculator,
    EmissionFactorResolver,
    FieldActivityService,
    StaticRegionResolver,
    SustainabilityAggregator,
    TraceabilityLedger,
    VtiRegistryService,
)

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# IN-MEMORY REPOSITORIES
# ============================================================================

class FakeVtiRepository:

    def __init__(self):
        self.vtis: Dict[str, Vti] = {}

    async def create(self, vti: Vti) -> Vti:
        if vti.vti_id in self.vtis:
            raise ValidationError(f"VTI id already exists: {vti.vti_id}", field="vtiId", value=vti.vti_id)
        self.vtis[vti.vti_id] = vti.model_copy(deep=True)
        return vti.model_copy(deep=True)

    async def get(self, vti_id: str) -> Optional[Vti]:
        vti = self.vtis.get(vti_id)
        return vti.model_copy(deep=True) if vti else None

    async def get_many(self, vti_ids: Iterable[str]) -> Dict[str, Vti]:
        return {i: self.vtis[i].model_copy(deep=True) for i in vti_ids if i in self.vtis}

    async def get_links(self, vti_ids: Iterable[str]) -> Dict[str, List[str]]:
        return {i: list(self.vtis[i].linked_vtis) for i in vti_ids if i in self.vtis}

    async def list_public_recent(self, limit: int = 10) -> List[Vti]:
        public = [v for v in self.vtis.values() if v.is_public_traceable]
        public.sort(key=lambda v: v.vti_id)
        public.sort(key=lambda v: v.creation_time, reverse=True)
        return [v.model_copy(deep=True) for v in public[:limit]]

    async def merge_metadata(self, vti_id: str, patch: Dict[str, Any]) -> Optional[Vti]:
        vti = self.vtis.get(vti_id)
        if vti is None:
            return None
        vti.metadata = {**vti.metadata, **patch}
        vti.updated_at = datetime.now(timezone.utc)
        return vti.model_copy(deep=True)

    async def update_status(self, vti_id: str, expected_status: VtiStatus, new_status: VtiStatus) -> Optional[Vti]:
        vti = self.vtis.get(vti_id)
        if vti is None or vti.status != expected_status:
            return None
        vti.status = new_status
        return vti.model_copy(deep=True)

    async def add_links(self, vti_id: str, linked_ids: List[str]) -> Optional[Vti]:
        vti = self.vtis.get(vti_id)
        if vti is None:
            return None
        vti.linked_vtis = list(dict.fromkeys(vti.linked_vtis + list(linked_ids)))
        return vti.model_copy(deep=True)

    async def increment_carbon_footprint(self, vti_id: str, amount: float, conn=None) -> bool:
        vti = self.vtis.get(vti_id)
        if vti is None:
            return False
        vti.metadata[CARBON_FOOTPRINT_KEY] = float(vti.metadata.get(CARBON_FOOTPRINT_KEY, 0)) + amount
        return True

    def put(self, vti_type: VtiType, vti_id: str, links=None, **metadata) -> Vti:
        """Seed a VTI directly, bypassing registry validation."""
        vti = Vti(vti_id=vti_id, vti_type=vti_type, linked_vtis=list(links or []), metadata=metadata)
        self.vtis[vti_id] = vti
        return vti


class FakeCarbonRepository:

    def __init__(self, vti_repo: FakeVtiRepository):
        self.vti_repo = vti_repo
        self.records: Dict[str, CarbonFootprintRecord] = {}
        self.markers: Dict[str, CalculationMarker] = {}

    async def get_by_source_event(self, event_id: str) -> Optional[CarbonFootprintRecord]:
        return self.records.get(event_id)

    async def create_if_absent(self, record: CarbonFootprintRecord):
        existing = self.records.get(record.source_event_id)
        if existing is not None:
            return existing, False
        self.records[record.source_event_id] = record
        if record.vti_id:
            kg = record.calculated_emissions * UNIT_TO_KG.get(record.unit, 1.0)
            await self.vti_repo.increment_carbon_footprint(record.vti_id, kg)
        return record, True

    async def window_totals(self, user_ref: str, start: datetime, end: datetime, include_end: bool = True) -> WindowTotals:
        totals = WindowTotals()
        for record in self.records.values():
            if record.user_ref != user_ref or record.timestamp < start:
                continue
            if record.timestamp > end or (not include_end and record.timestamp == end):
                continue
            kg = record.calculated_emissions * UNIT_TO_KG.get(record.unit, 1.0)
            totals.total += kg
            totals.count += 1
            totals.by_category[record.category] = totals.by_category.get(record.category, 0.0) + kg
        return totals

    async def get_marker(self, event_id: str) -> Optional[CalculationMarker]:
        return self.markers.get(event_id)

    async def create_marker(self, marker: CalculationMarker):
        existing = self.markers.get(marker.event_id)
        if existing is not None:
            return existing, False
        self.markers[marker.event_id] = marker
        return marker, True

    def add_record(self, user_ref: str, emissions: float, timestamp: datetime, category="Agriculture"):
        """Seed a record directly."""
        record = CarbonFootprintRecord(
            source_event_id=f"seed-{len(self.records)}",
            user_ref=user_ref,
            event_type="INPUT_APPLIED",
            timestamp=timestamp,
            calculated_emissions=emissions,
            unit="kg CO2e",
            emission_factor_used=EmissionFactorSnapshot(factor_id="f", value=1.0, unit="kg CO2e", source="seed"),
            region="Global",
            category=category,
            subcategory="Input Application",
        )
        self.records[record.source_event_id] = record
        return record


class FakeEventRepository:

    def __init__(self, carbon_repo: Optional[FakeCarbonRepository] = None):
        self.carbon_repo = carbon_repo
        self.events: List[TraceabilityEvent] = []
        self.list_calls = 0

    async def append(self, event: TraceabilityEvent) -> TraceabilityEvent:
        stored = event.model_copy(update={"sequence": len(self.events) + 1})
        self.events.append(stored)
        return stored

    async def get(self, event_id: str) -> Optional[TraceabilityEvent]:
        return next((e for e in self.events if e.event_id == event_id), None)

    def _page(self, events, after, limit):
        self.list_calls += 1
        ordered = sorted(events, key=lambda e: (e.timestamp, e.sequence))
        if after is not None:
            ordered = [e for e in ordered if (e.timestamp, e.sequence) > after]
        return ordered[:limit]

    async def list_for_vti(self, vti_id: str, after=None, limit: int = 200) -> List[TraceabilityEvent]:
        return self._page([e for e in self.events if e.vti_id == vti_id], after, limit)

    async def list_for_field(
        self,
        farm_field_id: str,
        event_types: Iterable[str],
        since: datetime,
        until: Optional[datetime] = None,
        after=None,
        limit: int = 200,
    ) -> List[TraceabilityEvent]:
        types = set(event_types)
        matching = [
            e for e in self.events
            if e.farm_field_id == farm_field_id
            and e.event_type in types
            and e.timestamp >= since
            and (until is None or e.timestamp <= until)
        ]
        return self._page(matching, after, limit)

    async def first_of_type(self, vti_ids: Iterable[str], event_type: str) -> Dict[str, TraceabilityEvent]:
        ids = set(vti_ids)
        found: Dict[str, TraceabilityEvent] = {}
        for event in sorted(self.events, key=lambda e: (e.timestamp, e.sequence)):
            if event.vti_id in ids and event.event_type == event_type:
                found.setdefault(event.vti_id, event)
        return found

    async def list_undelivered(self, event_types: Iterable[str], limit: int = 50) -> List[TraceabilityEvent]:
        types = set(event_types)
        pending = [
            e for e in self.events
            if e.event_type in types
            and e.event_id not in self.carbon_repo.records
            and e.event_id not in self.carbon_repo.markers
        ]
        return sorted(pending, key=lambda e: e.sequence)[:limit]


class FakeFactorRepository:

    def __init__(self):
        self.factors: List[EmissionFactor] = []

    def add(self, **kwargs) -> EmissionFactor:
        kwargs.setdefault("activity_type", "INPUT_APPLIED")
        kwargs.setdefault("source", "test")
        factor = EmissionFactor(insert_seq=len(self.factors) + 1, **kwargs)
        self.factors.append(factor)
        return factor

    async def find_active(self, query: FactorQuery) -> List[EmissionFactor]:
        return [
            f for f in self.factors
            if f.is_active
            and f.region == query.region
            and f.activity_type == query.activity_type
            and (query.input_type is None or f.input_type == query.input_type)
            and (query.factor_type is None or f.factor_type == query.factor_type)
        ]


class FakePracticeRepository:

    def __init__(self, practices=None, certifications=None, error: Optional[Exception] = None):
        self.practices = practices or []
        self.certs = certifications or []
        self.error = error

    async def active_practices(self, user_ref: str, limit: int = 10):
        if self.error:
            raise self.error
        return [p for p in self.practices if p.user_ref == user_ref][:limit]

    async def certifications(self, user_ref: str, statuses=(CertificationStatus.ACTIVE, CertificationStatus.PENDING)):
        if self.error:
            raise self.error
        return [c for c in self.certs if c.user_ref == user_ref and c.status in statuses]


class FailingCarbonRepository(FakeCarbonRepository):
    """Raises PersistenceError on the first ``failures`` record inserts."""

    def __init__(self, vti_repo: FakeVtiRepository, failures: int = 1):
        super().__init__(vti_repo)
        self.failures = failures

    async def create_if_absent(self, record: CarbonFootprintRecord):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset", operation="carbon record insert")
        return await super().create_if_absent(record)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def _clean_state():
    reset_defaults()
    get_metrics().clear()
    yield
    reset_defaults()


@pytest.fixture
def vti_repo():
    return FakeVtiRepository()


@pytest.fixture
def carbon_repo(vti_repo):
    return FakeCarbonRepository(vti_repo)


@pytest.fixture
def event_repo(carbon_repo):
    return FakeEventRepository(carbon_repo)


@pytest.fixture
def factor_repo():
    return FakeFactorRepository()


@pytest.fixture
def practice_repo():
    return FakePracticeRepository()


@pytest.fixture
def traceability_defaults():
    return TraceabilityDefaults(max_graph_depth=8, harvest_lookback_days=30, event_page_size=2)


@pytest.fixture
def registry(vti_repo, traceability_defaults):
    return VtiRegistryService(None, repo=vti_repo, defaults=traceability_defaults)


@pytest.fixture
def ledger(vti_repo, event_repo, traceability_defaults):
    return TraceabilityLedger(None, vti_repo=vti_repo, event_repo=event_repo, defaults=traceability_defaults)


@pytest.fixture
def resolver(factor_repo):
    return EmissionFactorResolver(None, repo=factor_repo)


@pytest.fixture
def calculator(carbon_repo, resolver):
    return CarbonFootprintCalculator(
        None,
        carbon_repo=carbon_repo,
        resolver=resolver,
        region_resolver=StaticRegionResolver(),
        defaults=CalculatorDefaults(region_lookup_timeout_sec=0.05),
    )


@pytest.fixture
def aggregator(carbon_repo, practice_repo):
    return SustainabilityAggregator(
        None,
        carbon_repo=carbon_repo,
        practice_repo=practice_repo,
        defaults=AggregationDefaults(directory_timeout_sec=0.05),
    )


@pytest.fixture
def field_activity(registry, ledger, traceability_defaults):
    return FieldActivityService(registry, ledger, defaults=traceability_defaults)


@pytest.fixture
def dispatcher_defaults():
    return DispatcherDefaults(enabled=True, poll_interval_sec=0.01, batch_size=10, max_consecutive_errors=3)


@pytest.fixture
def farmer(vti_repo):
    return vti_repo.put(VtiType.USER, "farmer-1", displayName="Amina Farmer")


@pytest.fixture
def farm_field(vti_repo):
    return vti_repo.put(VtiType.FARM_FIELD, "field-1", name="North 40")


def days_ago(days: float, now: datetime = NOW) -> datetime:
    return now - timedelta(days=days)
