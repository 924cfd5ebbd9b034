# ============================================================================
# TRACEABILITY LEDGER TESTS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tests - Ledger append and query
# PURPOSE: Verify append validation, ordering and restartable streams
# CREATED: 08 OCT 2026
# ============================================================================
"""
TraceabilityLedger Tests

Run with:
    pytest tests/test_ledger.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from core.contracts import VtiType
from core.errors import InvalidActorError, NotFoundError, PayloadValidationError, ValidationError
from core.models import TraceEventInput

from conftest import NOW


def _input(vti_id="field-1", actor_ref="farmer-1", event_type="OBSERVED", **kwargs):
    kwargs.setdefault("payload", {"observationType": "pest_scout"})
    return TraceEventInput(vti_id=vti_id, actor_ref=actor_ref, event_type=event_type, **kwargs)


# ============================================================================
# APPEND
# ============================================================================

class TestAppend:

    def test_append_assigns_id_sequence_and_recorded_at(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append(_input(timestamp=NOW)))

        assert event.event_id
        assert event.sequence == 1
        assert event.timestamp == NOW
        assert event.recorded_at.tzinfo is not None

    def test_missing_timestamp_defaults_to_recorded_at(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append(_input()))
        assert event.timestamp == event.recorded_at

    def test_naive_timestamp_treated_as_utc(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append(_input(timestamp=datetime(2026, 5, 1, 8, 30))))
        assert event.timestamp == datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_accepts_camel_case_dict(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append({
            "vtiId": "field-1",
            "eventType": "INPUT_APPLIED",
            "actorRef": "farmer-1",
            "payload": {"inputType": "nitrogen", "quantity": 10, "unit": "kg"},
            "farmFieldId": "field-1",
        }))
        assert event.payload == {"inputType": "nitrogen", "quantity": 10.0, "unit": "kg"}
        assert event.farm_field_id == "field-1"

    def test_unknown_vti(self, ledger, farmer):
        with pytest.raises(NotFoundError) as exc:
            asyncio.run(ledger.append(_input(vti_id="ghost")))
        assert exc.value.field == "vtiId"

    def test_unknown_actor(self, ledger, farm_field):
        with pytest.raises(NotFoundError) as exc:
            asyncio.run(ledger.append(_input(actor_ref="nobody")))
        assert exc.value.field == "actorRef"

    def test_actor_must_be_user_or_organization(self, ledger, farm_field, vti_repo):
        vti_repo.put(VtiType.FARM_BATCH, "batch-1")
        with pytest.raises(InvalidActorError):
            asyncio.run(ledger.append(_input(actor_ref="batch-1")))

    def test_organization_can_act(self, ledger, farm_field, vti_repo):
        vti_repo.put(VtiType.ORGANIZATION, "coop-1")
        event = asyncio.run(ledger.append(_input(actor_ref="coop-1")))
        assert event.actor_ref == "coop-1"

    def test_unknown_farm_field(self, ledger, farmer, farm_field):
        with pytest.raises(NotFoundError) as exc:
            asyncio.run(ledger.append(_input(farm_field_id="field-404")))
        assert exc.value.field == "farmFieldId"

    def test_blank_event_type(self, ledger, farmer, farm_field):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(ledger.append(_input(event_type="  ")))
        assert exc.value.field == "eventType"

    def test_missing_field_in_dict_named_in_camel_case(self, ledger):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(ledger.append({"vtiId": "field-1", "eventType": "OBSERVED"}))
        assert exc.value.field == "actorRef"

    def test_payload_validated_for_known_types(self, ledger, farmer, farm_field):
        with pytest.raises(PayloadValidationError) as exc:
            asyncio.run(ledger.append(_input(event_type="INPUT_APPLIED", payload={"inputType": "urea"})))
        assert "payload.quantity" in exc.value.fields
        assert "payload.unit" in exc.value.fields

    @pytest.mark.parametrize("quantity", [float("inf"), float("nan")])
    def test_non_finite_quantity_rejected(self, ledger, event_repo, farmer, farm_field, quantity):
        payload = {"inputType": "urea", "quantity": quantity, "unit": "kg"}

        with pytest.raises(PayloadValidationError) as exc:
            asyncio.run(ledger.append(_input(event_type="INPUT_APPLIED", payload=payload)))

        assert exc.value.fields == ["payload.quantity"]
        assert event_repo.events == []

    def test_unknown_event_type_kept_verbatim(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append(_input(event_type="IRRIGATED", payload={"liters": 500})))
        assert event.event_type == "IRRIGATED"
        assert event.payload == {"liters": 500}

    def test_nothing_stored_on_rejection(self, ledger, event_repo, farm_field):
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.append(_input(actor_ref="nobody")))
        assert event_repo.events == []

    def test_subscribers_notified_and_isolated(self, ledger, farmer, farm_field):
        seen = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        ledger.subscribe(broken)
        ledger.subscribe(seen.append)

        event = asyncio.run(ledger.append(_input()))
        assert [e.event_id for e in seen] == [event.event_id]


# ============================================================================
# QUERIES
# ============================================================================

class TestQueries:

    def _seed(self, ledger, count, start=NOW):
        return [
            asyncio.run(ledger.append(_input(timestamp=start + timedelta(minutes=i))))
            for i in range(count)
        ]

    def test_stream_pages_through_all_events_in_order(self, ledger, event_repo, farmer, farm_field):
        # page size is 2, so 5 events take 3 pages
        appended = self._seed(ledger, 5)

        events = asyncio.run(ledger.query_by_vti("field-1").to_list())

        assert [e.event_id for e in events] == [e.event_id for e in appended]
        assert event_repo.list_calls == 3

    def test_same_timestamp_ordered_by_sequence(self, ledger, farmer, farm_field):
        first = asyncio.run(ledger.append(_input(timestamp=NOW)))
        second = asyncio.run(ledger.append(_input(timestamp=NOW)))
        third = asyncio.run(ledger.append(_input(timestamp=NOW)))

        events = asyncio.run(ledger.query_by_vti("field-1").to_list())
        assert [e.event_id for e in events] == [first.event_id, second.event_id, third.event_id]

    def test_out_of_order_timestamps_sorted(self, ledger, farmer, farm_field):
        late = asyncio.run(ledger.append(_input(timestamp=NOW)))
        early = asyncio.run(ledger.append(_input(timestamp=NOW - timedelta(days=1))))

        events = asyncio.run(ledger.query_by_vti("field-1").to_list())
        assert [e.event_id for e in events] == [early.event_id, late.event_id]

    def test_stream_is_restartable(self, ledger, farmer, farm_field):
        self._seed(ledger, 3)
        stream = ledger.query_by_vti("field-1")

        async def collect():
            first = [e.event_id async for e in stream]
            second = [e.event_id async for e in stream]
            return first, second

        first, second = asyncio.run(collect())
        assert first == second
        assert len(first) == 3

    def test_to_list_limit(self, ledger, farmer, farm_field):
        self._seed(ledger, 5)
        assert len(asyncio.run(ledger.query_by_vti("field-1").to_list(3))) == 3

    def test_empty_stream(self, ledger):
        assert asyncio.run(ledger.query_by_vti("nothing-here").to_list()) == []

    def test_field_query_requires_since(self, ledger):
        with pytest.raises(ValidationError) as exc:
            ledger.query_by_field("field-1", ["PLANTED"], since=None)
        assert exc.value.field == "since"

    def test_field_query_requires_types(self, ledger):
        with pytest.raises(ValidationError) as exc:
            ledger.query_by_field("field-1", [], since=NOW)
        assert exc.value.field == "eventTypes"

    def test_field_query_filters_type_and_window(self, ledger, farmer, farm_field):
        inside = asyncio.run(ledger.append(_input(
            event_type="PLANTED", payload={"cropType": "maize"}, farm_field_id="field-1",
            timestamp=NOW - timedelta(days=3),
        )))
        asyncio.run(ledger.append(_input(
            event_type="PLANTED", payload={}, farm_field_id="field-1",
            timestamp=NOW - timedelta(days=40),
        )))
        asyncio.run(ledger.append(_input(
            event_type="SOLD", payload={}, farm_field_id="field-1",
            timestamp=NOW - timedelta(days=1),
        )))

        events = asyncio.run(
            ledger.query_by_field("field-1", ["PLANTED"], since=NOW - timedelta(days=30), until=NOW).to_list()
        )
        assert [e.event_id for e in events] == [inside.event_id]

    def test_get_event(self, ledger, farmer, farm_field):
        event = asyncio.run(ledger.append(_input()))
        assert asyncio.run(ledger.get_event(event.event_id)).event_id == event.event_id

        with pytest.raises(NotFoundError):
            asyncio.run(ledger.get_event("missing"))


# ============================================================================
# HISTORY
# ============================================================================

class TestHistory:

    def test_history_resolves_actors(self, ledger, farmer, farm_field):
        asyncio.run(ledger.append(_input(timestamp=NOW)))
        asyncio.run(ledger.append(_input(timestamp=NOW + timedelta(hours=1))))

        history = asyncio.run(ledger.history("field-1"))

        assert history.vti.vti_id == "field-1"
        assert len(history.events) == 2
        assert history.events[0].actor.actor_type == "user"
        assert history.events[0].actor.display_name == "Amina Farmer"

    def test_history_of_unknown_vti(self, ledger):
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.history("ghost"))


# ============================================================================
# PUBLIC BATCHES
# ============================================================================

def _public_batch(vti_repo, vti_id, created, **metadata):
    vti = vti_repo.put(VtiType.FARM_BATCH, vti_id, **metadata)
    vti.is_public_traceable = True
    vti.creation_time = created
    return vti


class TestPublicBatches:

    def test_newest_first_with_producer_and_harvest_date(self, ledger, vti_repo, farmer):
        old = _public_batch(vti_repo, "batch-old", NOW - timedelta(days=2), cropType="maize")
        _public_batch(vti_repo, "batch-new", NOW - timedelta(days=1), cropType="coffee")
        vti_repo.put(VtiType.FARM_BATCH, "batch-private", cropType="tea")
        harvested_at = NOW - timedelta(hours=20)
        asyncio.run(ledger.append(_input(
            vti_id="batch-new", event_type="HARVESTED", payload={"cropType": "coffee"}, timestamp=harvested_at,
        )))

        batches = asyncio.run(ledger.recent_public_batches())

        assert [b.vti_id for b in batches] == ["batch-new", "batch-old"]
        assert batches[0].product_name == "coffee"
        assert batches[0].producer_name == "Amina Farmer"
        assert batches[0].harvest_date == harvested_at
        assert batches[1].producer_name == "Unknown"
        assert batches[1].harvest_date == old.creation_time

    def test_limit(self, ledger, vti_repo):
        for i in range(3):
            _public_batch(vti_repo, f"batch-{i}", NOW - timedelta(days=i), cropType="maize")

        batches = asyncio.run(ledger.recent_public_batches(limit=2))

        assert [b.vti_id for b in batches] == ["batch-0", "batch-1"]

    def test_unknown_product(self, ledger, vti_repo):
        _public_batch(vti_repo, "batch-1", NOW)
        assert asyncio.run(ledger.recent_public_batches())[0].product_name == "Unknown Product"

    def test_nothing_public(self, ledger, vti_repo):
        vti_repo.put(VtiType.FARM_BATCH, "batch-1", cropType="maize")
        assert asyncio.run(ledger.recent_public_batches()) == []
