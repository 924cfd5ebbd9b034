# ============================================================================
# API ROUTE TESTS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tests - HTTP endpoints
# PURPOSE: Verify routes, status codes and domain error mapping
# CREATED: 10 OCT 2026
# ============================================================================
"""
API Route Tests

Uses FastAPI TestClient against a bare app carrying both routers, with
services backed by the in-memory repositories.

Run with:
    pytest tests/test_routes.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api import router, set_services, set_traceability_services, traceability_router
from dispatcher import LedgerDispatcher


# ============================================================================
# FIXTURES
# ============================================================================

def _make_test_app():
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.include_router(traceability_router, prefix="/api/v1")
    return app


@pytest.fixture
def dispatcher(event_repo, calculator, dispatcher_defaults):
    return LedgerDispatcher(event_repo, calculator, defaults=dispatcher_defaults)


@pytest.fixture
def client(calculator, aggregator, dispatcher, registry, ledger, field_activity, resolver):
    set_services(calculator, aggregator, dispatcher, ledger)
    set_traceability_services(registry, ledger, field_activity, resolver)
    yield TestClient(_make_test_app())
    set_services(None, None, None)
    set_traceability_services(None, None, None, None)


@pytest.fixture
def nitrogen(factor_repo):
    return factor_repo.add(region="Global", input_type="nitrogen", factor_type="kg", year=2019, value=1.5)


def _carbon_body(event_id="evt-1", event_type="INPUT_APPLIED", payload=None):
    if payload is None:
        payload = {"inputType": "nitrogen", "quantity": 10, "unit": "kg"}
    return {
        "eventId": event_id,
        "eventData": {
            "eventType": event_type,
            "vtiId": "field-1",
            "actorRef": "farmer-1",
            "payload": payload,
        },
    }


def _append_nitrogen(ledger, quantity):
    return asyncio.run(ledger.append({
        "vtiId": "field-1",
        "eventType": "INPUT_APPLIED",
        "actorRef": "farmer-1",
        "payload": {"inputType": "nitrogen", "quantity": quantity, "unit": "kg"},
    }))


# ============================================================================
# CARBON FOOTPRINT
# ============================================================================

class TestCarbonFootprint:

    def test_calculated(self, client, nitrogen, farm_field):
        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body())

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["status"] == "calculated"
        assert data["emissions"] == 15
        assert data["carbonDataId"]

    def test_repeat_is_duplicate(self, client, carbon_repo, nitrogen, farm_field):
        first = client.post("/api/v1/carbon-footprint", json=_carbon_body()).json()
        second = client.post("/api/v1/carbon-footprint", json=_carbon_body()).json()

        assert second["duplicate"] is True
        assert second["carbonDataId"] == first["carbonDataId"]
        assert len(carbon_repo.records) == 1

    def test_not_relevant(self, client):
        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body(event_type="PLANTED", payload={}))

        assert resp.status_code == 200
        assert resp.json()["message"] == "not relevant"

    def test_factor_not_found(self, client):
        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body())

        assert resp.status_code == 200
        assert resp.json()["message"] == "not found"
        assert resp.json()["region"] == "Global"

    def test_transport_pending(self, client):
        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body(event_type="TRANSPORTED", payload={}))
        assert resp.json()["message"] == "pending calculation"

    def test_missing_event_data(self, client):
        resp = client.post("/api/v1/carbon-footprint", json={"eventId": "evt-1"})

        assert resp.status_code == 400
        fields = [e["field"] for e in resp.json()["detail"]["errors"]]
        assert "eventData" in fields

    def test_invalid_payload(self, client, nitrogen):
        resp = client.post(
            "/api/v1/carbon-footprint",
            json=_carbon_body(payload={"inputType": "nitrogen", "unit": "kg"}),
        )

        assert resp.status_code == 400
        assert resp.json()["detail"]["fields"] == ["payload.quantity"]

    def test_ledger_event_uses_ledger_copy(self, client, ledger, carbon_repo, nitrogen, farmer, farm_field):
        stored = _append_nitrogen(ledger, quantity=10)

        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body(event_id=stored.event_id))

        assert resp.status_code == 200
        assert resp.json()["emissions"] == 15
        assert carbon_repo.records[stored.event_id].timestamp == stored.timestamp

    def test_ledger_event_without_payload_in_body(self, client, ledger, nitrogen, farmer, farm_field):
        stored = _append_nitrogen(ledger, quantity=10)

        resp = client.post("/api/v1/carbon-footprint", json=_carbon_body(event_id=stored.event_id, payload={}))

        assert resp.json()["emissions"] == 15

    def test_mismatched_event_data_rejected(self, client, ledger, calculator, carbon_repo, nitrogen,
                                           farmer, farm_field):
        stored = _append_nitrogen(ledger, quantity=10)
        body = _carbon_body(
            event_id=stored.event_id,
            payload={"inputType": "nitrogen", "quantity": 1000, "unit": "kg"},
        )

        resp = client.post("/api/v1/carbon-footprint", json=body)

        assert resp.status_code == 409
        assert resp.json()["detail"]["fields"] == ["eventData.payload"]
        assert carbon_repo.records == {}

        outcome = asyncio.run(calculator.on_event_appended(stored))
        assert outcome.status.value == "calculated"
        assert carbon_repo.records[stored.event_id].calculated_emissions == 15

    def test_mismatched_identity_fields(self, client, ledger, nitrogen, farmer, farm_field):
        stored = _append_nitrogen(ledger, quantity=10)
        body = _carbon_body(event_id=stored.event_id)
        body["eventData"]["vtiId"] = "field-2"
        body["eventData"]["userRef"] = "someone-else"

        resp = client.post("/api/v1/carbon-footprint", json=body)

        assert resp.status_code == 409
        assert resp.json()["detail"]["fields"] == ["eventData.vtiId", "eventData.userRef"]

    def test_uninitialized_ledger(self, calculator, aggregator):
        set_services(calculator, aggregator)
        try:
            resp = TestClient(_make_test_app()).post("/api/v1/carbon-footprint", json=_carbon_body())
        finally:
            set_services(None, None, None)
        assert resp.status_code == 503

    def test_uninitialized_service(self):
        set_services(None, None, None)
        resp = TestClient(_make_test_app()).post("/api/v1/carbon-footprint", json=_carbon_body())
        assert resp.status_code == 503


# ============================================================================
# DASHBOARD
# ============================================================================

class TestDashboard:

    def test_requires_identity_header(self, client):
        assert client.get("/api/v1/dashboard").status_code == 401

    def test_summary_for_caller(self, client, carbon_repo):
        carbon_repo.add_record("farmer-1", 12.5, datetime.now(timezone.utc) - timedelta(days=1))

        resp = client.get("/api/v1/dashboard", headers={"X-Authenticated-User": "farmer-1"})

        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["total"] == 12.5
        assert summary["count"] == 1
        assert summary["periodType"] == "month"
        assert resp.json()["practices"] == []

    def test_invalid_period(self, client):
        resp = client.get(
            "/api/v1/dashboard",
            params={"period": "fortnight"},
            headers={"X-Authenticated-User": "farmer-1"},
        )

        assert resp.status_code == 400
        assert resp.json()["detail"]["field"] == "period"


# ============================================================================
# REGISTRY AND LEDGER
# ============================================================================

class TestTraceability:

    def test_create_and_get_vti(self, client):
        resp = client.post("/api/v1/vtis", json={"type": "farm_field", "metadata": {"name": "North 40"}})

        assert resp.status_code == 201
        vti_id = resp.json()["id"]
        got = client.get(f"/api/v1/vtis/{vti_id}").json()
        assert got["type"] == "farm_field"
        assert got["metadata"]["carbonFootprintKgCO2e"] == 0

    def test_unknown_vti(self, client):
        resp = client.get("/api/v1/vtis/ghost")

        assert resp.status_code == 404
        assert resp.json()["detail"]["error"] == "NotFoundError"

    def test_cycle_rejected(self, client, vti_repo):
        vti_repo.put("farm_field", "f")
        vti_repo.put("farm_batch", "b", links=["f"])

        resp = client.post("/api/v1/vtis/f/links", json={"linkedVtis": ["b"]})

        assert resp.status_code == 409
        assert resp.json()["detail"]["path"] == ["f", "b", "f"]

    def test_append_event(self, client, event_repo, farmer, farm_field):
        resp = client.post("/api/v1/events", json={
            "vtiId": "field-1",
            "eventType": "OBSERVED",
            "actorRef": "farmer-1",
            "payload": {"observationType": "pest_scout"},
        })

        assert resp.status_code == 201
        assert resp.json()["eventId"] == event_repo.events[0].event_id
        assert resp.json()["sequence"] == 1

    def test_append_rejects_unknown_actor(self, client, farm_field):
        resp = client.post("/api/v1/events", json={
            "vtiId": "field-1", "eventType": "OBSERVED", "actorRef": "nobody",
            "payload": {"observationType": "pest_scout"},
        })

        assert resp.status_code == 404
        assert resp.json()["detail"]["field"] == "actorRef"

    def test_field_events_require_since(self, client, farm_field):
        resp = client.get("/api/v1/fields/field-1/events")
        assert resp.status_code == 400

    def test_harvest(self, client, farmer, farm_field):
        resp = client.post("/api/v1/fields/field-1/harvests", json={"actorRef": "farmer-1", "cropType": "maize"})

        assert resp.status_code == 201
        assert resp.json()["batch"]["linkedVtis"] == ["field-1"]
        assert resp.json()["event"]["eventType"] == "HARVESTED"

    def test_harvest_retry_with_batch_id(self, client, vti_repo, farmer, farm_field):
        body = {"actorRef": "farmer-1", "cropType": "maize", "batchId": "batch-maize-1"}

        first = client.post("/api/v1/fields/field-1/harvests", json=body)
        second = client.post("/api/v1/fields/field-1/harvests", json=body)

        assert first.status_code == second.status_code == 201
        assert second.json()["event"]["id"] == first.json()["event"]["id"]
        assert [v for v in vti_repo.vtis if v.startswith("batch")] == ["batch-maize-1"]

    def test_recent_public_batches(self, client, farmer, farm_field):
        client.post("/api/v1/fields/field-1/harvests", json={
            "actorRef": "farmer-1", "cropType": "maize", "isPublicTraceable": True,
        })
        client.post("/api/v1/fields/field-1/harvests", json={"actorRef": "farmer-1", "cropType": "beans"})

        resp = client.get("/api/v1/vtis/public/recent")

        assert resp.status_code == 200
        batches = resp.json()["batches"]
        assert len(batches) == 1
        assert batches[0]["productName"] == "maize"
        assert batches[0]["producerName"] == "Amina Farmer"
        assert batches[0]["harvestDate"]


# ============================================================================
# EMISSION FACTORS AND DISPATCHER
# ============================================================================

class TestMisc:

    def test_resolve_factor(self, client, nitrogen):
        resp = client.get("/api/v1/emission-factors/resolve", params={
            "region": "Kenya", "activityType": "INPUT_APPLIED", "inputType": "nitrogen", "factorType": "kg",
        })

        assert resp.status_code == 200
        assert resp.json()["id"] == nitrogen.factor_id

    def test_resolve_factor_not_found(self, client):
        resp = client.get("/api/v1/emission-factors/resolve", params={
            "region": "Kenya", "activityType": "INPUT_APPLIED",
        })
        assert resp.status_code == 404

    def test_dispatcher_status(self, client):
        data = client.get("/api/v1/dispatcher/status").json()

        assert data["running"] is False
        assert data["cycles"] == 0
