# ============================================================================
# END-TO-END FLOW TESTS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tests - Field to dashboard
# PURPOSE: Field activity -> ledger -> dispatcher -> calculator -> summary
# CREATED: 11 OCT 2026
# ============================================================================
"""
End-to-end flow over the in-memory repositories.

A farmer applies fertilizer on a field, harvests it into a batch, and the
emissions show up on the field's running footprint and in the farmer's
monthly summary.

Run with:
    pytest tests/test_end_to_end.py -v
"""

import asyncio

from core.models import CARBON_FOOTPRINT_KEY
from dispatcher import run_single_cycle

from conftest import NOW, days_ago


def test_fertilizer_to_summary(field_activity, event_repo, calculator, aggregator, carbon_repo,
                               vti_repo, factor_repo, farmer, farm_field):
    factor_repo.add(region="Global", input_type="nitrogen", factor_type="kg", year=2019, value=1.5)

    applied = asyncio.run(field_activity.record_input_application(
        "field-1", "farmer-1", {"inputType": "nitrogen", "quantity": 10, "unit": "kg"},
        timestamp=days_ago(3),
    ))
    batch, harvest = asyncio.run(field_activity.record_harvest("field-1", "farmer-1", "maize", now=NOW))

    stats = asyncio.run(run_single_cycle(event_repo, calculator))

    assert stats["delivered"] == 1
    record = carbon_repo.records[applied.event_id]
    assert record.calculated_emissions == 15
    assert record.vti_id == "field-1"
    assert vti_repo.vtis["field-1"].metadata[CARBON_FOOTPRINT_KEY] == 15
    assert batch.metadata["linkedPreHarvestEvents"] == [applied.event_id]
    assert harvest.event_id not in carbon_repo.records

    summary = asyncio.run(aggregator.summarize("farmer-1", "month", now=NOW))

    assert summary.total == 15
    assert summary.count == 1
    assert summary.by_category == {"Agriculture": 15}


def test_redelivery_after_cycle_changes_nothing(field_activity, event_repo, calculator, carbon_repo,
                                                vti_repo, factor_repo, farmer, farm_field):
    factor_repo.add(region="Global", input_type="nitrogen", factor_type="kg", year=2019, value=1.5)
    applied = asyncio.run(field_activity.record_input_application(
        "field-1", "farmer-1", {"inputType": "nitrogen", "quantity": 10, "unit": "kg"},
    ))

    asyncio.run(run_single_cycle(event_repo, calculator))
    outcome = asyncio.run(calculator.on_event_appended(applied))

    assert outcome.status.value == "duplicate"
    assert len(carbon_repo.records) == 1
    assert vti_repo.vtis["field-1"].metadata[CARBON_FOOTPRINT_KEY] == 15
