# ============================================================================
# SQL GENERATOR TESTS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Tests - DDL generation
# PURPOSE: Verify the tables, constraints and enums generated from the models
# CREATED: 10 OCT 2026
# ============================================================================
"""
PydanticToSQL Tests

Run with:
    pytest tests/test_sql_generator.py -v
"""

from core.models import CarbonFootprintRecord, EmissionFactor, TraceabilityEvent, Vti
from core.schema import PydanticToSQL


def _ddl(model):
    return PydanticToSQL().generate_table(model).as_string()


class TestTables:

    def test_event_sequence_is_bigserial_and_unique(self):
        ddl = _ddl(TraceabilityEvent)

        assert 'CREATE TABLE IF NOT EXISTS "traceability"."traceability_events"' in ddl
        assert '"sequence" BIGSERIAL' in ddl
        assert 'CONSTRAINT "uq_traceability_events_sequence" UNIQUE ("sequence")' in ddl
        assert 'REFERENCES "traceability"."vti_registry" ("vti_id")' in ddl

    def test_one_record_per_source_event(self):
        ddl = _ddl(CarbonFootprintRecord)
        assert 'UNIQUE ("source_event_id")' in ddl

    def test_column_types(self):
        ddl = _ddl(Vti)

        assert '"vti_id" VARCHAR(64)' in ddl
        assert '"linked_vtis" JSONB NOT NULL' in ddl
        assert '"creation_time" TIMESTAMPTZ NOT NULL DEFAULT NOW()' in ddl
        assert 'PRIMARY KEY ("vti_id")' in ddl

    def test_enum_columns_use_schema_type(self):
        ddl = _ddl(Vti)
        assert '"vti_type" "traceability"."vti_type" NOT NULL' in ddl

    def test_factor_insert_seq_serial(self):
        assert '"insert_seq" BIGSERIAL' in _ddl(EmissionFactor)


class TestGenerateAll:

    def test_schema_first_then_enums_then_tables(self):
        statements = [s.as_string() for s in PydanticToSQL().generate_all()]

        assert statements[0] == 'CREATE SCHEMA IF NOT EXISTS "traceability"'
        first_table = next(i for i, s in enumerate(statements) if s.startswith("CREATE TABLE"))
        enum_positions = [i for i, s in enumerate(statements) if "AS ENUM" in s]
        assert enum_positions
        assert max(enum_positions) < first_table

    def test_external_tables_only_on_request(self):
        owned = " ".join(s.as_string() for s in PydanticToSQL().generate_all())
        full = " ".join(s.as_string() for s in PydanticToSQL().generate_all(include_external=True))

        assert "sustainable_practices" not in owned
        assert "sustainable_practices" in full

    def test_destructive_drops_enums(self):
        statements = [s.as_string() for s in PydanticToSQL(destructive=True).generate_all()]
        assert any(s.startswith('DROP TYPE IF EXISTS "traceability"."vti_type"') for s in statements)
