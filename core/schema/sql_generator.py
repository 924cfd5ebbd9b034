# ============================================================================
# PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements from Pydantic models
# CREATED: 03 OCT 2026
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

Generates PostgreSQL DDL statements from Pydantic models.
Pydantic models are the SINGLE SOURCE OF TRUTH for schema.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name
    - __sql_schema__: Schema name
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "schema.table(column)"}
    - __sql_unique__: List of (constraint_name, columns)
    - __sql_indexes__: List of index definitions, tuple or dict form
    - __sql_serial_columns__: Columns that should be BIGSERIAL

Usage:
    generator = PydanticToSQL(schema_name="traceability")
    for stmt in generator.generate_all():
        cursor.execute(stmt)
"""

import re
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Sequence, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from psycopg import sql
from pydantic import BaseModel
from pydantic.fields import FieldInfo

logger = logging.getLogger(__name__)


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.

    Analyzes Pydantic models with __sql_* metadata and generates
    corresponding CREATE TYPE / TABLE / INDEX statements.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        list: "JSONB",
    }

    def __init__(self, schema_name: str = "traceability", destructive: bool = False):
        """
        Args:
            schema_name: Default PostgreSQL schema name
            destructive: If True, DROP+CREATE enum types (data loss risk)
        """
        self.schema_name = schema_name
        self.destructive = destructive
        self.enums: Dict[str, Type[Enum]] = {}

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """Extract __sql_* metadata from a Pydantic model class."""
        def get_attr(name: str, default=None):
            return getattr(model, f"__sql_{name}__", default)

        metadata = {
            "table": get_attr("table"),
            "schema": get_attr("schema", "traceability"),
            "primary_key": get_attr("primary_key", []),
            "foreign_keys": get_attr("foreign_keys", {}),
            "unique": get_attr("unique", []),
            "indexes": get_attr("indexes", []),
            "serial_columns": get_attr("serial_columns", []),
        }

        if isinstance(metadata["primary_key"], str):
            metadata["primary_key"] = [metadata["primary_key"]]

        return metadata

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    @staticmethod
    def _unwrap_optional(field_type: Any) -> tuple:
        """Return (inner_type, is_optional)."""
        if get_origin(field_type) is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            is_optional = len(args) < len(get_args(field_type))
            return (args[0] if len(args) == 1 else Any), is_optional
        return field_type, False

    def python_type_to_sql(self, field_type: Any, field_info: FieldInfo) -> str:
        """Convert a Python annotation to a PostgreSQL type name."""
        actual_type, _ = self._unwrap_optional(field_type)
        origin = get_origin(actual_type)

        if origin in (dict, Dict, list, List):
            return "JSONB"

        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            enum_name = re.sub(r"(?<!^)(?=[A-Z])", "_", actual_type.__name__).lower()
            self.enums[enum_name] = actual_type
            return enum_name

        # Nested models are stored as documents
        if isinstance(actual_type, type) and issubclass(actual_type, BaseModel):
            return "JSONB"

        return self.TYPE_MAP.get(actual_type, "JSONB")

    # =========================================================================
    # ENUM GENERATION
    # =========================================================================

    def generate_enum(self, enum_name: str, enum_class: Type[Enum], schema: str) -> List[sql.Composable]:
        """
        Generate PostgreSQL ENUM type DDL.

        destructive=False wraps CREATE TYPE in a DO block so reruns are safe.
        """
        values_list = [member.value for member in enum_class]
        values_sql = sql.SQL(", ").join(sql.Literal(v) for v in values_list)

        if self.destructive:
            return [
                sql.SQL("DROP TYPE IF EXISTS {}.{} CASCADE").format(
                    sql.Identifier(schema), sql.Identifier(enum_name)
                ),
                sql.SQL("CREATE TYPE {}.{} AS ENUM ({})").format(
                    sql.Identifier(schema), sql.Identifier(enum_name), values_sql
                ),
            ]

        return [
            sql.SQL(
                "DO $$ BEGIN "
                "IF NOT EXISTS (SELECT 1 FROM pg_type t JOIN pg_namespace n ON n.oid = t.typnamespace "
                "WHERE t.typname = {name_lit} AND n.nspname = {schema_lit}) THEN "
                "CREATE TYPE {schema}.{name} AS ENUM ({values}); "
                "END IF; END$$"
            ).format(
                name_lit=sql.Literal(enum_name),
                schema_lit=sql.Literal(schema),
                schema=sql.Identifier(schema),
                name=sql.Identifier(enum_name),
                values=values_sql,
            )
        ]

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _column_default(self, field_name: str, field_info: FieldInfo, sql_type: str, schema: str) -> List[sql.Composable]:
        default = field_info.default
        if field_info.default_factory is not None:
            if sql_type == "TIMESTAMPTZ":
                return [sql.SQL(" DEFAULT NOW()")]
            if sql_type == "JSONB":
                inner, _ = self._unwrap_optional(field_info.annotation)
                empty = "'[]'" if get_origin(inner) in (list, List) else "'{}'"
                return [sql.SQL(f" DEFAULT {empty}")]
            return []
        if default is None or default is ... or type(default).__name__ == "PydanticUndefinedType":
            return []
        if isinstance(default, Enum):
            return [
                sql.SQL(" DEFAULT "),
                sql.Literal(default.value),
                sql.SQL("::"),
                sql.Identifier(schema),
                sql.SQL("."),
                sql.Identifier(sql_type),
            ]
        if isinstance(default, bool):
            return [sql.SQL(" DEFAULT true" if default else " DEFAULT false")]
        if isinstance(default, (str, int, float)):
            return [sql.SQL(" DEFAULT "), sql.Literal(default)]
        return []

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """Generate CREATE TABLE DDL from a Pydantic model."""
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        schema_name = meta["schema"]
        primary_key = meta["primary_key"]
        serial_columns = meta["serial_columns"]

        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Generating table {schema_name}.{table_name} from {model.__name__}")

        columns = []
        constraints = []

        for field_name, field_info in model.model_fields.items():
            _, is_optional = self._unwrap_optional(field_info.annotation)
            sql_type = self.python_type_to_sql(field_info.annotation, field_info)

            parts: List[sql.Composable] = [sql.Identifier(field_name), sql.SQL(" ")]

            if field_name in serial_columns:
                parts.append(sql.SQL("BIGSERIAL"))
                columns.append(sql.Composed(parts))
                continue

            if sql_type in self.enums:
                parts.extend([sql.Identifier(schema_name), sql.SQL("."), sql.Identifier(sql_type)])
            else:
                parts.append(sql.SQL(sql_type))

            if not is_optional and field_name not in primary_key:
                parts.append(sql.SQL(" NOT NULL"))

            parts.extend(self._column_default(field_name, field_info, sql_type, schema_name))
            columns.append(sql.Composed(parts))

        if primary_key:
            constraints.append(
                sql.SQL("PRIMARY KEY ({})").format(
                    sql.SQL(", ").join(sql.Identifier(col) for col in primary_key)
                )
            )

        for name, unique_cols in meta["unique"]:
            constraints.append(
                sql.SQL("CONSTRAINT {} UNIQUE ({})").format(
                    sql.Identifier(name),
                    sql.SQL(", ").join(sql.Identifier(col) for col in unique_cols),
                )
            )

        for fk_column, fk_reference in meta["foreign_keys"].items():
            match = re.match(r"(\w+)\.(\w+)\((\w+)\)", fk_reference)
            if match:
                ref_schema, ref_table, ref_column = match.groups()
                constraints.append(
                    sql.SQL("FOREIGN KEY ({}) REFERENCES {}.{} ({})").format(
                        sql.Identifier(fk_column),
                        sql.Identifier(ref_schema),
                        sql.Identifier(ref_table),
                        sql.Identifier(ref_column),
                    )
                )

        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(schema_name),
            sql.Identifier(table_name),
            sql.SQL(", ").join(columns + constraints),
        )

    # =========================================================================
    # INDEX GENERATION
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """Generate CREATE INDEX statements from __sql_indexes__."""
        meta = self.get_model_metadata(model)
        table = sql.Identifier(meta["schema"], meta["table"])
        result = []

        for idx_def in meta["indexes"]:
            if isinstance(idx_def, tuple):
                name = idx_def[0]
                columns = idx_def[1] if len(idx_def) > 1 else []
                partial_where = idx_def[2] if len(idx_def) > 2 else None
                index_type = "btree"
            elif isinstance(idx_def, dict):
                name = idx_def.get("name")
                columns = idx_def.get("columns", [])
                partial_where = idx_def.get("partial_where")
                index_type = idx_def.get("type", "btree")
            else:
                continue

            if not columns or not name:
                continue
            if isinstance(columns, str):
                columns = [columns]

            stmt = sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} USING {} ({})").format(
                sql.Identifier(name),
                table,
                sql.SQL(index_type),
                sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            )
            if partial_where:
                stmt = stmt + sql.SQL(" WHERE ") + sql.SQL(partial_where)
            result.append(stmt)

        return result

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_drop_schema(self) -> sql.Composed:
        """DROP SCHEMA CASCADE. Destroys all data; development rebuild only."""
        return sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(self.schema_name))

    @staticmethod
    def owned_models() -> List[Type[BaseModel]]:
        """Tables written by this service, in dependency order."""
        from core.models import (
            Vti,
            TraceabilityEvent,
            EmissionFactor,
            CarbonFootprintRecord,
            CalculationMarker,
        )
        return [Vti, TraceabilityEvent, EmissionFactor, CarbonFootprintRecord, CalculationMarker]

    @staticmethod
    def external_models() -> List[Type[BaseModel]]:
        """Platform-owned tables this service only reads."""
        from core.models import SustainablePractice, Certification
        return [SustainablePractice, Certification]

    def generate_all(self, include_external: bool = False) -> List[sql.Composable]:
        """
        Generate complete DDL for the schema.

        Args:
            include_external: Also create platform-owned read tables (local dev)
        """
        models: Sequence[Type[BaseModel]] = self.owned_models()
        if include_external:
            models = list(models) + self.external_models()

        statements: List[sql.Composable] = [
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.schema_name))
        ]

        # Tables first so enum types are discovered
        tables = [self.generate_table(model) for model in models]
        for enum_name, enum_class in self.enums.items():
            statements.extend(self.generate_enum(enum_name, enum_class, self.schema_name))
        statements.extend(tables)
        for model in models:
            statements.extend(self.generate_indexes(model))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements


__all__ = ["PydanticToSQL"]
