# ============================================================================
# EMISSION FACTOR MODEL
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain model - Versioned CO2e conversion factors
# PURPOSE: Region/activity-scoped multipliers administered out-of-band
# CREATED: 02 OCT 2026
# ============================================================================
"""
Emission Factor Model

Logical key: (region, activity_type, input_type?, factor_type?, year).
Several years may coexist for one key; resolution uses the most recent
active year. ``insert_seq`` is a database serial used only to break ties
between factors sharing that year.
"""

import uuid
from datetime import datetime, timezone
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EmissionFactor(BaseModel):
    """
    Conversion factor from an activity quantity to CO2-equivalent.

    Maps to: traceability.emission_factors
    """

    # SQL DDL METADATA
    __sql_table__: ClassVar[str] = "emission_factors"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["factor_id"]
    __sql_serial_columns__: ClassVar[List[str]] = ["insert_seq"]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_emission_factors_lookup", ["region", "activity_type", "year"], "is_active"),
        ("idx_emission_factors_input", ["input_type"], "input_type IS NOT NULL"),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    factor_id: str = Field(default_factory=lambda: str(uuid.uuid4()), max_length=64, alias="id")
    insert_seq: Optional[int] = None
    region: str = Field(..., max_length=100)
    activity_type: str = Field(..., max_length=64)
    input_type: Optional[str] = Field(default=None, max_length=100)
    factor_type: Optional[str] = Field(default=None, max_length=64)
    year: int = Field(..., ge=1900, le=2200)
    value: float = Field(..., ge=0)
    unit: str = Field(default="kg CO2e", max_length=32)
    source: str = Field(default="", max_length=500)
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FactorQuery(BaseModel):
    """Resolution criteria. Omitted optional criteria do not constrain."""
    region: str
    activity_type: str
    input_type: Optional[str] = None
    factor_type: Optional[str] = None

    def for_region(self, region: str) -> "FactorQuery":
        return self.model_copy(update={"region": region})


__all__ = ["EmissionFactor", "FactorQuery"]
