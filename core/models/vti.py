# ============================================================================
# VTI MODEL
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain model - Node of the provenance graph
# PURPOSE: Verified Traceability Identifier with links, status and metadata
# CREATED: 02 OCT 2026
# ============================================================================
"""
VTI Model

A Verified Traceability Identifier names a user, organization, field, batch,
lot or processed product. VTIs reference each other through ``linked_vtis``;
the references form a DAG (a harvest batch points at its farm field).

Lifecycle:
    1. Created once by the registry with status ACTIVE
    2. status and metadata mutate (processing, sale, ...)
    3. ARCHIVED is terminal; VTIs are never physically deleted

metadata["carbonFootprintKgCO2e"] is a running aggregate written only when a
carbon footprint record is persisted for the VTI.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.contracts import VtiStatus, VtiType

CARBON_FOOTPRINT_KEY = "carbonFootprintKgCO2e"


class Vti(BaseModel):
    """
    Provenance graph node.

    Maps to: traceability.vti_registry
    """

    # SQL DDL METADATA
    __sql_table__: ClassVar[str] = "vti_registry"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["vti_id"]
    __sql_indexes__: ClassVar[List] = [
        ("idx_vti_registry_type", ["vti_type"]),
        ("idx_vti_registry_status", ["status"]),
        ("idx_vti_registry_public_recent", ["creation_time"], "is_public_traceable"),
        {
            "name": "idx_vti_registry_linked",
            "columns": ["linked_vtis"],
            "type": "gin",
        },
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    vti_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        max_length=64,
        alias="id",
        description="Opaque identifier, immutable",
    )
    vti_type: VtiType = Field(..., alias="type")
    status: VtiStatus = Field(default=VtiStatus.ACTIVE)
    linked_vtis: List[str] = Field(
        default_factory=list,
        description="Ids this VTI references (JSONB array)",
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_public_traceable: bool = Field(default=False)
    creation_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def carbon_footprint_kg(self) -> float:
        return float(self.metadata.get(CARBON_FOOTPRINT_KEY, 0) or 0)

    @property
    def display_name(self) -> Optional[str]:
        for key in ("displayName", "name", "fullName"):
            if self.metadata.get(key):
                return str(self.metadata[key])
        return None


class FarmBatchMetadata(BaseModel):
    """Typed metadata written on harvest-derived farm_batch VTIs."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    crop_type: str
    farm_field_id: str
    initial_yield_kg: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    initial_quality_grade: Optional[str] = None
    linked_pre_harvest_events: List[str] = Field(default_factory=list)


__all__ = ["Vti", "FarmBatchMetadata", "CARBON_FOOTPRINT_KEY"]
