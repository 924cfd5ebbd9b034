# ============================================================================
# SUSTAINABILITY MODELS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain model - Aggregated views and external read models
# PURPOSE: Windowed footprint summaries plus practice/certification rows
# CREATED: 02 OCT 2026
# ============================================================================
"""
Sustainability Models

SustainabilitySummary is computed on demand from footprint records.
SustainablePractice and Certification are owned by the surrounding
platform; this service only reads them for the dashboard.
"""

from datetime import datetime
from typing import ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.contracts import CertificationStatus, PeriodType


class WindowTotals(BaseModel):
    """Raw sums for one time window."""
    total: float = 0.0
    count: int = 0
    by_category: Dict[str, float] = Field(default_factory=dict)


class SustainabilitySummary(BaseModel):
    """Footprint for the current window compared with the one before it."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    user_id: str
    period_type: PeriodType
    period_start: datetime
    period_end: datetime
    total: float
    unit: str = "kg CO2e"
    count: int
    average: float
    previous_total: float
    trend_percent: float
    by_category: Dict[str, float] = Field(default_factory=dict)


class PracticeImpact(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="allow")

    carbon_reduction: Optional[float] = None
    water_savings: Optional[float] = None
    biodiversity_score: Optional[float] = None


class SustainablePractice(BaseModel):
    """
    Practice a user has logged (read-only here).

    Maps to: traceability.sustainable_practices (platform-owned)
    """

    __sql_table__: ClassVar[str] = "sustainable_practices"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["practice_id"]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_practices_user_logged", ["user_ref", "last_logged"], "is_active"),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    practice_id: str = Field(..., max_length=64, alias="id")
    user_ref: str = Field(..., max_length=64)
    practice: str
    description: Optional[str] = None
    category: Optional[str] = None
    last_logged: datetime
    frequency: Optional[str] = None
    impact: PracticeImpact = Field(default_factory=PracticeImpact)
    is_active: bool = True


class Certification(BaseModel):
    """
    Sustainability certification held by a user (read-only here).

    Maps to: traceability.certifications (platform-owned)
    """

    __sql_table__: ClassVar[str] = "certifications"
    __sql_schema__: ClassVar[str] = "traceability"
    __sql_primary_key__: ClassVar[List[str]] = ["certification_id"]
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_certifications_user_expiry", ["user_ref", "expiry_date"]),
    ]

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    certification_id: str = Field(..., max_length=64, alias="id")
    user_ref: str = Field(..., max_length=64)
    name: str
    issuing_body: str
    certification_number: Optional[str] = None
    status: CertificationStatus
    issue_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    category: Optional[str] = None


class SustainabilityDashboard(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    summary: SustainabilitySummary
    practices: List[SustainablePractice] = Field(default_factory=list)
    certifications: List[Certification] = Field(default_factory=list)


__all__ = [
    "WindowTotals",
    "SustainabilitySummary",
    "PracticeImpact",
    "SustainablePractice",
    "Certification",
    "SustainabilityDashboard",
]
