# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Business logic layer
# PURPOSE: Registry, ledger, carbon and sustainability services
# CREATED: 04 OCT 2026
# ============================================================================
"""
Services Module

Business rules for the traceability core. Services coordinate repositories
and each other; they never touch SQL directly.

Usage:
    from services import VtiRegistryService, TraceabilityLedger

    registry = VtiRegistryService(pool)
    field = await registry.create("farm_field", metadata={"name": "North 40"})
"""

from .vti_registry import VtiRegistryService
from .ledger import EventStream, TraceabilityLedger
from .factor_resolver import EmissionFactorResolver, select_factor
from .region_resolver import RegionResolver, StaticRegionResolver, ProfileServiceRegionResolver
from .carbon_calculator import CarbonFootprintCalculator
from .sustainability import SustainabilityAggregator
from .field_activity import FieldActivityService

__all__ = [
    "VtiRegistryService",
    "EventStream",
    "TraceabilityLedger",
    "EmissionFactorResolver",
    "select_factor",
    "RegionResolver",
    "StaticRegionResolver",
    "ProfileServiceRegionResolver",
    "CarbonFootprintCalculator",
    "SustainabilityAggregator",
    "FieldActivityService",
]
