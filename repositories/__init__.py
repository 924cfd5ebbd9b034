# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - Database access layer
# PURPOSE: PostgreSQL access for registry, ledger, factors and footprints
# CREATED: 03 OCT 2026
# ============================================================================
"""
Repositories Module

Provides database access for the traceability core.
Uses psycopg3 async with connection pooling.

Usage:
    from repositories import init_pool, VtiRepository

    pool = await init_pool()
    vti_repo = VtiRepository(pool)
    vti = await vti_repo.get(vti_id)
"""

from .database import init_pool, get_pool, close_pool
from .base import BaseRepository
from .vti_repo import VtiRepository
from .event_repo import EventRepository
from .factor_repo import FactorRepository
from .carbon_repo import CarbonRepository
from .practice_repo import PracticeRepository

__all__ = [
    "init_pool",
    "get_pool",
    "close_pool",
    "BaseRepository",
    "VtiRepository",
    "EventRepository",
    "FactorRepository",
    "CarbonRepository",
    "PracticeRepository",
]
