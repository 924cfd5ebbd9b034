# ============================================================================
# TRACEABILITY CORE - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application with ledger dispatcher loop
# CREATED: 06 OCT 2026
# ============================================================================
"""
Traceability Core Main Application

FastAPI application that:
1. Serves the VTI registry, ledger, carbon and dashboard HTTP API
2. Runs the ledger dispatcher (carbon calculation trigger) in the background
3. Manages the database pool and the profile service client

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, CODENAME, EPOCH
from core import observability
from core.config import get_defaults
from core.logging import configure_logging, get_logger
from repositories import (
    init_pool,
    close_pool,
    VtiRepository,
    EventRepository,
    FactorRepository,
    CarbonRepository,
    PracticeRepository,
)
from services import (
    VtiRegistryService,
    TraceabilityLedger,
    EmissionFactorResolver,
    StaticRegionResolver,
    ProfileServiceRegionResolver,
    CarbonFootprintCalculator,
    SustainabilityAggregator,
    FieldActivityService,
)
from dispatcher import LedgerDispatcher
from api import router, set_services, traceability_router, set_traceability_services

# Health check system
from health import health_router, get_registry

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)


def _build_region_resolver(defaults):
    if defaults.api.profile_service_url:
        logger.info(f"Region lookup via profile service: {defaults.api.profile_service_url}")
        return ProfileServiceRegionResolver(
            defaults.api.profile_service_url,
            timeout=defaults.api.profile_service_timeout_sec,
        )
    logger.info("No PROFILE_SERVICE_URL, all actors resolve to the Global region")
    return StaticRegionResolver()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes services on startup, cleans up on shutdown.
    """
    defaults = get_defaults()
    logger.info(f"Starting Traceability Core v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    observability.initialize()

    pool = await init_pool(
        min_size=defaults.database.pool_min_size,
        max_size=defaults.database.pool_max_size,
    )
    logger.info("Database pool initialized")

    # Repositories (one VTI repository shared so footprint increments and
    # registry reads go through the same instance)
    vti_repo = VtiRepository(pool)
    event_repo = EventRepository(pool)
    carbon_repo = CarbonRepository(pool, vti_repo=vti_repo)

    # Services
    registry = VtiRegistryService(pool, repo=vti_repo, defaults=defaults.traceability)
    ledger = TraceabilityLedger(
        pool, vti_repo=vti_repo, event_repo=event_repo, defaults=defaults.traceability,
    )
    resolver = EmissionFactorResolver(
        pool, repo=FactorRepository(pool), tie_break=defaults.resolver.tie_break,
    )
    region_resolver = _build_region_resolver(defaults)
    calculator = CarbonFootprintCalculator(
        pool,
        carbon_repo=carbon_repo,
        resolver=resolver,
        region_resolver=region_resolver,
        defaults=defaults.calculator,
    )
    aggregator = SustainabilityAggregator(
        pool,
        carbon_repo=carbon_repo,
        practice_repo=PracticeRepository(pool),
        defaults=defaults.aggregation,
    )
    field_activity = FieldActivityService(registry, ledger, defaults=defaults.traceability)

    # Dispatcher: woken by ledger appends, polls as a fallback
    dispatcher = LedgerDispatcher(event_repo, calculator, defaults=defaults.dispatcher)
    ledger.subscribe(dispatcher.notify)

    set_services(calculator=calculator, aggregator=aggregator, dispatcher=dispatcher, ledger=ledger)
    set_traceability_services(
        registry=registry,
        ledger=ledger,
        field_activity=field_activity,
        resolver=resolver,
    )

    if defaults.dispatcher.enabled:
        await dispatcher.start()
    else:
        logger.info("Dispatcher disabled (DISPATCHER_ENABLED=false)")

    # Initialize health checks
    import health.checks  # Register all health check plugins
    health.checks.set_pool(pool)
    health.checks.set_dispatcher(dispatcher)
    logger.info(f"Health checks initialized ({len(get_registry())} checks registered)")

    yield

    # Shutdown
    logger.info("Shutting down Traceability Core...")

    await dispatcher.stop()
    await region_resolver.aclose()
    await close_pool()

    logger.info("Traceability Core stopped")


# Create FastAPI app
app = FastAPI(
    title="Traceability Core",
    description=f"Epoch {EPOCH} ({CODENAME}): traceability registry and carbon accounting",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes (no prefix - /livez, /readyz, /health)
app.include_router(health_router)

# API routes
app.include_router(router, prefix="/api/v1")
app.include_router(traceability_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Traceability Core",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
