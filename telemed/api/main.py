"""
FastAPI Main Application
Entry point for the API server
Source: https://fastapi.tiangolo.com/
Verified: 2026-10-19
"""

from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from telemed import __version__
from telemed.api.config import settings
from telemed.api.routes import dependents, entitlement, first_access, health, specialties, webhooks
from telemed.db.firebase import close_firebase_app, get_firebase_app, get_firestore_client
from telemed.gateways.base import GatewayConfig
from telemed.gateways.billing_gateway import AsaasBillingGateway
from telemed.gateways.identity_gateway import FirebaseIdentityGateway
from telemed.gateways.registry_gateway import RapidocRegistryGateway
from telemed.services.adapters import AdapterMode, create_local_store
from telemed.services.entitlement import (
    BillingEventIngestor,
    HouseholdService,
    OnboardingOrchestrator,
    ReconciliationEngine,
)
from telemed.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(
    level=settings.LOG_LEVEL,
    json_logs=settings.json_logs,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """
    Application lifespan manager.

    Builds the gateways, local store and entitlement services once and keeps
    them on ``app.state``.

    Source: https://fastapi.tiangolo.com/advanced/events/
    """
    # Startup
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    logger.info(f"Debug mode: {settings.DEBUG}, store mode: {settings.STORE_MODE}")

    billing = AsaasBillingGateway(
        GatewayConfig(
            base_url=settings.ASAAS_BASE_URL,
            timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
            retry_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        ),
        api_key=settings.ASAAS_API_KEY,
    )
    registry = RapidocRegistryGateway(
        GatewayConfig(
            base_url=settings.RAPIDOC_BASE_URL,
            timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
            retry_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        ),
        token=settings.RAPIDOC_TOKEN,
        client_id=settings.RAPIDOC_CLIENT_ID,
        plan_cache_ttl_seconds=settings.RAPIDOC_PLAN_CACHE_SECONDS,
    )
    identity = FirebaseIdentityGateway(
        get_firebase_app(settings), timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS
    )

    if settings.is_live_store:
        store = create_local_store(
            AdapterMode.LIVE,
            client=get_firestore_client(settings),
            timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
        )
    else:
        store = create_local_store(AdapterMode.DEMO, seed_plans=True)

    engine = ReconciliationEngine(
        billing, registry, store, grace_days=settings.PAYMENT_GRACE_DAYS
    )
    app.state.billing = billing
    app.state.registry = registry
    app.state.identity = identity
    app.state.store = store
    app.state.engine = engine
    app.state.orchestrator = OnboardingOrchestrator(
        engine, identity, password_length=settings.TEMP_PASSWORD_LENGTH
    )
    app.state.ingestor = BillingEventIngestor(billing, registry, store)
    app.state.household = HouseholdService(registry, store)

    yield

    # Shutdown
    logger.info("Shutting down application")
    await billing.close()
    await registry.close()
    close_firebase_app()
    logger.info("Upstream clients closed")


# Initialize FastAPI app
# Source: https://fastapi.tiangolo.com/tutorial/metadata/
app = FastAPI(
    title="Telemedicine Entitlement API",
    description="Keeps billing, the beneficiary registry and identity in one entitlement state",
    version=__version__,
    docs_url="/docs" if not settings.is_production else None,  # Disable docs in production
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

# CORS middleware
# Source: https://fastapi.tiangolo.com/tutorial/cors/
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Include routers
app.include_router(health.router)
app.include_router(first_access.router)
app.include_router(entitlement.router)
app.include_router(webhooks.router)
app.include_router(specialties.router)
app.include_router(dependents.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Telemedicine Entitlement API",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run(
        "telemed.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
