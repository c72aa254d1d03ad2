"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
Verified: 2026-10-19
"""

from typing import Any

from fastapi import APIRouter

from telemed.api.config import settings
from telemed.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.

    Source: https://docs.docker.com/engine/reference/builder/#healthcheck
    """
    return {
        "status": "healthy",
        "service": "telemed-platform-api",
        "store_mode": settings.STORE_MODE,
    }
