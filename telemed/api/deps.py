"""
FastAPI Dependencies
Dependency injection for authentication and entitlement services
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
Verified: 2026-10-19

Services are built once in the application lifespan and kept on
``app.state``; routes reach them through the getters below so tests can
swap them with ``app.dependency_overrides``.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from telemed.gateways.base import (
    IdentityGateway,
    InvalidTokenError,
    RegistryGateway,
    UpstreamUnavailableError,
)
from telemed.services.adapters import LocalStore
from telemed.services.entitlement import (
    BillingEventIngestor,
    HouseholdService,
    OnboardingOrchestrator,
    ReconciliationEngine,
)
from telemed.utils.errors import AuthenticationError, UpstreamError
from telemed.utils.logging import get_logger

logger = get_logger(__name__)

# HTTP Bearer token security scheme
# Source: https://swagger.io/docs/specification/authentication/bearer-authentication/
security = HTTPBearer(auto_error=False)


def get_identity(request: Request) -> IdentityGateway:
    return request.app.state.identity


def get_registry(request: Request) -> RegistryGateway:
    return request.app.state.registry


def get_store(request: Request) -> LocalStore:
    return request.app.state.store


def get_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.engine


def get_orchestrator(request: Request) -> OnboardingOrchestrator:
    return request.app.state.orchestrator


def get_ingestor(request: Request) -> BillingEventIngestor:
    return request.app.state.ingestor


def get_household(request: Request) -> HouseholdService:
    return request.app.state.household


async def get_current_subject_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    identity: IdentityGateway = Depends(get_identity),
) -> str:
    """
    Verify the bearer token and return the stable subject id (the tax id).

    Raises:
        AuthenticationError: If the token is missing or invalid
        UpstreamError: If the identity provider cannot be reached
    """
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    try:
        verified = await identity.verify_token(credentials.credentials)
    except InvalidTokenError as err:
        logger.info(f"Rejected bearer token: {err.message}")
        raise AuthenticationError("Invalid token") from err
    except UpstreamUnavailableError as err:
        logger.warning(f"Identity provider unavailable: {err.message}")
        raise UpstreamError("Identity provider unavailable") from err

    if not verified.subject_id:
        raise AuthenticationError("Invalid token payload")
    return verified.subject_id
