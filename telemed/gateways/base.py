"""
Base Gateway Classes for External System Adapters.

Each external system (billing, beneficiary registry, identity) sits behind an
abstract gateway so the entitlement core can be exercised against in-memory
fakes. Gateways translate transport failures into a small exception taxonomy:

- UpstreamUnavailableError: timeouts, connection errors, 5xx, rate limits
- UpstreamRejectedError: a business rejection with a message worth surfacing
- DuplicateAccountError: identity already holds the uid or e-mail
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional
import asyncio
import logging
from functools import wraps

import httpx

from telemed.models.beneficiary import BeneficiaryProfile, BeneficiaryRecord, PlanDetails
from telemed.models.billing import (
    BillingCustomer,
    BillingPayment,
    BillingSubscription,
)

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.original_error = original_error


class UpstreamUnavailableError(GatewayError):
    """Raised when a provider times out, refuses the connection or fails with 5xx."""

    pass


class UpstreamRejectedError(GatewayError):
    """Raised when a provider rejects a request for a business reason."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, provider=provider, original_error=original_error)
        self.status_code = status_code


class DuplicateAccountError(GatewayError):
    """Raised when an identity account already exists for the uid or e-mail."""

    pass


class InvalidTokenError(GatewayError):
    """Raised when a bearer token cannot be verified."""

    pass


@dataclass
class GatewayConfig:
    """Connection settings for an HTTP gateway."""

    base_url: str
    timeout_seconds: float = 15.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 0.5


@dataclass
class VerifiedToken:
    """Claims extracted from a verified bearer token."""

    subject_id: str
    email: Optional[str] = None


def with_retry(
    max_attempts: int = 3,
    delay: float = 0.5,
    backoff_factor: float = 2.0,
    exceptions: tuple = (UpstreamUnavailableError,),
):
    """Decorator for retry logic with exponential backoff.

    ``max_attempts`` may be overridden per instance through a ``retry_attempts``
    attribute on the decorated method's owner.
    """

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max_attempts
            if args and isinstance(getattr(args[0], "retry_attempts", None), int):
                attempts = max(1, args[0].retry_attempts)
            last_exception = None
            current_delay = delay

            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < attempts - 1:
                        logger.warning(
                            f"Attempt {attempt + 1}/{attempts} of {func.__name__} failed: {e}. "
                            f"Retrying in {current_delay:.1f}s..."
                        )
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff_factor
                    else:
                        logger.error(
                            f"All {attempts} attempts of {func.__name__} failed. Last error: {e}"
                        )

            raise last_exception

        return wrapper

    return decorator


def error_message(response: httpx.Response) -> str:
    """Extract the most specific human message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("description"):
                return str(first["description"])
        if body.get("error"):
            return str(body["error"])
    return response.text or f"HTTP {response.status_code}"


class HttpGateway:
    """Shared httpx plumbing for REST gateways."""

    provider_name = "http"

    def __init__(self, config: GatewayConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.retry_attempts = config.retry_attempts
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers=self._default_headers(),
        )

    def _default_headers(self) -> dict[str, str]:
        return {}

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Optional[httpx.Response]:
        """Send a request and map transport failures onto gateway errors."""
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._default_headers(),
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(
                f"{self.provider_name} timed out on {method} {path}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                f"{self.provider_name} unreachable on {method} {path}: {e}",
                provider=self.provider_name,
                original_error=e,
            ) from e

        if response.status_code == 404 and allow_not_found:
            return None
        if response.status_code >= 500 or response.status_code == 429:
            raise UpstreamUnavailableError(
                f"{self.provider_name} returned {response.status_code} on {method} {path}",
                provider=self.provider_name,
            )
        if response.status_code >= 400:
            raise UpstreamRejectedError(
                error_message(response),
                provider=self.provider_name,
                status_code=response.status_code,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        """Decode a successful response body, treating non-JSON as an upstream fault."""
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"{self.provider_name} returned a non-JSON body "
                f"(HTTP {response.status_code})",
                provider=self.provider_name,
                original_error=e,
            ) from e


# =============================================================================
# Gateway Interfaces
# =============================================================================


class BillingGateway(ABC):
    """Billing provider operations used by the entitlement core."""

    @abstractmethod
    async def find_customer_by_tax_id(self, tax_id: str) -> Optional[BillingCustomer]:
        pass

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[BillingCustomer]:
        pass

    @abstractmethod
    async def list_subscriptions(self, customer_id: str) -> list[BillingSubscription]:
        pass

    @abstractmethod
    async def list_payments(self, subscription_id: str) -> list[BillingPayment]:
        pass

    @abstractmethod
    async def create_customer(
        self,
        name: str,
        email: str,
        tax_id: str,
        phone: Optional[str] = None,
    ) -> BillingCustomer:
        pass

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        value: str,
        cycle: str,
        description: str,
        billing_type: str = "UNDEFINED",
    ) -> BillingSubscription:
        pass


class RegistryGateway(ABC):
    """Beneficiary registry operations used by the entitlement core."""

    @abstractmethod
    async def find_by_tax_id(self, tax_id: str) -> Optional[BeneficiaryRecord]:
        pass

    @abstractmethod
    async def create(self, profile: BeneficiaryProfile) -> BeneficiaryRecord:
        pass

    @abstractmethod
    async def update(self, uuid: str, payload: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def deactivate(self, uuid: str) -> None:
        pass

    @abstractmethod
    async def reactivate(self, uuid: str) -> None:
        pass

    @abstractmethod
    async def get_plan_details(self, plan_uuid: str) -> Optional[PlanDetails]:
        pass

    @abstractmethod
    async def list_by_holder(self, holder_tax_id: str) -> list[BeneficiaryRecord]:
        pass


class IdentityGateway(ABC):
    """Identity provider operations used by the entitlement core."""

    @abstractmethod
    async def verify_token(self, token: str) -> VerifiedToken:
        pass

    @abstractmethod
    async def create_account(
        self,
        subject_id: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> None:
        pass
