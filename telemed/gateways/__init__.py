"""External system gateways: billing, beneficiary registry and identity."""

from telemed.gateways.base import (
    BillingGateway,
    DuplicateAccountError,
    GatewayConfig,
    GatewayError,
    IdentityGateway,
    InvalidTokenError,
    RegistryGateway,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    VerifiedToken,
)

__all__ = [
    "BillingGateway",
    "DuplicateAccountError",
    "GatewayConfig",
    "GatewayError",
    "IdentityGateway",
    "InvalidTokenError",
    "RegistryGateway",
    "UpstreamRejectedError",
    "UpstreamUnavailableError",
    "VerifiedToken",
]
