"""
Custom Exceptions
HTTP errors raised by the API layer
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
Verified: 2026-10-19
"""

from typing import Any

from fastapi import HTTPException, status

from telemed.core.enums import FailureKind


class AuthenticationError(HTTPException):
    """Raised when authentication fails"""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PermissionDeniedError(HTTPException):
    """Raised when the caller is not entitled to the resource"""

    def __init__(self, detail: Any = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


class NotFoundError(HTTPException):
    """Raised when resource not found"""

    def __init__(self, detail: Any = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class ValidationError(HTTPException):
    """Raised when validation fails"""

    def __init__(self, detail: Any = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


class ConflictError(HTTPException):
    """Raised when resource conflict occurs"""

    def __init__(self, detail: Any = "Resource conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )


class PaymentRequiredError(HTTPException):
    """Raised when the subscription has no confirmed payment"""

    def __init__(self, detail: Any = "Payment not confirmed"):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail,
        )


class BadRequestError(HTTPException):
    """Raised when an upstream system rejects the request"""

    def __init__(self, detail: Any = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class UpstreamError(HTTPException):
    """Raised when an upstream system is unavailable"""

    def __init__(self, detail: Any = "Upstream service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": "30"},
        )


# =============================================================================
# Failure Mapping
# =============================================================================

_FAILURE_ERRORS: dict[FailureKind, type[HTTPException]] = {
    FailureKind.NOT_ENTITLED: PermissionDeniedError,
    FailureKind.ACCESS_BLOCKED: PermissionDeniedError,
    FailureKind.PAYMENT_NOT_CONFIRMED: PaymentRequiredError,
    FailureKind.MISSING_FIELDS: ValidationError,
    FailureKind.ALREADY_COMPLETED: ConflictError,
    FailureKind.ALREADY_EXISTS: ConflictError,
    FailureKind.REGISTRY_REJECTED: BadRequestError,
    FailureKind.UPSTREAM_UNAVAILABLE: UpstreamError,
    FailureKind.NOT_FOUND: NotFoundError,
}


def error_for_failure(
    failure: FailureKind | None,
    message: str | None = None,
    **extra: Any,
) -> HTTPException:
    """Build the HTTP error for a typed service failure."""
    detail = {
        "code": failure.value if failure else "unknown",
        "message": message or "Request failed",
        **extra,
    }
    error_class = _FAILURE_ERRORS.get(failure) if failure else None
    if error_class is None:
        return BadRequestError(detail)
    return error_class(detail)
