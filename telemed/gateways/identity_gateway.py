"""
Identity Gateway backed by Firebase Authentication.
Source: https://firebase.google.com/docs/auth/admin/manage-users#create_a_user
Verified: 2026-10-19

firebase_admin is synchronous, so calls run in a worker thread.
"""

import asyncio
import logging
from typing import Optional

import firebase_admin
from firebase_admin import auth, exceptions

from telemed.gateways.base import (
    DuplicateAccountError,
    IdentityGateway,
    InvalidTokenError,
    UpstreamUnavailableError,
    VerifiedToken,
)

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    exceptions.UnavailableError,
    exceptions.DeadlineExceededError,
    exceptions.InternalError,
    exceptions.UnknownError,
)


class FirebaseIdentityGateway(IdentityGateway):
    """Identity provider client."""

    provider_name = "firebase"

    def __init__(self, app: firebase_admin.App, timeout_seconds: float = 15.0):
        self._app = app
        self._timeout = timeout_seconds

    async def _call(self, func, *args, **kwargs):  # type: ignore[no-untyped-def]
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, app=self._app, **kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError(
                f"{self.provider_name} timed out", provider=self.provider_name, original_error=e
            ) from e

    async def verify_token(self, token: str) -> VerifiedToken:
        try:
            claims = await self._call(auth.verify_id_token, token)
        except (
            auth.InvalidIdTokenError,
            auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError,
            auth.UserDisabledError,
            ValueError,
        ) as e:
            raise InvalidTokenError(
                "Invalid identity token", provider=self.provider_name, original_error=e
            ) from e
        except auth.CertificateFetchError as e:
            raise UpstreamUnavailableError(
                "Could not fetch identity certificates",
                provider=self.provider_name,
                original_error=e,
            ) from e
        return VerifiedToken(subject_id=claims["uid"], email=claims.get("email"))

    async def create_account(
        self,
        subject_id: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> None:
        try:
            await self._call(
                auth.create_user,
                uid=subject_id,
                email=email,
                password=password,
                display_name=display_name,
            )
        except (auth.UidAlreadyExistsError, auth.EmailAlreadyExistsError) as e:
            raise DuplicateAccountError(
                f"Identity account already exists for {subject_id}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise UpstreamUnavailableError(
                f"{self.provider_name} unavailable: {e}",
                provider=self.provider_name,
                original_error=e,
            ) from e
        logger.info(f"Created identity account for {subject_id}")
