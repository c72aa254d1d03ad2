"""
Firebase App Management
Single firebase_admin app shared by identity and the Firestore store
Source: https://firebase.google.com/docs/admin/setup#initialize-sdk
Verified: 2026-10-19
"""

import firebase_admin
from firebase_admin import credentials, firestore

from telemed.api.config import Settings, settings
from telemed.utils.logging import get_logger

logger = get_logger(__name__)


# Global app instance
_app: firebase_admin.App | None = None


def build_credentials(config: Settings) -> credentials.Base:
    """
    Resolve service account credentials.

    Order: credentials file, then inline service account fields, then
    application default credentials.
    """
    if config.FIREBASE_CREDENTIALS_FILE:
        logger.info("Using Firebase credentials file")
        return credentials.Certificate(config.FIREBASE_CREDENTIALS_FILE)

    if config.FIREBASE_PROJECT_ID and config.FIREBASE_CLIENT_EMAIL and config.FIREBASE_PRIVATE_KEY:
        logger.info(f"Using inline Firebase service account for {config.FIREBASE_PROJECT_ID}")
        return credentials.Certificate(
            {
                "type": "service_account",
                "project_id": config.FIREBASE_PROJECT_ID,
                "client_email": config.FIREBASE_CLIENT_EMAIL,
                # Keys from env files carry escaped newlines.
                "private_key": config.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )

    logger.info("Using application default credentials for Firebase")
    return credentials.ApplicationDefault()


def get_firebase_app(config: Settings = settings) -> firebase_admin.App:
    """
    Get or create the global Firebase app.

    Returns:
        firebase_admin.App instance
    """
    global _app

    if _app is None:
        options = {"projectId": config.FIREBASE_PROJECT_ID} if config.FIREBASE_PROJECT_ID else None
        _app = firebase_admin.initialize_app(build_credentials(config), options)
        logger.info("Firebase app initialized")

    return _app


def get_firestore_client(config: Settings = settings):  # type: ignore[no-untyped-def]
    """Firestore client bound to the global app."""
    return firestore.client(app=get_firebase_app(config))


def close_firebase_app() -> None:
    """Delete the global app on shutdown."""
    global _app

    if _app is not None:
        firebase_admin.delete_app(_app)
        _app = None
        logger.info("Firebase app closed")
