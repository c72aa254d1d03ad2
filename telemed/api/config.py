"""
Application Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
Verified: 2026-10-19
"""

import json
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field has a default so the service boots in demo mode without an
    .env file; live mode needs the provider credentials below.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # Application Settings
    # ============================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment: development, staging, production, testing"
    )
    DEBUG: bool = Field(default=False, description="Debug mode (NEVER enable in production)")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool | None = Field(
        default=None, description="Force JSON logs (defaults to on in production)"
    )
    STORE_MODE: Literal["demo", "live"] = Field(
        default="demo", description="Local store backend: in-memory demo or Firestore"
    )

    # ============================================================================
    # Billing (Asaas)
    # ============================================================================
    ASAAS_BASE_URL: str = Field(
        default="https://sandbox.asaas.com/api/v3", description="Billing API base URL"
    )
    ASAAS_API_KEY: str = Field(default="", description="Billing API access token")
    ASAAS_WEBHOOK_TOKEN: str | None = Field(
        default=None, description="Shared token expected in the asaas-access-token header"
    )

    # ============================================================================
    # Beneficiary Registry (Rapidoc)
    # ============================================================================
    RAPIDOC_BASE_URL: str = Field(
        default="https://sandbox.rapidoc.tech", description="Registry API base URL"
    )
    RAPIDOC_TOKEN: str = Field(default="", description="Registry bearer token")
    RAPIDOC_CLIENT_ID: str = Field(default="", description="Registry client id header")
    RAPIDOC_PLAN_CACHE_SECONDS: int = Field(
        default=300, ge=0, description="How long plan details stay cached"
    )

    # ============================================================================
    # Firebase (identity and local store)
    # ============================================================================
    FIREBASE_CREDENTIALS_FILE: str | None = Field(
        default=None, description="Path to a service account JSON file"
    )
    FIREBASE_PROJECT_ID: str | None = Field(default=None, description="Firebase project id")
    FIREBASE_CLIENT_EMAIL: str | None = Field(default=None, description="Service account e-mail")
    FIREBASE_PRIVATE_KEY: str | None = Field(
        default=None, description="Service account private key (\\n escaped)"
    )

    # ============================================================================
    # Upstream Behaviour
    # ============================================================================
    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=15.0, gt=0, description="Timeout for every upstream call (seconds)"
    )
    UPSTREAM_RETRY_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Attempts for idempotent upstream reads"
    )

    # ============================================================================
    # Entitlement Rules
    # ============================================================================
    TEMP_PASSWORD_LENGTH: int = Field(
        default=8, ge=6, le=64, description="Length of first-access temporary passwords"
    )
    PAYMENT_GRACE_DAYS: int = Field(
        default=0, ge=0, le=60, description="Days of access kept after a paid period ends"
    )

    # ============================================================================
    # FastAPI Configuration
    # ============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="API host")  # nosec B104
    API_PORT: int = Field(default=8000, description="API port")

    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8081"],
        description="CORS allowed origins",
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow credentials")
    CORS_METHODS: list[str] = Field(default=["*"], description="Allowed methods")
    CORS_HEADERS: list[str] = Field(default=["*"], description="Allowed headers")

    @staticmethod
    def _parse_list_field(value: Any) -> Any:
        """Allow JSON arrays or comma-separated strings for list settings."""
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith("[") and stripped.endswith("]"):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @field_validator("CORS_ORIGINS", "CORS_METHODS", "CORS_HEADERS", mode="before")
    @classmethod
    def parse_cors_fields(cls, v: Any) -> Any:
        """Normalize CORS list fields from env strings."""
        return cls._parse_list_field(v)

    @field_validator("ASAAS_BASE_URL", "RAPIDOC_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ============================================================================
    # Helper Properties
    # ============================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.ENVIRONMENT.lower() == "testing"

    @property
    def json_logs(self) -> bool:
        if self.LOG_JSON is not None:
            return self.LOG_JSON
        return self.is_production

    @property
    def is_live_store(self) -> bool:
        return self.STORE_MODE == "live"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Source: https://fastapi.tiangolo.com/advanced/settings/
    """
    return Settings()


settings = get_settings()
