"""
Configuration module for the Portal web application.

This module uses Pydantic Settings to load and validate environment variables
for the hosted-login provider (Auth0), the session cookie, and the request
pipeline (proxy headers, HTTPS, HSTS).

Environment variables are loaded from .env file or system environment.
"""

import re
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Provider credentials are required; a missing or malformed value fails
    startup with a ValidationError.
    """

    # =========================================================================
    # Auth0 / OIDC Provider Configuration
    # =========================================================================

    AUTH0_DOMAIN: str = Field(
        ...,
        description="Auth0 tenant domain (e.g., 'my-tenant.eu.auth0.com')",
        min_length=1,
    )

    AUTH0_CLIENT_ID: str = Field(
        ...,
        description="Auth0 application client ID",
        min_length=1,
    )

    AUTH0_CLIENT_SECRET: str = Field(
        ...,
        description="Auth0 application client secret",
        min_length=1,
    )

    AUTH0_AUDIENCE: Optional[str] = Field(
        None,
        description="API audience; set only when access tokens for an API are needed",
    )

    AUTH0_SCOPE: str = Field(
        default="openid profile email",
        description="Scopes requested during the login challenge",
    )

    AUTH0_FEDERATED_LOGOUT: bool = Field(
        default=False,
        description="Also end the upstream identity provider session on logout",
    )

    # =========================================================================
    # Endpoint Paths
    # =========================================================================

    CALLBACK_PATH: str = Field(
        default="/callback",
        description="Path the provider redirects back to after login",
    )

    LOGIN_PATH: str = Field(default="/auth/login")

    LOGOUT_PATH: str = Field(default="/auth/logout")

    # =========================================================================
    # Session Cookie Configuration
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret key for signing session cookies (must be cryptographically secure)",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    SESSION_JWT_ISSUER: str = Field(default="portal")

    SESSION_EXPIRY_MINUTES: int = Field(
        default=1440,
        description="Session cookie lifetime in minutes",
        ge=5,
        le=20160,  # Max 14 days
    )

    SESSION_COOKIE_NAME: str = Field(default="PORTAL_SESSION")

    SESSION_COOKIE_SECURE: bool = Field(
        default=True,
        description="Mark cookies Secure; disable only for plain-HTTP local development",
    )

    HANDSHAKE_COOKIE_NAME: str = Field(
        default="PORTAL_HANDSHAKE",
        description="Cookie holding login state between /auth/login and the callback",
    )

    HANDSHAKE_MAX_AGE_SECONDS: int = Field(default=900, ge=60, le=3600)

    # =========================================================================
    # Request Pipeline Configuration
    # =========================================================================

    ENVIRONMENT: str = Field(
        default="production",
        description="Deployment environment (development, staging, production)",
    )

    ENFORCE_HTTPS: bool = Field(default=True)

    HSTS_MAX_AGE_SECONDS: int = Field(
        default=2592000,  # 30 days
        ge=0,
    )

    FORWARDED_ALLOW_IPS: str = Field(
        default="127.0.0.1",
        description="Comma-separated proxy addresses trusted for X-Forwarded-* headers ('*' trusts all)",
    )

    STATIC_DIR: Optional[str] = Field(
        None,
        description="Directory served under /static (defaults to the bundled assets)",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    LOG_LEVEL: str = Field(default="INFO")

    HOST: str = Field(default="0.0.0.0")

    PORT: int = Field(default=8080, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def auth0_authority(self) -> str:
        """Base URL of the Auth0 tenant."""
        return f"https://{self.AUTH0_DOMAIN}"

    @property
    def server_metadata_url(self) -> str:
        """OIDC discovery document URL."""
        return f"{self.auth0_authority}/.well-known/openid-configuration"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() in ("development", "dev", "local")

    @property
    def forwarded_allow_ips_list(self) -> List[str]:
        return [
            ip.strip()
            for ip in self.FORWARDED_ALLOW_IPS.split(",")
            if ip.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("AUTH0_DOMAIN")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        """
        Normalize the tenant domain to a bare host name.

        Accepts values copied from the Auth0 dashboard with a scheme or a
        trailing slash.

        Raises:
            ValueError: If the value is not a host name
        """
        domain = re.sub(r"^https?://", "", v.strip(), flags=re.IGNORECASE).rstrip("/")

        if not domain or "/" in domain or " " in domain or "." not in domain:
            raise ValueError(
                f"Invalid AUTH0_DOMAIN: '{v}'. "
                "Expected format: 'tenant.region.auth0.com'"
            )

        return domain.lower()

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("CALLBACK_PATH", "LOGIN_PATH", "LOGOUT_PATH")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(f"Endpoint path must be an absolute local path, got: {v}")
        return v.rstrip("/") or "/"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


def validate_configuration(settings: Settings) -> dict:
    """
    Check configuration for combinations that load but are unsafe.

    Returns:
        Dictionary with validation status, errors and warnings.
    """
    errors = []
    warnings = []

    if not settings.is_development:
        if not settings.SESSION_COOKIE_SECURE:
            errors.append("SESSION_COOKIE_SECURE must be enabled outside development")
        if not settings.ENFORCE_HTTPS:
            warnings.append("ENFORCE_HTTPS is disabled; HTTPS must be terminated upstream")

    if "*" in settings.forwarded_allow_ips_list:
        warnings.append("FORWARDED_ALLOW_IPS trusts every peer for X-Forwarded-* headers")

    if settings.SESSION_SECRET == settings.AUTH0_CLIENT_SECRET:
        warnings.append("SESSION_SECRET reuses the Auth0 client secret")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "environment": settings.ENVIRONMENT,
        "session_expiry_minutes": settings.SESSION_EXPIRY_MINUTES,
    }
