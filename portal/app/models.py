"""
Data Models Module

Pydantic models for the authenticated principal, the per-request
authentication state handed to page renderers, and service responses.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Authentication Models
# ============================================================================

class UserProfile(BaseModel):
    """Identity claims carried by the session cookie."""
    user_id: str = Field(..., description="Provider subject identifier")
    name: Optional[str] = Field(None, description="User display name")
    email: Optional[str] = Field(None, description="User email address")
    picture: Optional[str] = Field(None, description="Avatar URL")

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "UserProfile":
        return cls(
            user_id=claims["sub"],
            name=claims.get("name") or claims.get("nickname"),
            email=claims.get("email"),
            picture=claims.get("picture"),
        )

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.user_id


class AuthState(BaseModel):
    """
    Authentication state of the current request.

    Resolved once per request from the session cookie and passed explicitly
    to whatever renders the response.
    """
    is_authenticated: bool = Field(default=False)
    user: Optional[UserProfile] = Field(None)

    @classmethod
    def anonymous(cls) -> "AuthState":
        return cls(is_authenticated=False, user=None)


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Check timestamp",
    )
