"""
Authentication stage: resolves the principal for every request from the
session cookie. An absent or unusable cookie means an anonymous request,
never an error.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser
from starlette.requests import HTTPConnection

from ..config import Settings
from ..models import UserProfile
from .session import SessionTokenError, verify_session_token

logger = logging.getLogger(__name__)


class PortalUser(BaseUser):
    """Authenticated principal built from session token claims."""

    def __init__(self, claims: Dict[str, Any]):
        self.claims = claims
        self.profile = UserProfile.from_claims(claims)

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.profile.display_name

    @property
    def identity(self) -> str:
        return self.profile.user_id


class SessionCookieBackend(AuthenticationBackend):
    """Reads and verifies the session cookie named in settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def authenticate(
        self, conn: HTTPConnection
    ) -> Optional[Tuple[AuthCredentials, BaseUser]]:
        token = conn.cookies.get(self.settings.SESSION_COOKIE_NAME)
        if not token:
            return None

        try:
            claims = verify_session_token(token, self.settings)
        except SessionTokenError as e:
            logger.debug(f"Ignoring session cookie: {e}", extra={"path": conn.url.path})
            return None

        return AuthCredentials(["authenticated"]), PortalUser(claims)
