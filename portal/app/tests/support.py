"""
Test doubles and settings builders shared by the Portal test modules.
"""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse

from portal.app.auth.provider import RETURN_TO_SESSION_KEY, IdentityProvider
from portal.app.config import Settings

TEST_DOMAIN = "portal-test.eu.auth0.com"
TEST_BASE_URL = "https://testserver"

TEST_CLAIMS = {
    "sub": "auth0|test-user-123",
    "name": "Test User",
    "email": "test.user@example.com",
    "picture": "https://cdn.example.com/avatar.png",
}


def make_settings(**overrides) -> Settings:
    values = dict(
        AUTH0_DOMAIN=TEST_DOMAIN,
        AUTH0_CLIENT_ID="test-client-id",
        AUTH0_CLIENT_SECRET="test-client-secret",
        SESSION_SECRET="test-session-secret-1234567890123456",
        ENVIRONMENT="production",
        FORWARDED_ALLOW_IPS="*",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeIdentityProvider(IdentityProvider):
    """Provider double that never leaves the process."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.challenges: List[Tuple[str, str]] = []
        self.claims: Dict[str, Any] = dict(TEST_CLAIMS)
        self.error: Optional[Exception] = None

    async def challenge(self, request, callback_url, return_to):
        request.session[RETURN_TO_SESSION_KEY] = return_to
        self.challenges.append((callback_url, return_to))
        query = urlencode({
            "client_id": self.settings.AUTH0_CLIENT_ID,
            "redirect_uri": callback_url,
            "response_type": "code",
        })
        return RedirectResponse(
            url=f"{self.settings.auth0_authority}/authorize?{query}",
            status_code=302,
        )

    async def complete(self, request):
        if self.error:
            raise self.error
        return dict(self.claims)
