"""
Hosted-login provider adapter.

Wraps the Authlib Starlette client registered against the Auth0 tenant. The
authorization-code exchange, state/nonce checks and ID token validation all
happen inside Authlib; this module only decides what to ask for and where the
browser goes next.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from authlib.jose.errors import JoseError
from fastapi import status
from starlette.requests import Request
from starlette.responses import Response

from ..config import Settings
from .errors import HandshakeError
from .redirects import DEFAULT_REDIRECT_TARGET, sanitize_redirect_target

logger = logging.getLogger(__name__)

RETURN_TO_SESSION_KEY = "portal.return_to"


class IdentityProvider:
    """
    Auth0 tenant seen through an Authlib OAuth client.

    Args:
        settings: Application settings with the tenant domain and client
            credentials
    """

    name = "auth0"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.oauth = OAuth()
        self.oauth.register(
            name=self.name,
            client_id=settings.AUTH0_CLIENT_ID,
            client_secret=settings.AUTH0_CLIENT_SECRET,
            server_metadata_url=settings.server_metadata_url,
            client_kwargs={"scope": settings.AUTH0_SCOPE},
        )

    @property
    def client(self):
        return self.oauth.create_client(self.name)

    # =========================================================================
    # Login
    # =========================================================================

    async def challenge(self, request: Request, callback_url: str, return_to: str) -> Response:
        """
        Redirect the browser to the hosted login page.

        The already-validated return target is parked in the handshake session
        so the callback can forward the browser there.

        Raises:
            HandshakeError: If the provider's discovery document is unreachable
        """
        request.session[RETURN_TO_SESSION_KEY] = return_to

        params = {}
        if self.settings.AUTH0_AUDIENCE:
            params["audience"] = self.settings.AUTH0_AUDIENCE

        try:
            return await self.client.authorize_redirect(request, callback_url, **params)
        except httpx.HTTPError as e:
            logger.warning(f"Unable to reach identity provider: {e}")
            raise HandshakeError(
                "Unable to reach the sign-in service. Please try again later.",
                status_code=status.HTTP_502_BAD_GATEWAY,
            ) from e

    async def complete(self, request: Request) -> Dict[str, Any]:
        """
        Finish the handshake on the callback request.

        Returns:
            Verified ID token claims

        Raises:
            HandshakeError: On provider errors, state/nonce mismatches,
                invalid ID tokens or network failures
        """
        try:
            token = await self.client.authorize_access_token(request)
        except OAuthError as e:
            logger.warning(
                "Identity provider handshake failed",
                extra={"error": e.error, "description": e.description},
            )
            raise HandshakeError(
                f"Sign-in was not completed: {e.description or e.error}"
            ) from e
        except JoseError as e:
            logger.warning(f"ID token rejected: {e}")
            raise HandshakeError("The identity token could not be verified.") from e
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange failed: {e}")
            raise HandshakeError(
                "Unable to reach the sign-in service. Please try again later.",
                status_code=status.HTTP_502_BAD_GATEWAY,
            ) from e

        userinfo = token.get("userinfo")
        if not userinfo or not userinfo.get("sub"):
            raise HandshakeError("No identity token received from the sign-in service.")

        return dict(userinfo)

    @staticmethod
    def pop_return_to(request: Request) -> str:
        """Take the stored return target out of the handshake session."""
        stored: Optional[str] = request.session.pop(RETURN_TO_SESSION_KEY, None)
        if stored is None:
            return DEFAULT_REDIRECT_TARGET
        return sanitize_redirect_target(stored)

    # =========================================================================
    # Logout
    # =========================================================================

    def logout_url(self, return_to: str) -> str:
        """
        Build the tenant logout URL.

        Args:
            return_to: Absolute URL on this origin the provider sends the
                browser back to; it must be listed under Allowed Logout URLs

        Example:
            >>> provider.logout_url("https://app.example.com/")
            'https://tenant.auth0.com/v2/logout?client_id=abc&returnTo=https%3A%2F%2Fapp.example.com%2F'
        """
        query = urlencode({
            "client_id": self.settings.AUTH0_CLIENT_ID,
            "returnTo": return_to,
        })
        if self.settings.AUTH0_FEDERATED_LOGOUT:
            query += "&federated"
        return f"{self.settings.auth0_authority}/v2/logout?{query}"
