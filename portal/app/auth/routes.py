"""
Authentication routes for the hosted-login redirect flow.

- GET /auth/login   : start a login (or skip it when already signed in)
- GET /callback     : finish the handshake and issue the session cookie
- GET /auth/logout  : drop the session cookie and sign out at the provider

Paths come from settings so the provider configuration (Allowed Callback
URLs, Allowed Logout URLs) and the app stay in sync.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from ..config import Settings
from .dependencies import get_app_settings, get_identity_provider
from .provider import IdentityProvider
from .redirects import absolute_url, sanitize_redirect_target
from .session import (
    clear_session_cookie,
    create_session_token,
    principal_from_id_token,
    revoke_session_token,
    set_session_cookie,
)

logger = logging.getLogger(__name__)

REDIRECT_QUERY_PARAM = "redirectUri"


# =============================================================================
# Login Endpoint
# =============================================================================

async def login(
    request: Request,
    redirect_uri: Optional[str] = Query(
        None,
        alias=REDIRECT_QUERY_PARAM,
        description="Local path to land on after signing in",
    ),
    settings: Settings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Initiate login.

    Already signed in: redirect straight to the target without contacting the
    provider. Otherwise redirect to the hosted login page; the target rides
    along in the handshake session and is applied by the callback.
    """
    target = sanitize_redirect_target(redirect_uri)

    if request.user.is_authenticated:
        logger.debug("Login skipped, session already active", extra={"redirect_target": target})
        return RedirectResponse(url=target, status_code=302)

    callback_url = absolute_url(request, settings.CALLBACK_PATH)
    logger.info("Starting login challenge", extra={"redirect_target": target})
    return await provider.challenge(request, callback_url, target)


# =============================================================================
# Callback Endpoint
# =============================================================================

async def callback(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Handle the provider redirect after login.

    Raises:
        HandshakeError: Propagated from the provider when the round-trip fails
    """
    claims = await provider.complete(request)
    target = provider.pop_return_to(request)

    token = create_session_token(principal_from_id_token(claims), settings)

    response = RedirectResponse(url=target, status_code=302)
    set_session_cookie(response, token, settings)

    logger.info(
        "User signed in",
        extra={"user_id": claims.get("sub"), "redirect_target": target},
    )
    return response


# =============================================================================
# Logout Endpoint
# =============================================================================

async def logout(
    request: Request,
    redirect_uri: Optional[str] = Query(
        None,
        alias=REDIRECT_QUERY_PARAM,
        description="Local path to land on after signing out",
    ),
    settings: Settings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Sign out locally and at the provider.

    Works the same with or without a session: the cookie is expired either
    way and the browser always goes to the provider logout page.
    """
    target = sanitize_redirect_target(redirect_uri)

    revoke_session_token(request.cookies.get(settings.SESSION_COOKIE_NAME), settings)
    request.session.clear()

    response = RedirectResponse(
        url=provider.logout_url(absolute_url(request, target)),
        status_code=302,
    )
    clear_session_cookie(response, settings)

    logger.info(
        "User signed out",
        extra={
            "was_authenticated": request.user.is_authenticated,
            "redirect_target": target,
        },
    )
    return response


# =============================================================================
# Router Setup
# =============================================================================

def build_auth_router(settings: Settings) -> APIRouter:
    """Create the router with login, logout and callback at their configured paths."""
    router = APIRouter(tags=["authentication"])
    router.add_api_route(settings.LOGIN_PATH, login, methods=["GET"], name="login")
    router.add_api_route(settings.LOGOUT_PATH, logout, methods=["GET"], name="logout")
    router.add_api_route(settings.CALLBACK_PATH, callback, methods=["GET"], name="callback")
    return router
