"""
FastAPI dependencies shared by routes: settings, provider, the per-request
authentication state, and the authorization gate for protected pages.
"""

from fastapi import Depends, Request

from ..config import Settings
from ..models import AuthState
from .backend import PortalUser
from .errors import LoginRequired
from .provider import IdentityProvider


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_auth_state(request: Request) -> AuthState:
    """
    Resolve the authentication state of the current request.

    Usage in routes:
        @app.get("/")
        async def home(auth: AuthState = Depends(get_auth_state)):
            ...
    """
    user = request.user
    if isinstance(user, PortalUser):
        return AuthState(is_authenticated=True, user=user.profile)
    return AuthState.anonymous()


async def require_user(
    request: Request,
    auth: AuthState = Depends(get_auth_state),
) -> AuthState:
    """
    Authorization gate for protected routes.

    Anonymous callers are sent to the login endpoint with the current path as
    the return target.

    Raises:
        LoginRequired: If the request carries no valid session
    """
    if not auth.is_authenticated:
        return_to = request.url.path
        if request.url.query:
            return_to = f"{return_to}?{request.url.query}"
        raise LoginRequired(return_to)
    return auth
