"""
Authentication Package

Bridges the hosted-login provider (Auth0, via OpenID Connect) and the local
session cookie.

Modules:
- routes: /auth/login, /auth/logout and the provider callback
- provider: Authlib client for the Auth0 tenant
- session: session token creation, verification, revocation and cookies
- backend: per-request principal resolution from the session cookie
- dependencies: auth state and the login gate for protected routes
- redirects: open-redirect protection for caller-supplied targets

The authentication flow:
1. Browser hits /auth/login?redirectUri=/somewhere
2. User signs in on the provider's hosted page
3. Provider redirects to /callback; Authlib validates the ID token
4. Session cookie is issued and the browser lands on /somewhere
"""

from .errors import HandshakeError, LoginRequired
from .routes import build_auth_router

__all__ = [
    "build_auth_router",
    "HandshakeError",
    "LoginRequired",
]
