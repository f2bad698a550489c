"""
Session Cookie Management Module
================================

Creates, verifies and revokes the signed session token stored in the
authentication cookie, and attaches or expires that cookie on responses.

The token is an HMAC-signed JWT. Its claims are the authenticated principal
(sub, name, email, picture) plus jti/iat/exp/iss.
"""

import logging
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.responses import Response

from ..config import Settings

logger = logging.getLogger(__name__)

PRINCIPAL_CLAIMS = ("sub", "name", "email", "picture", "nickname")


# =============================================================================
# Exceptions
# =============================================================================

class SessionTokenError(Exception):
    """Raised when a session token is missing, expired, invalid or revoked."""
    pass


# =============================================================================
# Revocation List
# =============================================================================

class RevocationList:
    """
    In-process record of revoked token ids.

    Entries are kept until the token would have expired anyway. The list is
    per process; deleting the cookie on logout is what invalidates the
    browser session, this only rejects a copy of the cookie replayed later.
    """

    def __init__(self):
        self._revoked: Dict[str, float] = {}
        self._lock = threading.Lock()

    def add(self, token_id: str, expires_at: float) -> None:
        now = time.time()
        with self._lock:
            self._revoked[token_id] = expires_at
            expired = [jti for jti, exp in self._revoked.items() if exp <= now]
            for jti in expired:
                del self._revoked[jti]

    def __contains__(self, token_id: str) -> bool:
        with self._lock:
            expires_at = self._revoked.get(token_id)
        return expires_at is not None and expires_at > time.time()

    def clear(self) -> None:
        with self._lock:
            self._revoked.clear()


revoked_tokens = RevocationList()


# =============================================================================
# Token Creation
# =============================================================================

def principal_from_id_token(id_token_claims: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pick the claims the session keeps from verified ID token claims.

    Example:
        >>> principal_from_id_token({"sub": "auth0|1", "email": "a@b.co", "aud": "x"})
        {'sub': 'auth0|1', 'email': 'a@b.co'}
    """
    return {
        claim: id_token_claims[claim]
        for claim in PRINCIPAL_CLAIMS
        if id_token_claims.get(claim) is not None
    }


def create_session_token(claims: Dict[str, Any], settings: Settings) -> str:
    """
    Create a signed session token for the given principal claims.

    Args:
        claims: Principal claims; 'sub' is required
        settings: Application settings (secret, algorithm, lifetime)

    Returns:
        Encoded JWT string

    Raises:
        SessionTokenError: If the subject claim is missing
    """
    if not claims.get("sub"):
        raise SessionTokenError("Missing required claim: 'sub' (subject/user ID)")

    payload = dict(claims)
    now = datetime.now(timezone.utc)
    payload.update({
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=settings.SESSION_EXPIRY_MINUTES),
        "iss": settings.SESSION_JWT_ISSUER,
    })

    token = jwt.encode(
        payload,
        settings.SESSION_SECRET,
        algorithm=settings.SESSION_JWT_ALGORITHM,
    )

    logger.debug(
        "Created session token",
        extra={
            "user_id": payload["sub"],
            "expires_in_minutes": settings.SESSION_EXPIRY_MINUTES,
        },
    )

    return token


# =============================================================================
# Token Verification
# =============================================================================

def verify_session_token(token: Optional[str], settings: Settings) -> Dict[str, Any]:
    """
    Verify and decode a session token.

    Returns:
        Dictionary containing the decoded claims

    Raises:
        SessionTokenError: If the token is missing, expired, tampered with,
            issued by someone else, or revoked
    """
    if not token:
        raise SessionTokenError("No session token provided")

    try:
        decoded = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            issuer=settings.SESSION_JWT_ISSUER,
            options={"require": ["exp", "iat", "iss", "sub", "jti"]},
        )
    except ExpiredSignatureError as e:
        raise SessionTokenError("Session token has expired") from e
    except InvalidTokenError as e:
        raise SessionTokenError(f"Invalid session token: {e}") from e

    if decoded["jti"] in revoked_tokens:
        raise SessionTokenError("Session token has been revoked")

    return decoded


def revoke_session_token(token: Optional[str], settings: Settings) -> bool:
    """
    Revoke a session token so it is rejected even if presented again.

    Tokens that do not verify are ignored. Never raises.

    Returns:
        True if a token was revoked
    """
    if not token:
        return False

    try:
        decoded = verify_session_token(token, settings)
    except SessionTokenError:
        return False

    revoked_tokens.add(decoded["jti"], float(decoded["exp"]))
    logger.info("Revoked session token", extra={"user_id": decoded.get("sub")})
    return True


# =============================================================================
# Cookie Helpers
# =============================================================================

def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRY_MINUTES * 60,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie; harmless when the browser has none."""
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )


__all__ = [
    "SessionTokenError",
    "RevocationList",
    "revoked_tokens",
    "principal_from_id_token",
    "create_session_token",
    "verify_session_token",
    "revoke_session_token",
    "set_session_cookie",
    "clear_session_cookie",
]
