"""Exceptions raised by the authentication flow and mapped to responses in main."""

from fastapi import status


class HandshakeError(Exception):
    """
    The provider round-trip could not be started or completed.

    Covers denied consent, state or nonce mismatches, ID token validation
    failures and network errors talking to the provider. Rendered as a
    generic error page; there is no provider-specific recovery.
    """

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LoginRequired(Exception):
    """An anonymous request reached a route that needs a signed-in user."""

    def __init__(self, return_to: str):
        super().__init__(return_to)
        self.return_to = return_to
