"""
Redirect target validation.

Login and logout accept a caller-supplied ``redirectUri``. Only local,
relative paths are honoured; everything else collapses to ``/`` so a crafted
link can never bounce the browser to another origin.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from starlette.requests import Request

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_TARGET = "/"


def is_local_path(value: str) -> bool:
    """
    Return True if value is a path on this origin.

    Browsers treat ``//host`` and ``/\\host`` as protocol-relative URLs and
    silently drop tabs and newlines, so all of those are refused.
    """
    if not value or not value.startswith("/"):
        return False

    if value.startswith("//") or "\\" in value:
        return False

    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value):
        return False

    parts = urlsplit(value)
    return not parts.scheme and not parts.netloc


def sanitize_redirect_target(value: Optional[str]) -> str:
    """
    Validate a caller-supplied redirect target.

    Args:
        value: Raw ``redirectUri`` query value, possibly None

    Returns:
        The value itself when it is a local path, otherwise ``/``.

    Example:
        >>> sanitize_redirect_target("/dashboard?tab=2")
        '/dashboard?tab=2'
        >>> sanitize_redirect_target("https://evil.example")
        '/'
    """
    if value is None:
        return DEFAULT_REDIRECT_TARGET

    candidate = value.strip()
    if not candidate:
        return DEFAULT_REDIRECT_TARGET

    # App-relative form
    if candidate.startswith("~/"):
        candidate = candidate[1:]

    if not is_local_path(candidate):
        logger.warning(
            "Rejected non-local redirect target",
            extra={"redirect_target": value[:200]},
        )
        return DEFAULT_REDIRECT_TARGET

    return candidate


def absolute_url(request: Request, path: str) -> str:
    """
    Join a local path onto the origin the browser used for this request.

    The scheme reflects X-Forwarded-Proto once the forwarded-headers stage
    has run.
    """
    origin = f"{request.url.scheme}://{request.url.netloc}"
    return origin + sanitize_redirect_target(path)
