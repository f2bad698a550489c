"""
Request pipeline.

The middleware chain is declared as an ordered list of stages, first stage
sees the request first. Each stage does one thing and may answer the request
itself (the HTTPS stage redirects, for instance) before later stages run:

    forwarded_headers -> https_redirect -> hsts -> handshake_session -> authentication

Authorization happens per route through dependencies (see auth.dependencies),
then routing. Static files are a mounted sub-application.
"""

import logging
from typing import Any, Dict, List, NamedTuple

from fastapi import FastAPI, Request
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .auth.backend import SessionCookieBackend
from .config import Settings

logger = logging.getLogger(__name__)


class Stage(NamedTuple):
    name: str
    middleware: type
    options: Dict[str, Any]


class StrictTransportSecurityMiddleware(BaseHTTPMiddleware):
    """
    Add Strict-Transport-Security to HTTPS responses.

    Loopback hosts are skipped so a developer's browser never pins localhost.
    """

    EXCLUDED_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

    def __init__(self, app, max_age: int):
        super().__init__(app)
        self.header_value = f"max-age={max_age}"

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.scheme == "https" and request.url.hostname not in self.EXCLUDED_HOSTS:
            response.headers["Strict-Transport-Security"] = self.header_value
        return response


def build_pipeline(settings: Settings) -> List[Stage]:
    """
    Build the ordered stage list for the given settings.

    Returns:
        Stages in the order a request passes through them
    """
    stages = [
        Stage(
            "forwarded_headers",
            ProxyHeadersMiddleware,
            {"trusted_hosts": settings.forwarded_allow_ips_list},
        ),
    ]

    if settings.ENFORCE_HTTPS:
        stages.append(Stage("https_redirect", HTTPSRedirectMiddleware, {}))

    if not settings.is_development and settings.HSTS_MAX_AGE_SECONDS > 0:
        stages.append(Stage(
            "hsts",
            StrictTransportSecurityMiddleware,
            {"max_age": settings.HSTS_MAX_AGE_SECONDS},
        ))

    stages.append(Stage(
        "handshake_session",
        SessionMiddleware,
        {
            "secret_key": settings.SESSION_SECRET,
            "session_cookie": settings.HANDSHAKE_COOKIE_NAME,
            "max_age": settings.HANDSHAKE_MAX_AGE_SECONDS,
            "same_site": "lax",
            "https_only": settings.SESSION_COOKIE_SECURE,
        },
    ))

    stages.append(Stage(
        "authentication",
        AuthenticationMiddleware,
        {"backend": SessionCookieBackend(settings)},
    ))

    return stages


def install_pipeline(app: FastAPI, stages: List[Stage]) -> None:
    # add_middleware wraps the current stack, so the last added runs first
    for stage in reversed(stages):
        app.add_middleware(stage.middleware, **stage.options)

    logger.debug(
        "Installed request pipeline",
        extra={"stages": [stage.name for stage in stages]},
    )
