"""
FastAPI Portal Application Factory
==================================

Server-rendered web application whose sign-in is delegated to a hosted-login
provider (Auth0) and persisted in a session cookie.

Routes:
    - /auth/login   : Start sign-in (anonymous access)
    - /auth/logout  : Sign out locally and at the provider (anonymous access)
    - /callback     : Provider callback, issues the session cookie
    - /             : Home page, anonymous or signed-in view
    - /profile      : Protected page, redirects anonymous users to login
    - /health       : Health check endpoint
    - /static/*     : Static assets

Environment Variables Required:
    - AUTH0_DOMAIN: Tenant domain (e.g., "my-tenant.eu.auth0.com")
    - AUTH0_CLIENT_ID: Application client ID
    - AUTH0_CLIENT_SECRET: Application client secret
    - SESSION_SECRET: Secret for signing cookies (32+ characters)

Running the Service:
    Development:
        ENVIRONMENT=development SESSION_COOKIE_SECURE=false ENFORCE_HTTPS=false \\
            uvicorn portal.app.main:create_app --factory --reload --port 8080

    Production (behind a reverse proxy):
        uvicorn portal.app.main:create_app --factory --host 0.0.0.0 --port 8080

    Revoked session tokens are tracked in process memory, so run a single
    worker per instance; a logged-out cookie replayed against another worker
    process would still be accepted there.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
import uvicorn

from .auth import HandshakeError, LoginRequired, build_auth_router
from .auth.dependencies import get_app_settings, get_auth_state, require_user
from .auth.provider import IdentityProvider
from .config import Settings, get_settings, validate_configuration
from .models import AuthState, HealthResponse
from .pages import render_error_page, render_home, render_profile
from .pipeline import build_pipeline, install_pipeline

SERVICE_NAME = "portal"
SERVICE_VERSION = "1.0.0"

DEFAULT_STATIC_DIR = Path(__file__).parent / "static"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup refuses to continue when the configuration is unsafe for the
    current environment.
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("portal.main")

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")
    if not report["valid"]:
        for error in report["errors"]:
            logger.error(f"Configuration error: {error}")
        raise RuntimeError("Invalid configuration: " + "; ".join(report["errors"]))

    logger.info(
        "Portal service started",
        extra={
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.ENVIRONMENT,
            "auth0_domain": settings.AUTH0_DOMAIN,
        }
    )

    yield

    logger.info("Portal service shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use instead of the environment
        identity_provider: Provider adapter to use instead of the Auth0 one

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Portal",
        description="Server-rendered web application with hosted-login sign-in",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.identity_provider = identity_provider or IdentityProvider(settings)

    install_pipeline(app, build_pipeline(settings))

    static_dir = Path(settings.STATIC_DIR) if settings.STATIC_DIR else DEFAULT_STATIC_DIR
    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    app.include_router(build_auth_router(settings))

    @app.get("/", tags=["Pages"], include_in_schema=False)
    async def home(
        auth: AuthState = Depends(get_auth_state),
        settings: Settings = Depends(get_app_settings),
    ):
        return render_home(auth, settings)

    @app.get("/profile", tags=["Pages"], include_in_schema=False)
    async def profile(
        auth: AuthState = Depends(require_user),
        settings: Settings = Depends(get_app_settings),
    ):
        return render_profile(auth, settings)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", service=SERVICE_NAME, version=SERVICE_VERSION)

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
        query = urlencode({"redirectUri": exc.return_to})
        return RedirectResponse(url=f"{settings.LOGIN_PATH}?{query}", status_code=302)

    @app.exception_handler(HandshakeError)
    async def handshake_error_handler(request: Request, exc: HandshakeError):
        return render_error_page(
            title="Sign-in Failed",
            message=exc.message,
            status_code=exc.status_code,
            retry_url=settings.LOGIN_PATH,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Global exception handler for unhandled errors.

        Logs the error and returns the generic error page; exception details
        are shown only in development.
        """
        logger = logging.getLogger("portal.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        message = "An unexpected error occurred. Please try again."
        if settings.is_development:
            message = f"{type(exc).__name__}: {exc}"

        return render_error_page(
            title="Unexpected Error",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "portal.app.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        proxy_headers=False,  # handled by the forwarded_headers stage
        log_level=settings.LOG_LEVEL.lower()
    )
