"""
HTML pages.

Each renderer takes the request's AuthState explicitly rather than reading
ambient state, and escapes every claim before it reaches the markup.
"""

from html import escape
from typing import Optional
from urllib.parse import urlencode

from fastapi.responses import HTMLResponse

from .config import Settings
from .models import AuthState


def _auth_link(path: str, redirect_target: str) -> str:
    return f"{path}?{urlencode({'redirectUri': redirect_target})}"


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{escape(title)}</title>
        <link rel="stylesheet" href="/static/site.css">
    </head>
    <body>
        <div class="container">
            {body}
        </div>
    </body>
    </html>
    """


def render_home(auth: AuthState, settings: Settings) -> HTMLResponse:
    """Signed-in view with claims and a logout link, or the anonymous view."""
    if auth.is_authenticated and auth.user:
        user = auth.user
        picture = (
            f'<img class="avatar" src="{escape(user.picture)}" alt="">'
            if user.picture else ""
        )
        body = f"""
            {picture}
            <h1>Welcome, {escape(user.display_name)}</h1>
            <p class="email">{escape(user.email or "")}</p>
            <p class="subject">{escape(user.user_id)}</p>
            <a class="button" href="{escape(_auth_link(settings.LOGOUT_PATH, '/'))}">Log out</a>
        """
    else:
        body = f"""
            <h1>Welcome</h1>
            <p class="message">You are not signed in.</p>
            <a class="button" href="{escape(_auth_link(settings.LOGIN_PATH, '/'))}">Log in</a>
        """

    return HTMLResponse(content=_layout("Home", body), status_code=200)


def render_profile(auth: AuthState, settings: Settings) -> HTMLResponse:
    user = auth.user
    rows = "".join(
        f"<tr><th>{label}</th><td>{escape(value or '')}</td></tr>"
        for label, value in (
            ("Name", user.name),
            ("Email", user.email),
            ("Subject", user.user_id),
        )
    )
    body = f"""
        <h1>Profile</h1>
        <table class="claims">{rows}</table>
        <a class="button" href="{escape(_auth_link(settings.LOGOUT_PATH, '/'))}">Log out</a>
    """
    return HTMLResponse(content=_layout("Profile", body), status_code=200)


def render_error_page(
    title: str,
    message: str,
    status_code: int = 500,
    retry_url: Optional[str] = None,
) -> HTMLResponse:
    """
    Render a generic error page.

    Args:
        title: Error title
        message: Error message (no PII, no stack traces)
        status_code: HTTP status code
        retry_url: Optional link offered to try again
    """
    retry_button = (
        f'<a href="{escape(retry_url)}" class="button">Try Again</a>'
        if retry_url else ""
    )
    body = f"""
        <div class="error-icon">!</div>
        <h1>{escape(title)}</h1>
        <p class="message">{escape(message)}</p>
        {retry_button}
        <div class="support">
            <p>Need help? Contact your system administrator.</p>
        </div>
    """
    return HTMLResponse(content=_layout(title, body), status_code=status_code)
