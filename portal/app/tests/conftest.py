"""
Shared fixtures for Portal tests.

Tests talk to the app over https://testserver so Secure cookies round-trip
through the TestClient cookie jar.
"""

import pytest
from fastapi.testclient import TestClient

from portal.app.auth.session import create_session_token, revoked_tokens
from portal.app.config import Settings
from portal.app.main import create_app

from portal.app.tests.support import (
    TEST_BASE_URL,
    TEST_CLAIMS,
    FakeIdentityProvider,
    make_settings,
)


@pytest.fixture(autouse=True)
def reset_revocations():
    revoked_tokens.clear()
    yield
    revoked_tokens.clear()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def provider(settings) -> FakeIdentityProvider:
    return FakeIdentityProvider(settings)


@pytest.fixture
def app(settings, provider):
    return create_app(settings=settings, identity_provider=provider)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, base_url=TEST_BASE_URL)


@pytest.fixture
def session_token(settings) -> str:
    return create_session_token(dict(TEST_CLAIMS), settings)


@pytest.fixture
def authenticated_client(app, settings, session_token) -> TestClient:
    return TestClient(
        app,
        base_url=TEST_BASE_URL,
        cookies={settings.SESSION_COOKIE_NAME: session_token},
    )
