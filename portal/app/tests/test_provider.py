"""
Tests for the Auth0 provider adapter.

The Authlib client is exercised for real; only the network edges
(discovery document, token endpoint) are replaced.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from authlib.integrations.starlette_client import OAuthError
from fastapi import status
from fastapi.testclient import TestClient
from starlette.requests import Request

from portal.app.auth.provider import RETURN_TO_SESSION_KEY, IdentityProvider
from portal.app.main import create_app

from portal.app.tests.support import TEST_BASE_URL, TEST_CLAIMS, TEST_DOMAIN, make_settings


SERVER_METADATA = {
    "issuer": f"https://{TEST_DOMAIN}/",
    "authorization_endpoint": f"https://{TEST_DOMAIN}/authorize",
    "token_endpoint": f"https://{TEST_DOMAIN}/oauth/token",
    "userinfo_endpoint": f"https://{TEST_DOMAIN}/userinfo",
    "jwks_uri": f"https://{TEST_DOMAIN}/.well-known/jwks.json",
    "end_session_endpoint": f"https://{TEST_DOMAIN}/oidc/logout",
}


@pytest.fixture
def real_settings():
    return make_settings(AUTH0_AUDIENCE="https://api.example.com")


@pytest.fixture
def real_provider(real_settings):
    return IdentityProvider(real_settings)


@pytest.fixture
def real_client(real_settings, real_provider):
    app = create_app(settings=real_settings, identity_provider=real_provider)
    return TestClient(app, base_url=TEST_BASE_URL)


@pytest.fixture
def metadata(real_provider):
    with patch.object(
        real_provider.client,
        "load_server_metadata",
        AsyncMock(return_value=dict(SERVER_METADATA)),
    ):
        yield


class TestChallenge:

    def test_login_redirects_to_authorize_endpoint(self, real_client, real_settings, metadata):
        response = real_client.get("/auth/login?redirectUri=/dashboard", follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == SERVER_METADATA["authorization_endpoint"]

        query = parse_qs(location.query)
        assert query["client_id"] == [real_settings.AUTH0_CLIENT_ID]
        assert query["response_type"] == ["code"]
        assert query["redirect_uri"] == [f"{TEST_BASE_URL}/callback"]
        assert query["scope"] == ["openid profile email"]
        assert query["audience"] == ["https://api.example.com"]
        assert "state" in query
        assert "nonce" in query

    def test_login_stores_handshake_state_in_cookie(self, real_client, real_settings, metadata):
        response = real_client.get("/auth/login", follow_redirects=False)

        handshake = [
            header for header in response.headers.get_list("set-cookie")
            if header.startswith(f"{real_settings.HANDSHAKE_COOKIE_NAME}=")
        ]
        assert len(handshake) == 1
        assert "httponly" in handshake[0].lower()

    def test_unreachable_provider_renders_error_page(self, real_client, real_provider):
        with patch.object(
            real_provider.client,
            "load_server_metadata",
            AsyncMock(side_effect=httpx.ConnectError("connection refused")),
        ):
            response = real_client.get("/auth/login", follow_redirects=False)

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert "Sign-in Failed" in response.text


class TestComplete:

    def test_callback_issues_session_and_forwards_to_target(
        self, real_client, real_provider, real_settings, metadata
    ):
        real_client.get("/auth/login?redirectUri=/reports", follow_redirects=False)

        token = {"access_token": "at", "id_token": "it", "userinfo": dict(TEST_CLAIMS, aud="x")}
        with patch.object(
            real_provider.client, "authorize_access_token", AsyncMock(return_value=token)
        ):
            response = real_client.get("/callback?code=abc&state=xyz", follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/reports"
        assert real_client.cookies.get(real_settings.SESSION_COOKIE_NAME)

    def test_denied_consent_becomes_handshake_error(self, real_client, real_provider):
        with patch.object(
            real_provider.client,
            "authorize_access_token",
            AsyncMock(side_effect=OAuthError(error="access_denied", description="User denied access")),
        ):
            response = real_client.get(
                "/callback?error=access_denied&state=xyz", follow_redirects=False
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "User denied access" in response.text

    def test_missing_userinfo_becomes_handshake_error(self, real_client, real_provider):
        with patch.object(
            real_provider.client,
            "authorize_access_token",
            AsyncMock(return_value={"access_token": "at"}),
        ):
            response = real_client.get("/callback?code=abc&state=xyz", follow_redirects=False)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_token_endpoint_timeout_becomes_bad_gateway(self, real_client, real_provider):
        with patch.object(
            real_provider.client,
            "authorize_access_token",
            AsyncMock(side_effect=httpx.ReadTimeout("timed out")),
        ):
            response = real_client.get("/callback?code=abc&state=xyz", follow_redirects=False)

        assert response.status_code == status.HTTP_502_BAD_GATEWAY


class TestLogoutUrl:

    def test_logout_url_targets_tenant(self, real_provider, real_settings):
        url = urlparse(real_provider.logout_url("https://app.example.com/bye"))

        assert url.scheme == "https"
        assert url.netloc == TEST_DOMAIN
        assert url.path == "/v2/logout"
        query = parse_qs(url.query)
        assert query == {
            "client_id": [real_settings.AUTH0_CLIENT_ID],
            "returnTo": ["https://app.example.com/bye"],
        }

    def test_federated_logout_appends_flag(self):
        provider = IdentityProvider(make_settings(AUTH0_FEDERATED_LOGOUT=True))

        assert provider.logout_url("https://app.example.com/").endswith("&federated")


class TestCompleteDirect:

    @pytest.mark.asyncio
    async def test_complete_returns_verified_claims(self, real_provider):
        request = Request({
            "type": "http",
            "method": "GET",
            "scheme": "https",
            "server": ("testserver", 443),
            "path": "/callback",
            "query_string": b"code=abc&state=xyz",
            "headers": [],
            "session": {},
        })
        token = {"access_token": "at", "userinfo": dict(TEST_CLAIMS)}

        with patch.object(
            real_provider.client, "authorize_access_token", AsyncMock(return_value=token)
        ) as authorize:
            claims = await real_provider.complete(request)

        authorize.assert_awaited_once_with(request)
        assert claims == TEST_CLAIMS

    def test_pop_return_to_resanitizes_stored_value(self):
        request = Request({
            "type": "http",
            "headers": [],
            "session": {RETURN_TO_SESSION_KEY: "//evil.example"},
        })

        assert IdentityProvider.pop_return_to(request) == "/"
        assert RETURN_TO_SESSION_KEY not in request.session
