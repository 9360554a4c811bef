"""Google OAuth — consent URL, code exchange and profile validation."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from meethalf.core.errors import ExternalServiceError
from meethalf.infrastructure.google_oauth import (
    AUTHORIZE_URL, TOKEN_URL, USERINFO_URL, GoogleOAuthClient,
)


def _client(handler) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        "cid", "secret", "http://api.test/api/v1/auth/google/callback",
        transport=httpx.MockTransport(handler),
    )


def test_authorization_url_carries_state_and_scopes():
    client = _client(lambda r: httpx.Response(500))
    url = client.authorization_url("st4te")
    assert url.startswith(AUTHORIZE_URL)
    query = parse_qs(urlparse(url).query)
    assert query["state"] == ["st4te"]
    assert query["client_id"] == ["cid"]
    assert query["scope"] == ["openid email profile"]


def test_unconfigured_client_refuses():
    client = GoogleOAuthClient("", "", "http://cb")
    with pytest.raises(ExternalServiceError) as exc:
        client.authorization_url("s")
    assert exc.value.code == "OAUTH_NOT_CONFIGURED"


async def test_exchange_then_profile():
    def handler(request: httpx.Request):
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "at"})
        if str(request.url) == USERINFO_URL:
            assert request.headers["Authorization"] == "Bearer at"
            return httpx.Response(200, json={
                "sub": "g-1", "email": "a@example.com", "name": "Alice",
                "picture": "http://img/a.png",
            })
        return httpx.Response(404)

    client = _client(handler)
    token = await client.exchange_code("code")
    profile = await client.fetch_profile(token)
    await client.aclose()
    assert profile.google_id == "g-1"
    assert profile.name == "Alice"
    assert profile.avatar == "http://img/a.png"


async def test_failed_exchange_raises():
    client = _client(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))
    with pytest.raises(ExternalServiceError) as exc:
        await client.exchange_code("bad")
    await client.aclose()
    assert exc.value.code == "OAUTH_EXCHANGE_FAILED"


async def test_profile_without_email_rejected():
    client = _client(lambda r: httpx.Response(200, json={"sub": "g-1"}))
    with pytest.raises(ExternalServiceError) as exc:
        await client.fetch_profile("at")
    await client.aclose()
    assert exc.value.code == "GOOGLE_PROFILE_INVALID"
