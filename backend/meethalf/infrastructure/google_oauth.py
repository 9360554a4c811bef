"""Google OAuth — authorization URL, code exchange and profile fetch over httpx.

Invariants:
    - Scopes are always openid + email + profile
    - A profile without an email is rejected (ExternalServiceError GOOGLE_PROFILE_INVALID)
    - Missing client credentials: ExternalServiceError(OAUTH_NOT_CONFIGURED, 503)
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlencode

import httpx

from meethalf.config import get_settings
from meethalf.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
SCOPES = "openid email profile"


@dataclass(frozen=True)
class GoogleProfile:
    google_id: str
    email: str
    name: str
    avatar: str | None


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.client = httpx.AsyncClient(timeout=10.0, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _require_config(self) -> None:
        if not self.configured:
            raise ExternalServiceError(
                "Google OAuth is not configured", "google_oauth",
                code="OAUTH_NOT_CONFIGURED", http_status=503,
            )

    def authorization_url(self, state: str) -> str:
        self._require_config()
        query = urlencode({
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": SCOPES,
            "state": state,
            "prompt": "select_account",
        })
        return f"{AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str) -> str:
        """Authorization code -> access token."""
        self._require_config()
        try:
            response = await self.client.post(TOKEN_URL, data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_url,
                "grant_type": "authorization_code",
            })
        except httpx.TransportError as e:
            raise ExternalServiceError(str(e), "google_oauth") from e
        if response.status_code != 200:
            logger.warning(f"Google token exchange failed: HTTP {response.status_code}")
            raise ExternalServiceError(
                f"token exchange failed (HTTP {response.status_code})",
                "google_oauth", code="OAUTH_EXCHANGE_FAILED",
            )
        token = response.json().get("access_token")
        if not token:
            raise ExternalServiceError(
                "no access token in response", "google_oauth",
                code="OAUTH_EXCHANGE_FAILED",
            )
        return token

    async def fetch_profile(self, access_token: str) -> GoogleProfile:
        try:
            response = await self.client.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TransportError as e:
            raise ExternalServiceError(str(e), "google_oauth") from e
        if response.status_code != 200:
            raise ExternalServiceError(
                f"userinfo failed (HTTP {response.status_code})",
                "google_oauth", code="GOOGLE_PROFILE_INVALID",
            )
        data = response.json()
        email = data.get("email")
        if not email or not data.get("sub"):
            raise ExternalServiceError(
                "No email found in Google profile", "google_oauth",
                code="GOOGLE_PROFILE_INVALID",
            )
        return GoogleProfile(
            google_id=str(data["sub"]),
            email=email,
            name=data.get("name") or data.get("given_name") or email,
            avatar=data.get("picture"),
        )

    async def aclose(self) -> None:
        await self.client.aclose()


@lru_cache
def get_google_oauth() -> GoogleOAuthClient:
    """FastAPI dependency — process-wide client."""
    settings = get_settings()
    return GoogleOAuthClient(
        settings.google_client_id,
        settings.google_client_secret,
        settings.google_callback_url,
    )
