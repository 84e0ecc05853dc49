"""
OAuth2 access tokens for the Google Ads API

Exchanges the long-lived refresh token for a short-lived access token and
caches it on the instance until 60s before expiry.
"""

import time

import httpx
import structlog

log = structlog.get_logger()

_TOKEN_URL = "https://oauth2.googleapis.com/token"
_EXPIRY_MARGIN_SECONDS = 60


class AdsAuthError(Exception):
    """Missing credentials or a failed token refresh"""


class TokenProvider:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        http: httpx.AsyncClient,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._http = http
        self._token: str | None = None
        self._expires_at: float = 0.0

    async def get_token(self) -> str:
        if self._token and time.time() < self._expires_at - _EXPIRY_MARGIN_SECONDS:
            return self._token

        if not (self._client_id and self._client_secret and self._refresh_token):
            raise AdsAuthError(
                "Missing Google Ads OAuth2 credentials. Set GOOGLE_ADS_CLIENT_ID, "
                "GOOGLE_ADS_CLIENT_SECRET and GOOGLE_ADS_REFRESH_TOKEN."
            )

        resp = await self._http.post(
            _TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
            },
        )
        if resp.status_code != 200:
            raise AdsAuthError(f"Google OAuth2 token refresh failed ({resp.status_code}): {resp.text}")

        data = resp.json()
        self._token = data["access_token"]
        self._expires_at = time.time() + int(data.get("expires_in", 3600))
        log.debug("Google Ads access token refreshed")
        return self._token
