"""
Code and refresh-token exchange through the token proxy.
The proxy holds client_id + client_secret and calls the provider's token endpoint;
this side only ever sends the code (or refresh token) and redirect_uri.
"""
import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from tracker_auth.config import HTTP_TIMEOUT, PROVIDER, PROXY_URL
from tracker_auth.errors import ExchangeFailed, RefreshExchangeFailed

logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


def _error_detail(response: httpx.Response) -> Any:
    """Proxy error payload if JSON, else the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class TokenExchanger:
    def __init__(
        self,
        http: httpx.AsyncClient,
        proxy_url: str = PROXY_URL,
        provider: str = PROVIDER,
        timeout: float = HTTP_TIMEOUT,
    ):
        self._http = http
        base = proxy_url.rstrip("/")
        self.token_url = f"{base}/api/{provider}/token"
        self.refresh_url = f"{base}/api/{provider}/refresh"
        self._timeout = timeout

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenResponse:
        """Trade a one-time authorization code for a token pair."""
        return await self._post(
            self.token_url,
            {"code": code, "redirect_uri": redirect_uri},
            ExchangeFailed,
        )

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """Mint a new token pair from a refresh token."""
        return await self._post(
            self.refresh_url,
            {"refresh_token": refresh_token},
            RefreshExchangeFailed,
        )

    async def _post(self, url: str, body: dict, error: type[ExchangeFailed]) -> TokenResponse:
        try:
            r = await self._http.post(
                url,
                json=body,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("%s: proxy unreachable at %s (%s)", error.label, url, type(e).__name__)
            raise error(str(e) or type(e).__name__) from e

        if not r.is_success:
            detail = _error_detail(r)
            logger.warning("%s: proxy answered %s", error.label, r.status_code)
            raise error(detail, status_code=r.status_code)

        try:
            return TokenResponse.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            logger.warning("%s: malformed token response from proxy", error.label)
            raise error("malformed token response", status_code=r.status_code) from e
