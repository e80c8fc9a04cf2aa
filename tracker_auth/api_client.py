"""
Authenticated calls to the accounting API. A 401 triggers one refresh and one retry;
every other status goes back to the caller untouched.
"""
import logging
from typing import Any

import httpx

from tracker_auth.config import API_BASE_URL, HTTP_TIMEOUT
from tracker_auth.errors import ApiRequestFailed
from tracker_auth.lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)

# One original attempt plus one retry after a refresh
MAX_ATTEMPTS = 2


class AuthenticatedRequestClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        tokens: TokenLifecycleManager,
        base_url: str = API_BASE_URL,
        timeout: float = HTTP_TIMEOUT,
    ):
        self._http = http
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self._base_url}{endpoint}"

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Send method endpoint with the current bearer token.
        Raises NotAuthenticated / ReauthenticationRequired when no usable token exists,
        ApiRequestFailed when no response was received.
        """
        record = await self._tokens.get_tokens()
        url = self.url_for(endpoint)
        response: httpx.Response | None = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            response = await self._send(method, url, record.access_token, json=json, params=params, headers=headers)
            if response.status_code != 401 or attempt == MAX_ATTEMPTS:
                break
            logger.debug("%s %s returned 401; refreshing and retrying once", method, url)
            record = await self._tokens.refresh(stale=record)

        return response

    async def _send(
        self,
        method: str,
        url: str,
        access_token: str,
        *,
        json: Any,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        merged = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **(headers or {}),
            "Authorization": f"Bearer {access_token}",
        }
        try:
            return await self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers=merged,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, type(e).__name__)
            raise ApiRequestFailed(f"{method} {url} failed: {e}") from e
