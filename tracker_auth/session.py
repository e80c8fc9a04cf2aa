"""
The interface the rest of the time tracker uses: authenticate, api_request,
get_tokens, logout. One instance per running app, with its store injected.
"""
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from tracker_auth.api_client import AuthenticatedRequestClient
from tracker_auth.authorize import AuthorizationCodeAcquirer
from tracker_auth.config import API_BASE_URL, HTTP_TIMEOUT, PROVIDER, PROXY_URL, RUNTIME, STORAGE_NAMESPACE
from tracker_auth.exchange import TokenExchanger
from tracker_auth.kv_store import KeyValueStore
from tracker_auth.lifecycle import TokenLifecycleManager
from tracker_auth.redirect import RedirectListener, select_redirect_listener
from tracker_auth.token_store import TokenRecord, TokenStore

logger = logging.getLogger(__name__)


class TrackerAuth:
    def __init__(
        self,
        acquirer: AuthorizationCodeAcquirer,
        tokens: TokenLifecycleManager,
        requests: AuthenticatedRequestClient,
        http: httpx.AsyncClient | None = None,
    ):
        self.acquirer = acquirer
        self.tokens = tokens
        self.requests = requests
        self._http = http

    @classmethod
    def create(
        cls,
        kv: KeyValueStore,
        *,
        listener: RedirectListener | None = None,
        runtime: str = RUNTIME,
        launch_web_auth_flow: Callable[[str], Awaitable[str | None]] | None = None,
        platform_redirect_uri: str | None = None,
        close_window: Callable[[], object] | None = None,
        http: httpx.AsyncClient | None = None,
        proxy_url: str = PROXY_URL,
        provider: str = PROVIDER,
        api_base_url: str = API_BASE_URL,
        namespace: str = STORAGE_NAMESPACE,
        clock: Callable[[], float] = time.time,
        **acquirer_options: Any,
    ) -> "TrackerAuth":
        """
        Wire the default components. The redirect listener is chosen from runtime
        unless one is passed in. An http client created here is closed by aclose().
        """
        owned_http = None
        if http is None:
            http = owned_http = httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        if listener is None:
            listener = select_redirect_listener(
                runtime,
                launch_web_auth_flow=launch_web_auth_flow,
                platform_redirect_uri=platform_redirect_uri,
                close_window=close_window,
            )
        tokens = TokenLifecycleManager(
            TokenStore(kv, namespace=namespace),
            TokenExchanger(http, proxy_url=proxy_url, provider=provider),
            clock=clock,
        )
        return cls(
            acquirer=AuthorizationCodeAcquirer(listener, **acquirer_options),
            tokens=tokens,
            requests=AuthenticatedRequestClient(http, tokens, base_url=api_base_url),
            http=owned_http,
        )

    async def authenticate(self) -> TokenRecord:
        """Full interactive flow: consent, code exchange via the proxy, persist."""
        code = await self.acquirer.acquire()
        return await self.tokens.complete_authorization(code, self.acquirer.redirect_uri)

    async def api_request(self, endpoint: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        return await self.requests.request(endpoint, method, **kwargs)

    async def get_tokens(self) -> TokenRecord:
        return await self.tokens.get_tokens()

    async def logout(self) -> None:
        await self.tokens.logout()

    async def is_connected(self) -> bool:
        return await self.tokens.is_connected()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
