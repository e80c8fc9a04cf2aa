"""
Shared fakes for tracker_auth tests: a controllable clock and an in-process
stand-in for the token proxy and accounting API built on httpx.MockTransport.
"""
import asyncio
import json

import httpx
import pytest

from tracker_auth.exchange import TokenExchanger
from tracker_auth.kv_store import MemoryKeyValueStore
from tracker_auth.lifecycle import TokenLifecycleManager
from tracker_auth.token_store import TokenStore

PROXY_URL = "https://proxy.test"
API_BASE_URL = "https://api.test/v2"
START = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """
    Token proxy + accounting API. Token responses are queued per route; API responses
    are decided by api_handler (default: 200 for the current valid access token, else 401).
    """

    def __init__(self):
        self.token_responses: list[httpx.Response] = []
        self.refresh_responses: list[httpx.Response] = []
        self.token_calls: list[dict] = []
        self.refresh_calls: list[dict] = []
        self.api_calls: list[httpx.Request] = []
        self.valid_access_tokens: set[str] = set()
        self.api_handler = None
        # Delay before answering refresh calls, so concurrent callers overlap
        self.refresh_delay = 0.0

    @staticmethod
    def tokens(access: str, refresh: str, expires_in: int = 3600) -> httpx.Response:
        return httpx.Response(
            200,
            json={"access_token": access, "refresh_token": refresh, "expires_in": expires_in, "token_type": "bearer"},
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.url.host == "proxy.test" and path == "/api/freeagent/token":
            self.token_calls.append(json.loads(request.content))
            return self._next(self.token_responses)
        if request.url.host == "proxy.test" and path == "/api/freeagent/refresh":
            self.refresh_calls.append(json.loads(request.content))
            if self.refresh_delay:
                await asyncio.sleep(self.refresh_delay)
            return self._next(self.refresh_responses)
        self.api_calls.append(request)
        if self.api_handler is not None:
            return self.api_handler(request)
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token in self.valid_access_tokens:
            return httpx.Response(200, json={"ok": True, "token": token})
        return httpx.Response(401, json={"errors": {"error": {"message": "Access token not recognised"}}})

    def _next(self, queue: list[httpx.Response]) -> httpx.Response:
        if not queue:
            return httpx.Response(500, json={"error": "no response queued"})
        response = queue.pop(0)
        # The access token just issued is accepted by the API from now on
        if response.status_code == 200:
            try:
                self.valid_access_tokens.add(json.loads(response.content)["access_token"])
            except (KeyError, ValueError):
                pass
        return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return TokenStore(kv, namespace="freeagent")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))


@pytest.fixture
def exchanger(http):
    return TokenExchanger(http, proxy_url=PROXY_URL, provider="freeagent")


@pytest.fixture
def manager(store, exchanger, clock):
    return TokenLifecycleManager(store, exchanger, clock=clock)
