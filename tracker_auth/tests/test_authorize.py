"""Tests for the consent URL, AuthorizationCodeAcquirer outcomes and listener selection."""
import asyncio
from urllib.parse import parse_qsl, urlparse

import pytest

from tracker_auth.authorize import AuthorizationCodeAcquirer, build_authorize_url, generate_state
from tracker_auth.errors import AuthorizationDenied, AuthorizationIncomplete, AuthorizationTimeout
from tracker_auth.redirect import PlatformProvidedRedirect, query_params, select_redirect_listener

REDIRECT_URI = "https://extension-id.chromiumapp.org/"
AUTH_BASE_URL = "https://provider.test/v2/approve_app"


class FakeListener:
    """Records the consent URL and answers with canned redirect parameters."""

    def __init__(self, params=None, delay=0.0, redirect_uri=REDIRECT_URI):
        self.params = params
        self.delay = delay
        self._redirect_uri = redirect_uri
        self.opened_urls = []
        self.torn_down = False

    @property
    def redirect_uri(self):
        return self._redirect_uri

    async def capture(self, build_url):
        url = build_url(self._redirect_uri)
        self.opened_urls.append(url)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            params = dict(self.params)
            if params.pop("echo_state", False):
                params["state"] = query_params(url)["state"]
            return params
        finally:
            self.torn_down = True


def _acquirer(listener, timeout=5):
    return AuthorizationCodeAcquirer(
        listener, client_id="client-abc", scope="read write", auth_base_url=AUTH_BASE_URL, timeout=timeout
    )


def test_generate_state_is_random():
    assert generate_state() != generate_state()
    assert len(generate_state()) >= 32


def test_build_authorize_url():
    url = build_authorize_url(
        auth_base_url=AUTH_BASE_URL,
        client_id="client-abc",
        redirect_uri="http://localhost:8080/oauth/callback",
        scope="read write",
    )
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == AUTH_BASE_URL
    assert parse_qsl(parsed.query) == [
        ("client_id", "client-abc"),
        ("response_type", "code"),
        ("redirect_uri", "http://localhost:8080/oauth/callback"),
        ("scope", "read write"),
    ]


def test_build_authorize_url_with_state():
    url = build_authorize_url(
        auth_base_url=AUTH_BASE_URL, client_id="c", redirect_uri=REDIRECT_URI, scope="read", state="xyz"
    )
    assert query_params(url)["state"] == "xyz"


@pytest.mark.asyncio
async def test_acquire_returns_code():
    listener = FakeListener({"code": "abc123", "echo_state": True})
    code = await _acquirer(listener).acquire()

    assert code == "abc123"
    sent = query_params(listener.opened_urls[0])
    assert sent["client_id"] == "client-abc"
    assert sent["response_type"] == "code"
    assert sent["redirect_uri"] == REDIRECT_URI
    assert sent["scope"] == "read write"
    assert listener.torn_down


@pytest.mark.asyncio
async def test_acquire_without_state_echo_still_accepts_code():
    listener = FakeListener({"code": "abc123"})
    assert await _acquirer(listener).acquire() == "abc123"


@pytest.mark.asyncio
async def test_access_denied():
    listener = FakeListener({"error": "access_denied", "error_description": "User declined"})
    with pytest.raises(AuthorizationDenied) as exc_info:
        await _acquirer(listener).acquire()
    assert exc_info.value.error == "access_denied"
    assert exc_info.value.description == "User declined"
    assert listener.torn_down


@pytest.mark.asyncio
async def test_missing_code_is_incomplete():
    with pytest.raises(AuthorizationIncomplete):
        await _acquirer(FakeListener({"echo_state": True})).acquire()


@pytest.mark.asyncio
async def test_state_mismatch_is_incomplete():
    with pytest.raises(AuthorizationIncomplete):
        await _acquirer(FakeListener({"code": "abc123", "state": "forged"})).acquire()


@pytest.mark.asyncio
async def test_timeout_tears_down_listener():
    listener = FakeListener({"code": "late"}, delay=1.0)
    with pytest.raises(AuthorizationTimeout):
        await _acquirer(listener, timeout=0.05).acquire()
    assert listener.torn_down


@pytest.mark.asyncio
async def test_platform_redirect_returns_query_params():
    opened = []

    async def launch_web_auth_flow(url):
        opened.append(url)
        state = query_params(url)["state"]
        return f"{REDIRECT_URI}?code=abc123&state={state}"

    listener = PlatformProvidedRedirect(launch_web_auth_flow, REDIRECT_URI)
    assert await _acquirer(listener).acquire() == "abc123"
    assert query_params(opened[0])["redirect_uri"] == REDIRECT_URI


@pytest.mark.asyncio
async def test_platform_redirect_window_closed():
    async def launch_web_auth_flow(url):
        return None

    listener = PlatformProvidedRedirect(launch_web_auth_flow, REDIRECT_URI)
    with pytest.raises(AuthorizationIncomplete):
        await _acquirer(listener).acquire()


@pytest.mark.asyncio
async def test_platform_redirect_error():
    async def launch_web_auth_flow(url):
        return f"{REDIRECT_URI}?error=access_denied"

    with pytest.raises(AuthorizationDenied):
        await _acquirer(PlatformProvidedRedirect(launch_web_auth_flow, REDIRECT_URI)).acquire()


def test_select_extension_listener():
    async def launch_web_auth_flow(url):
        return None

    listener = select_redirect_listener(
        "extension", launch_web_auth_flow=launch_web_auth_flow, platform_redirect_uri=REDIRECT_URI
    )
    assert isinstance(listener, PlatformProvidedRedirect)
    assert listener.redirect_uri == REDIRECT_URI


def test_select_extension_listener_needs_helper():
    with pytest.raises(ValueError):
        select_redirect_listener("extension")


def test_select_desktop_listener():
    from tracker_auth.loopback import LoopbackHttpRedirect

    listener = select_redirect_listener("desktop", port=9123, path="/cb")
    assert isinstance(listener, LoopbackHttpRedirect)
    assert listener.redirect_uri == "http://localhost:9123/cb"


def test_select_unknown_runtime():
    with pytest.raises(ValueError):
        select_redirect_listener("mobile")


class PlatformWindow:
    """launch_web_auth_flow stand-in that can hang, plus the matching close hook."""

    def __init__(self, final_url=None, hang=False):
        self.final_url = final_url
        self.hang = hang
        self.closed = 0

    async def launch(self, url):
        if self.hang:
            await asyncio.sleep(10)
        state = query_params(url)["state"]
        return self.final_url.replace("{state}", state) if self.final_url else None

    async def close(self):
        self.closed += 1


@pytest.mark.asyncio
async def test_platform_window_closed_after_success():
    window = PlatformWindow(f"{REDIRECT_URI}?code=abc123&state={{state}}")
    listener = PlatformProvidedRedirect(window.launch, REDIRECT_URI, close_window=window.close)
    assert await _acquirer(listener).acquire() == "abc123"
    assert window.closed == 1


@pytest.mark.asyncio
async def test_platform_window_closed_on_timeout():
    window = PlatformWindow(hang=True)
    listener = PlatformProvidedRedirect(window.launch, REDIRECT_URI, close_window=window.close)
    with pytest.raises(AuthorizationTimeout):
        await _acquirer(listener, timeout=0.05).acquire()
    assert window.closed == 1


@pytest.mark.asyncio
async def test_platform_close_hook_may_be_sync():
    closed = []
    window = PlatformWindow()
    listener = PlatformProvidedRedirect(window.launch, REDIRECT_URI, close_window=lambda: closed.append(True))
    with pytest.raises(AuthorizationIncomplete):
        await _acquirer(listener).acquire()
    assert closed == [True]


@pytest.mark.asyncio
async def test_selected_extension_listener_uses_close_hook():
    window = PlatformWindow(hang=True)
    listener = select_redirect_listener(
        "extension",
        launch_web_auth_flow=window.launch,
        platform_redirect_uri=REDIRECT_URI,
        close_window=window.close,
    )
    with pytest.raises(AuthorizationTimeout):
        await _acquirer(listener, timeout=0.05).acquire()
    assert window.closed == 1
