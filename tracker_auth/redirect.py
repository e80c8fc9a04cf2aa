"""
Redirect listeners: how the authorization redirect gets back to us.
The extension runtime gets it from the platform's web-auth-flow helper; the desktop
shell runs a loopback HTTP listener (tracker_auth.loopback). Both tear down whatever
they opened, whatever the outcome.
"""
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol
from urllib.parse import parse_qs, urlparse

from tracker_auth.config import LOOPBACK_HOST, LOOPBACK_PATH, LOOPBACK_PORT
from tracker_auth.errors import AuthorizationIncomplete

logger = logging.getLogger(__name__)

# Receives the redirect_uri the listener will answer on, returns the URL to open
UrlBuilder = Callable[[str], str]


class RedirectListener(Protocol):
    @property
    def redirect_uri(self) -> str: ...

    async def capture(self, build_url: UrlBuilder) -> dict[str, str]:
        """Open the consent page and return the query parameters of the redirect back."""
        ...


async def call_maybe_async(fn: Callable[..., object], *args) -> None:
    """Call a shell-supplied hook that may be a plain function or a coroutine function."""
    result = fn(*args)
    if inspect.isawaitable(result):
        await result


def query_params(url: str) -> dict[str, str]:
    """First value of each query parameter of url."""
    parsed = parse_qs(urlparse(url).query, keep_blank_values=False)
    return {k: v[0] for k, v in parsed.items() if v}


class PlatformProvidedRedirect:
    """
    Uses a platform helper that opens an interactive window, follows redirects until
    the platform redirect URL is reached, closes the window and returns that URL.
    The helper returns None when the user closed the window first. close_window, when
    given, is called after every capture so a window left open by a timeout goes away.
    """

    def __init__(
        self,
        launch_web_auth_flow: Callable[[str], Awaitable[str | None]],
        redirect_uri: str,
        close_window: Callable[[], object] | None = None,
    ):
        self._launch = launch_web_auth_flow
        self._redirect_uri = redirect_uri
        self._close_window = close_window

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    async def capture(self, build_url: UrlBuilder) -> dict[str, str]:
        url = build_url(self._redirect_uri)
        try:
            final_url = await self._launch(url)
        finally:
            if self._close_window is not None:
                try:
                    await call_maybe_async(self._close_window)
                except Exception:
                    logger.exception("Closing the authorization window failed")
        if not final_url:
            raise AuthorizationIncomplete("Authorization window was closed before completing")
        return query_params(final_url)


def select_redirect_listener(
    runtime: str,
    *,
    launch_web_auth_flow: Callable[[str], Awaitable[str | None]] | None = None,
    platform_redirect_uri: str | None = None,
    open_browser: Callable[[str], object] | None = None,
    close_window: Callable[[], object] | None = None,
    host: str = LOOPBACK_HOST,
    port: int = LOOPBACK_PORT,
    path: str = LOOPBACK_PATH,
) -> RedirectListener:
    """Pick the listener for the runtime environment: 'extension' or 'desktop'."""
    if runtime == "extension":
        if launch_web_auth_flow is None or not platform_redirect_uri:
            raise ValueError("extension runtime needs launch_web_auth_flow and platform_redirect_uri")
        return PlatformProvidedRedirect(launch_web_auth_flow, platform_redirect_uri, close_window=close_window)
    if runtime == "desktop":
        from tracker_auth.loopback import LoopbackHttpRedirect

        return LoopbackHttpRedirect(
            host=host, port=port, path=path, open_browser=open_browser, close_browser=close_window
        )
    raise ValueError(f"Unknown runtime: {runtime!r}")
