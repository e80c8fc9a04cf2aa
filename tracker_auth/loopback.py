"""
Loopback redirect listener for the desktop shell.
Serves a one-route FastAPI app on a local port for the duration of one authorization
attempt; the provider redirects the browser to http://<host>:<port><path>?code=... or ?error=...
"""
import asyncio
import contextlib
import html
import logging
import socket
import webbrowser
from collections.abc import Callable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from tracker_auth.config import LOOPBACK_HOST, LOOPBACK_PATH, LOOPBACK_PORT
from tracker_auth.errors import AuthorizationIncomplete, RedirectListenerError
from tracker_auth.redirect import UrlBuilder, call_maybe_async

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
  {body}
</body>
</html>"""


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host application."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


async def _open_system_browser(url: str) -> None:
    await asyncio.to_thread(webbrowser.open, url)


class LoopbackHttpRedirect:
    def __init__(
        self,
        host: str = LOOPBACK_HOST,
        port: int = LOOPBACK_PORT,
        path: str = LOOPBACK_PATH,
        open_browser: Callable[[str], object] | None = None,
        close_browser: Callable[[], object] | None = None,
    ):
        self.host = host
        self.port = port
        self.path = path if path.startswith("/") else f"/{path}"
        self._open_browser = open_browser or _open_system_browser
        self._close_browser = close_browser
        self._bound_port: int | None = None
        self._pending: asyncio.Future | None = None

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self._bound_port or self.port}{self.path}"

    def cancel(self) -> None:
        """The user closed the authorization window; end the pending capture."""
        if self._pending is not None and not self._pending.done():
            self._pending.set_exception(
                AuthorizationIncomplete("Authorization window was closed before completing")
            )

    def _build_app(self, result: asyncio.Future) -> FastAPI:
        app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

        @app.get(self.path, response_class=HTMLResponse)
        async def callback(request: Request):
            params = dict(request.query_params)
            if ("code" in params or "error" in params) and not result.done():
                result.set_result(params)
            if "error" in params:
                msg = html.escape(params.get("error_description") or params["error"])
                return HTMLResponse(
                    _page("Authentication failed", f"<p>Error: {msg}</p><p>You can close this window.</p>"),
                    status_code=400,
                )
            if "code" not in params:
                return HTMLResponse(
                    _page("Authentication failed", "<p>Missing code parameter.</p>"),
                    status_code=400,
                )
            return HTMLResponse(
                _page(
                    "Authentication successful",
                    "<p>You can close this window and return to the time tracker.</p>"
                    "<script>setTimeout(() => window.close(), 2000);</script>",
                )
            )

        return app

    def _bind(self) -> socket.socket:
        try:
            sock = socket.create_server((self.host, self.port))
        except OSError as e:
            raise RedirectListenerError(f"Cannot listen on {self.host}:{self.port}: {e}") from e
        self._bound_port = sock.getsockname()[1]
        return sock

    async def capture(self, build_url: UrlBuilder) -> dict[str, str]:
        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()
        sock = self._bind()
        server = _EmbeddedServer(
            uvicorn.Config(self._build_app(result), log_level="warning", lifespan="off")
        )
        serve_task = asyncio.ensure_future(server.serve(sockets=[sock]))
        self._pending = result
        try:
            while not server.started:
                if serve_task.done():
                    raise RedirectListenerError("Loopback listener exited during startup")
                await asyncio.sleep(0.01)
            logger.info("Loopback redirect listener started on %s", self.redirect_uri)

            await call_maybe_async(self._open_browser, build_url(self.redirect_uri))
            return await result
        finally:
            self._pending = None
            if not result.done():
                result.cancel()
            await self._stop(server, serve_task)
            sock.close()
            if self._close_browser is not None:
                try:
                    await call_maybe_async(self._close_browser)
                except Exception:
                    logger.exception("Closing the authorization window failed")

    async def _stop(self, server: uvicorn.Server, serve_task: asyncio.Future) -> None:
        server.should_exit = True
        try:
            await asyncio.wait_for(serve_task, timeout=SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Loopback listener did not stop within %ss", SHUTDOWN_TIMEOUT)
        except Exception:
            logger.exception("Loopback listener failed while stopping")
        logger.info("Loopback redirect listener stopped")
