"""
Interactive authorization: send the user to the provider's consent page and collect
the one-time authorization code from the redirect. User credentials never pass through here.
"""
import asyncio
import logging
import secrets
from urllib.parse import urlencode

from tracker_auth.config import AUTH_BASE_URL, AUTH_TIMEOUT_SECONDS, CLIENT_ID, SCOPE
from tracker_auth.errors import AuthorizationDenied, AuthorizationIncomplete, AuthorizationTimeout
from tracker_auth.redirect import RedirectListener

logger = logging.getLogger(__name__)


def generate_state() -> str:
    """Opaque value for CSRF protection; must come back unchanged on the redirect."""
    return secrets.token_urlsafe(32)


def build_authorize_url(
    *,
    auth_base_url: str,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str | None = None,
) -> str:
    """Build the consent URL: client_id, response_type=code, redirect_uri, scope (+ state)."""
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": scope,
    }
    if state:
        params["state"] = state
    return f"{auth_base_url}?{urlencode(params)}"


class AuthorizationCodeAcquirer:
    def __init__(
        self,
        listener: RedirectListener,
        client_id: str = CLIENT_ID,
        scope: str = SCOPE,
        auth_base_url: str = AUTH_BASE_URL,
        timeout: float = AUTH_TIMEOUT_SECONDS,
    ):
        self._listener = listener
        self._client_id = client_id
        self._scope = scope
        self._auth_base_url = auth_base_url
        self._timeout = timeout

    @property
    def redirect_uri(self) -> str:
        """Redirect URI the last code was issued for; the exchange must send the same value."""
        return self._listener.redirect_uri

    async def acquire(self) -> str:
        """Run the interactive flow once and return the authorization code."""
        state = generate_state()

        def build_url(redirect_uri: str) -> str:
            return build_authorize_url(
                auth_base_url=self._auth_base_url,
                client_id=self._client_id,
                redirect_uri=redirect_uri,
                scope=self._scope,
                state=state,
            )

        try:
            params = await asyncio.wait_for(self._listener.capture(build_url), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Authorization timed out after %ss", self._timeout)
            raise AuthorizationTimeout(f"No authorization redirect within {self._timeout:g}s") from None

        error = params.get("error")
        if error:
            logger.warning("Authorization denied by provider: %s", error)
            raise AuthorizationDenied(error, params.get("error_description"))

        returned_state = params.get("state")
        if returned_state is not None and returned_state != state:
            logger.warning("Authorization redirect carried an unexpected state")
            raise AuthorizationIncomplete("State mismatch on authorization redirect")

        code = params.get("code")
        if not code:
            raise AuthorizationIncomplete("No authorization code received")
        return code
