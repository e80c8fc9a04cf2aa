"""
Error taxonomy for the auth layer. Transport and parse errors are converted into
these at the boundary where they happen; raw httpx exceptions never escape.
"""
from typing import Any


class TrackerAuthError(Exception):
    """Base class for every error raised by tracker_auth."""


class AuthorizationError(TrackerAuthError):
    """The interactive consent step did not yield an authorization code."""


class AuthorizationDenied(AuthorizationError):
    """Provider redirected back with an error parameter (e.g. access_denied)."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        super().__init__(f"Authorization denied: {description or error}")


class AuthorizationIncomplete(AuthorizationError):
    """Flow ended without a usable result (no code, user closed the window, state mismatch)."""


class RedirectListenerError(AuthorizationIncomplete):
    """The redirect listener could not be started (e.g. loopback port in use)."""


class AuthorizationTimeout(AuthorizationError):
    """No redirect arrived within the allowed wait."""


class ExchangeFailed(TrackerAuthError):
    """
    The proxy (or provider behind it) rejected an authorization-code exchange,
    or returned a malformed token response. status_code is None for transport failures.
    """

    label = "Token exchange failed"

    def __init__(self, detail: Any = None, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        msg = self.label
        if status_code is not None:
            msg += f" (HTTP {status_code})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

    @property
    def rejected(self) -> bool:
        """True when the proxy answered with an error status; False when no response arrived."""
        return self.status_code is not None and not 200 <= self.status_code < 300


class RefreshExchangeFailed(ExchangeFailed):
    label = "Token refresh failed"


class NoRefreshToken(TrackerAuthError):
    """refresh() was called on a session that never authenticated."""


class NotAuthenticated(TrackerAuthError):
    """No valid or recoverable token is available."""


class ReauthenticationRequired(NotAuthenticated):
    """
    The refresh token was rejected; local token state has been cleared and the
    full interactive flow must run again.
    """


class ApiRequestFailed(TrackerAuthError):
    """An authenticated API call failed before any HTTP response was received."""


class ApiError(TrackerAuthError):
    """Non-2xx answer from the accounting API, raised by the higher-level API client."""

    def __init__(self, status_code: int, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Accounting API error {status_code}: {payload}")
