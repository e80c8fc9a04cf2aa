"""
Local client configuration. Only public identifiers live here; the client secret
is held by the token proxy and is never read by this package.
"""
import os

# Public OAuth client id registered with the accounting provider
CLIENT_ID = os.environ.get("TRACKER_CLIENT_ID", "t7BdB9vrNrTG9rcxQXMy7Q")

# Provider consent page (authorization endpoint)
AUTH_BASE_URL = os.environ.get("TRACKER_AUTH_BASE_URL", "https://api.freeagent.com/v2/approve_app")

# Accounting API base; relative endpoints are joined onto this
API_BASE_URL = os.environ.get("TRACKER_API_BASE_URL", "https://api.freeagent.com/v2").rstrip("/")

# Token proxy that holds the client secret
PROXY_URL = os.environ.get("TRACKER_PROXY_URL", "http://localhost:3000").rstrip("/")

# Path segment of the proxy routes: /api/<provider>/token and /api/<provider>/refresh
PROVIDER = os.environ.get("TRACKER_PROVIDER", "freeagent")

SCOPE = os.environ.get("TRACKER_SCOPE", "read write")

# Upper bound on the interactive consent step (seconds)
AUTH_TIMEOUT_SECONDS = float(os.environ.get("TRACKER_AUTH_TIMEOUT", "300"))

# Loopback redirect listener used by the desktop shell
LOOPBACK_HOST = os.environ.get("TRACKER_LOOPBACK_HOST", "localhost")
LOOPBACK_PORT = int(os.environ.get("TRACKER_LOOPBACK_PORT", "8080"))
LOOPBACK_PATH = os.environ.get("TRACKER_LOOPBACK_PATH", "/oauth/callback")

# Key prefix for everything persisted by the auth layer
STORAGE_NAMESPACE = os.environ.get("TRACKER_STORAGE_NAMESPACE", "freeagent")

# Desktop shell key/value database
DATABASE_URL = os.environ.get("TRACKER_DATABASE_URL", "sqlite:///./tracker_auth.db")

HTTP_TIMEOUT = float(os.environ.get("TRACKER_HTTP_TIMEOUT", "10"))

# "extension" (platform-provided redirect) or "desktop" (loopback listener)
RUNTIME = os.environ.get("TRACKER_RUNTIME", "desktop")
