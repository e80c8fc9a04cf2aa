"""
Token proxy configuration. The client secret is read from the environment only
and never leaves this process except in the upstream token request.
"""
import os

# Confidential OAuth client credentials registered with the provider
CLIENT_ID = os.environ.get("FREEAGENT_CLIENT_ID", "")
CLIENT_SECRET = os.environ.get("FREEAGENT_CLIENT_SECRET", "")

# Provider token endpoint (authorization_code and refresh_token grants)
TOKEN_URL = os.environ.get("FREEAGENT_TOKEN_URL", "https://api.freeagent.com/v2/token_endpoint")

# Accounting API base for the optional pass-through route
API_BASE_URL = os.environ.get("FREEAGENT_API_BASE_URL", "https://api.freeagent.com/v2").rstrip("/")

# Routes are mounted under /api/<provider>/
PROVIDER = os.environ.get("PROXY_PROVIDER", "freeagent")

PORT = int(os.environ.get("PROXY_PORT", "3000"))

# Browser extensions and local desktop pages may call the proxy
CORS_ORIGIN_REGEX = os.environ.get(
    "PROXY_CORS_ORIGIN_REGEX",
    r"^(chrome-extension://.*|http://localhost(:\d+)?|http://127\.0\.0\.1(:\d+)?)$",
)

# Per-IP requests per minute on the token and refresh routes; 0 disables
RATE_LIMIT_PER_MINUTE = int(os.environ.get("PROXY_RATE_LIMIT_PER_MINUTE", "30"))

UPSTREAM_TIMEOUT = float(os.environ.get("PROXY_UPSTREAM_TIMEOUT", "10"))


def is_configured() -> bool:
    return bool(CLIENT_ID and CLIENT_SECRET)
