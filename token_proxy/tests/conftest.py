"""
Pytest configuration for token_proxy. Credentials are set before the app is imported;
the rate limiter is reset between tests.
"""
import os

import pytest

os.environ["FREEAGENT_CLIENT_ID"] = "proxy-client-id"
os.environ["FREEAGENT_CLIENT_SECRET"] = "proxy-client-secret"
os.environ["FREEAGENT_TOKEN_URL"] = "https://provider.example/v2/token_endpoint"
os.environ["FREEAGENT_API_BASE_URL"] = "https://provider.example/v2"
os.environ.setdefault("PROXY_PROVIDER", "freeagent")


@pytest.fixture(autouse=True)
def _reset_rate_limit():
    from token_proxy.rate_limit import token_limiter

    token_limiter.reset()
    yield
    token_limiter.reset()
