"""
Token exchange endpoints (POST /api/<provider>/token and /api/<provider>/refresh).
The local app sends a code or refresh token; the proxy adds client_id + client_secret,
calls the provider's token endpoint and relays the JSON body back unchanged.
"""
import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from token_proxy import config
from token_proxy.rate_limit import token_limiter

logger = logging.getLogger(__name__)
router = APIRouter(prefix=f"/api/{config.PROVIDER}")


class CodeExchangeRequest(BaseModel):
    code: str | None = None
    redirect_uri: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


def client_ip(request: Request) -> str:
    if request.client is None:
        return "unknown"
    return request.client.host


def enforce_rate_limit(request: Request) -> None:
    """Dependency: per-IP limit on token routes; 429 with Retry-After when exceeded."""
    retry_after = token_limiter.acquire(client_ip(request), config.RATE_LIMIT_PER_MINUTE)
    if retry_after is not None:
        logger.warning("Rate limit exceeded for %s", client_ip(request))
        raise HTTPException(
            status_code=429,
            detail={"error": "Too many requests", "details": "Rate limit exceeded; try again later"},
            headers={"Retry-After": str(retry_after)},
        )


def _body(r: Any) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


def _upstream_token_request(form: dict[str, str], failure_label: str) -> JSONResponse:
    """POST one grant to the provider token endpoint with the confidential credentials."""
    if not config.is_configured():
        logger.error("%s: FREEAGENT_CLIENT_ID / FREEAGENT_CLIENT_SECRET are not set", failure_label)
        return JSONResponse(
            status_code=500,
            content={"error": "Proxy not configured", "details": "Client credentials are missing on the proxy"},
        )

    try:
        r = httpx.post(
            config.TOKEN_URL,
            data={
                **form,
                "client_id": config.CLIENT_ID,
                "client_secret": config.CLIENT_SECRET,
            },
            headers={"Accept": "application/json"},
            timeout=config.UPSTREAM_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.error("%s: provider unreachable (%s)", failure_label, type(e).__name__)
        return JSONResponse(status_code=502, content={"error": "Upstream unavailable", "details": str(e)})

    if not 200 <= r.status_code < 300:
        logger.warning("%s: provider answered %s", failure_label, r.status_code)
        return JSONResponse(status_code=r.status_code, content={"error": failure_label, "details": _body(r)})

    try:
        data = r.json()
    except ValueError:
        logger.error("%s: provider returned a non-JSON body", failure_label)
        return JSONResponse(
            status_code=502,
            content={"error": failure_label, "details": "Provider returned a non-JSON token response"},
        )
    return JSONResponse(status_code=200, content=data)


@router.post("/token", dependencies=[Depends(enforce_rate_limit)])
def exchange_code(body: CodeExchangeRequest):
    """authorization_code grant on behalf of the local app."""
    if not body.code or not body.redirect_uri:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required parameters", "details": "Both code and redirect_uri are required"},
        )
    response = _upstream_token_request(
        {"grant_type": "authorization_code", "code": body.code, "redirect_uri": body.redirect_uri},
        "Token exchange failed",
    )
    if response.status_code == 200:
        logger.info("Authorization code exchanged")
    return response


@router.post("/refresh", dependencies=[Depends(enforce_rate_limit)])
def refresh(body: RefreshRequest):
    """refresh_token grant on behalf of the local app."""
    if not body.refresh_token:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing refresh_token", "details": "refresh_token is required"},
        )
    response = _upstream_token_request(
        {"grant_type": "refresh_token", "refresh_token": body.refresh_token},
        "Token refresh failed",
    )
    if response.status_code == 200:
        logger.info("Access token refreshed")
    return response
