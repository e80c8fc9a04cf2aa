"""
Optional pass-through: /api/<provider>/proxy/<path> forwards a bearer-authenticated
call to the accounting API and relays status and body. No credentials are added here;
the caller's own access token is forwarded as-is.
"""
import logging

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from token_proxy import config

logger = logging.getLogger(__name__)
router = APIRouter(prefix=f"/api/{config.PROVIDER}")

_client: httpx.AsyncClient | None = None


def get_upstream_client() -> httpx.AsyncClient:
    """Dependency: shared client for accounting API calls."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT)
    return _client


async def close_upstream_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _bearer_token(request: Request) -> str | None:
    value = request.headers.get("Authorization", "")
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.api_route("/proxy/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def passthrough(
    path: str,
    request: Request,
    http: httpx.AsyncClient = Depends(get_upstream_client),
):
    access_token = _bearer_token(request)
    if access_token is None:
        return JSONResponse(status_code=401, content={"error": "No access token provided"})

    body = await request.body()
    try:
        r = await http.request(
            request.method,
            f"{config.API_BASE_URL}/{path}",
            params=request.query_params,
            content=body or None,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )
    except httpx.HTTPError as e:
        logger.error("Proxy request %s /%s failed (%s)", request.method, path, type(e).__name__)
        return JSONResponse(status_code=502, content={"error": "Proxy request failed", "details": str(e)})

    return Response(
        content=r.content,
        status_code=r.status_code,
        media_type=r.headers.get("content-type", "application/json"),
    )
