"""
Token proxy: the trusted intermediary between the time tracker and the accounting
provider. Holds the confidential client secret so the extension/desktop app never does.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from token_proxy import config
from token_proxy.api_proxy import close_upstream_client
from token_proxy.api_proxy import router as api_proxy_router
from token_proxy.token_routes import router as token_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warn about missing credentials on startup; close the upstream client on shutdown."""
    if not config.is_configured():
        logger.warning("FREEAGENT_CLIENT_ID and FREEAGENT_CLIENT_SECRET must be set for token exchange")
    yield
    await close_upstream_client()


app = FastAPI(title="Token Proxy", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=config.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(token_router, tags=["token"])
app.include_router(api_proxy_router, tags=["proxy"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "token_proxy", "configured": config.is_configured()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "token_proxy.main:app",
        host="127.0.0.1",
        port=config.PORT,
        reload=True,
    )
