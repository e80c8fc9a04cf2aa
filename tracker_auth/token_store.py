"""
Token record and its persistence adapter.
The record is saved as one value (access_token, refresh_token, expires_at) so it is
either wholly present or wholly absent; the connection flag lives next to it.
"""
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any

from tracker_auth.config import STORAGE_NAMESPACE
from tracker_auth.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    refresh_token: str
    # Absolute wall-clock expiry (epoch seconds), fixed when the token response arrived
    expires_at: float

    @classmethod
    def from_response(cls, response: Any, issued_at: float | None = None) -> "TokenRecord":
        """Build a record from a token response; the only place expires_at is derived."""
        if issued_at is None:
            issued_at = time.time()
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=issued_at + response.expires_in,
        )

    def is_expired(self, now: float | None = None) -> bool:
        if now is None:
            now = time.time()
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "TokenRecord | None":
        """Parse a persisted value; anything partial or mistyped yields None."""
        if not isinstance(data, dict):
            return None
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_at = data.get("expires_at")
        if not isinstance(access_token, str) or not access_token:
            return None
        if not isinstance(refresh_token, str) or not refresh_token:
            return None
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return None
        return cls(access_token=access_token, refresh_token=refresh_token, expires_at=float(expires_at))


class TokenStore:
    """Reads and writes the token record and connection flag under one namespace."""

    def __init__(self, kv: KeyValueStore, namespace: str = STORAGE_NAMESPACE):
        self._kv = kv
        self.tokens_key = f"{namespace}.tokens"
        self.connected_key = f"{namespace}.connected"

    async def load(self) -> TokenRecord | None:
        data = await self._kv.get(self.tokens_key)
        if data is None:
            return None
        record = TokenRecord.from_dict(data)
        if record is None:
            logger.warning("Discarding partial token record under %s", self.tokens_key)
            await self._kv.delete(self.tokens_key)
        return record

    async def save(self, record: TokenRecord) -> None:
        await self._kv.set(self.tokens_key, record.to_dict())

    async def mark_connected(self) -> None:
        await self._kv.set(self.connected_key, True)

    async def is_connected(self) -> bool:
        return bool(await self._kv.get(self.connected_key, False))

    async def clear(self) -> None:
        await self._kv.delete(self.tokens_key, self.connected_key)
