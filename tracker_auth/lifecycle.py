"""
Owner of the current token record: the single answer to "is the user authenticated"
and "which access token do I use now".

States: unauthenticated (no record) -> valid (now < expires_at) -> expired.
A successful refresh replaces the record; a rejected refresh or logout removes it.
"""
import asyncio
import logging
import time
from collections.abc import Callable

from tracker_auth.errors import (
    NoRefreshToken,
    NotAuthenticated,
    ReauthenticationRequired,
    RefreshExchangeFailed,
)
from tracker_auth.exchange import TokenExchanger, TokenResponse
from tracker_auth.token_store import TokenRecord, TokenStore

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    def __init__(
        self,
        store: TokenStore,
        exchanger: TokenExchanger,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._exchanger = exchanger
        self._clock = clock
        self._record: TokenRecord | None = None
        self._refresh_task: asyncio.Task | None = None
        # Bumped on logout/clear so a refresh that finishes afterwards is discarded
        self._generation = 0

    async def complete_authorization(self, code: str, redirect_uri: str) -> TokenRecord:
        """Exchange an authorization code and make the result the current record."""
        generation = self._generation
        response = await self._exchanger.exchange_code(code, redirect_uri)
        if generation != self._generation:
            raise NotAuthenticated("Logged out while the authorization code was being exchanged")
        record = await self._adopt(response)
        await self._store.mark_connected()
        logger.info("Authorization complete; tokens stored (expires_at=%s)", int(record.expires_at))
        return record

    async def get_tokens(self) -> TokenRecord:
        """
        Return a usable record: the cached one if unexpired, else the persisted one,
        refreshing first if that has expired too.
        """
        while True:
            cached = self._record
            if cached is not None and not cached.is_expired(self._clock()):
                return cached
            if self._refresh_task is not None:
                return await asyncio.shield(self._refresh_task)

            generation = self._generation
            record = await self._store.load()
            # A refresh or logout that landed during the load owns the record now
            if (
                self._record is cached
                and self._generation == generation
                and self._refresh_task is None
            ):
                break

        if record is None:
            self._record = None
            raise NotAuthenticated("No stored tokens; authenticate first")
        self._record = record
        if record.is_expired(self._clock()):
            logger.info("Access token expired; refreshing")
            return await self.refresh(stale=record)
        return record

    async def refresh(self, stale: TokenRecord | None = None) -> TokenRecord:
        """
        Mint a new record from the refresh token. Concurrent callers share one
        in-flight exchange. When stale is given and the current record has already
        been replaced by an unexpired one, that record is returned without a call.
        """
        current = self._record
        if (
            stale is not None
            and current is not None
            and current.access_token != stale.access_token
            and not current.is_expired(self._clock())
        ):
            return current

        if self._refresh_task is None:
            task = asyncio.ensure_future(self._run_refresh())
            task.add_done_callback(self._refresh_finished)
            self._refresh_task = task
        # Shield: one caller being cancelled must not cancel the exchange the others await
        return await asyncio.shield(self._refresh_task)

    def _refresh_finished(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark the exception retrieved; awaiting callers still receive it
            task.exception()

    async def _run_refresh(self) -> TokenRecord:
        record = self._record
        if record is None:
            record = await self._store.load()
        if record is None or not record.refresh_token:
            raise NoRefreshToken("refresh() called without a stored refresh token")

        generation = self._generation
        try:
            response = await self._exchanger.exchange_refresh_token(record.refresh_token)
        except RefreshExchangeFailed as e:
            if not e.rejected:
                raise
            logger.warning("Refresh failed (HTTP %s); clearing stored tokens", e.status_code)
            if generation == self._generation:
                await self._clear()
            raise ReauthenticationRequired("Token refresh failed; reconnect required") from e

        if generation != self._generation:
            raise NotAuthenticated("Logged out while tokens were being refreshed")
        new_record = await self._adopt(response)
        logger.info("Tokens refreshed (expires_at=%s)", int(new_record.expires_at))
        return new_record

    async def _adopt(self, response: TokenResponse) -> TokenRecord:
        record = TokenRecord.from_response(response, issued_at=self._clock())
        # Persist before the record becomes visible to get_tokens()
        await self._store.save(record)
        self._record = record
        return record

    async def _clear(self) -> None:
        self._generation += 1
        self._record = None
        await self._store.clear()

    async def logout(self) -> None:
        await self._clear()
        logger.info("Logged out; stored tokens cleared")

    async def is_connected(self) -> bool:
        return await self._store.is_connected()
