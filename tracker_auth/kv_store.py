"""
Key/value persistence the auth layer is given by its host.
The extension host backs this with its own storage; the desktop shell uses SqlKeyValueStore.
"""
import asyncio
import json
import logging
from typing import Any, Protocol

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import sessionmaker

from tracker_auth.database import init_db, make_engine
from tracker_auth.models import StoredValue

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, *keys: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store. Values are copied through JSON so callers never share mutable state."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqlKeyValueStore:
    """
    One row per key in the stored_values table. Each set/delete commits its own
    transaction, so a value is never observed half-written. Blocking database work
    runs in a worker thread.
    """

    def __init__(self, engine: Engine | None = None):
        self._engine = engine if engine is not None else make_engine()
        self._sessions: sessionmaker = init_db(self._engine)

    async def get(self, key: str, default: Any = None) -> Any:
        return await asyncio.to_thread(self._get, key, default)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await asyncio.to_thread(self._delete, keys)

    def _get(self, key: str, default: Any) -> Any:
        with self._sessions() as db:
            row = db.execute(select(StoredValue).where(StoredValue.key == key)).scalar_one_or_none()
            if row is None:
                return default
            try:
                return json.loads(row.value)
            except ValueError:
                logger.warning("Discarding undecodable stored value for key=%s", key)
                return default

    def _set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._sessions() as db:
            row = db.get(StoredValue, key)
            if row is None:
                db.add(StoredValue(key=key, value=encoded))
            else:
                row.value = encoded
            db.commit()

    def _delete(self, keys: tuple[str, ...]) -> None:
        with self._sessions() as db:
            db.execute(delete(StoredValue).where(StoredValue.key.in_(keys)))
            db.commit()

    def dispose(self) -> None:
        self._engine.dispose()
