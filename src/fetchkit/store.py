"""Key-value stores backing the response cache."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from psycopg_pool import ConnectionPool

from .config import EngineSettings

logger = logging.getLogger("fetchkit.store")


class KeyValueStore:
    """Flat string key space with asynchronous access."""

    async def get(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - optional override
        return None


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class FileStore(KeyValueStore):
    """Persists every key in a single JSON object on local disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)

    def _get_sync(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def _set_sync(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read()
            items[key] = value
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self._path)


class PostgresStore(KeyValueStore):
    TABLE = "fetchkit_cache"

    def __init__(self, dsn: str) -> None:
        self._pool = ConnectionPool(conninfo=dsn, kwargs={"autocommit": True}, open=False)
        self._ready = False

    def _open(self) -> None:
        if self._pool.closed:
            self._pool.open()
        if self._ready:
            return
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"CREATE TABLE IF NOT EXISTS {self.TABLE} ("
                    "key TEXT PRIMARY KEY, "
                    "value TEXT NOT NULL, "
                    "updated_at TIMESTAMPTZ NOT NULL DEFAULT now())"
                )
        self._ready = True
        logger.info("Postgres cache table %s ready", self.TABLE)

    def _get_sync(self, key: str) -> Optional[str]:
        self._open()
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT value FROM {self.TABLE} WHERE key = %s", (key,))
                row = cur.fetchone()
        return row[0] if row else None

    def _set_sync(self, key: str, value: str) -> None:
        self._open()
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self.TABLE} (key, value, updated_at)
                    VALUES (%s, %s, now())
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()
                    """,
                    (key, value),
                )

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def close(self) -> None:
        await asyncio.to_thread(self._pool.close)


_default_store = MemoryStore()


def get_default_store() -> MemoryStore:
    """Process-wide store shared by engines that are not given one."""
    return _default_store


def build_store(settings: EngineSettings) -> KeyValueStore:
    if settings.store_backend == "file":
        return FileStore(settings.store_path)  # type: ignore[arg-type]
    if settings.store_backend == "postgres":
        return PostgresStore(settings.postgres_dsn)  # type: ignore[arg-type]
    return get_default_store()


__all__ = [
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "PostgresStore",
    "build_store",
    "get_default_store",
]
