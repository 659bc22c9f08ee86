"""Time-bounded response cache on top of a key-value store.

Each cache key owns two store entries: the key itself holds the JSON encoded
payload and ``<key>_time`` holds the decimal millisecond timestamp of the write.
Entries are never deleted; they simply stop being served once older than the
caller's expiration window.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

from .errors import CacheReadFailure, CacheWriteFailure, describe
from .models import CacheEntry
from .store import KeyValueStore

logger = logging.getLogger("fetchkit.cache")


def now_ms() -> int:
    return int(time.time() * 1000)


def timestamp_key(cache_key: str) -> str:
    return f"{cache_key}_time"


class ResponseCache:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def load(self, cache_key: str) -> Optional[CacheEntry]:
        """Return the stored entry regardless of age, or None when absent."""
        try:
            raw_value = await self._store.get(cache_key)
            raw_time = await self._store.get(timestamp_key(cache_key))
        except Exception as exc:
            raise CacheReadFailure(describe(exc)) from exc

        if not raw_value or not raw_time:
            return None
        try:
            stored_at = int(raw_time.strip())
        except ValueError:
            logger.debug("Ignoring unreadable timestamp for %s: %r", cache_key, raw_time)
            return None
        try:
            value = json.loads(raw_value)
        except ValueError as exc:
            raise CacheReadFailure(f"Cached value for {cache_key} is not valid JSON: {exc}") from exc
        return CacheEntry(value=value, stored_at_ms=max(stored_at, 0))

    async def lookup(self, cache_key: str, expiration_ms: int, current_ms: int) -> Optional[CacheEntry]:
        entry = await self.load(cache_key)
        if entry is None:
            return None
        if not entry.is_fresh(current_ms, expiration_ms):
            logger.debug(
                "Cache entry %s expired (age=%sms, expiration=%sms)",
                cache_key,
                entry.age_ms(current_ms),
                expiration_ms,
            )
            return None
        return entry

    async def write(self, cache_key: str, value: Any, stored_at_ms: int) -> CacheEntry:
        try:
            payload = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise CacheWriteFailure(describe(exc)) from exc
        try:
            await self._store.set(cache_key, payload)
            await self._store.set(timestamp_key(cache_key), str(stored_at_ms))
        except Exception as exc:
            raise CacheWriteFailure(describe(exc)) from exc
        return CacheEntry(value=value, stored_at_ms=stored_at_ms)


__all__ = ["ResponseCache", "now_ms", "timestamp_key"]
