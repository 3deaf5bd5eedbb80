"""TTL cache with stale fallback. Local bounded map by default, Redis when REDIS_URL is set.

Note: Each uvicorn worker has its own local cache instance. With --workers 2,
data may be fetched twice (once per worker). Set REDIS_URL to share one cache
(and one rate-limit counter) across workers.

Expired entries are not dropped on read: they stay available through
``get_stale`` so routes can serve the last-known value when a provider is down.
The local map evicts least recently used keys beyond ``max_entries``.
Counters from ``incr`` live in their own bounded map, so request counting
never evicts cached data.

Both backends expose the same async interface.
"""

import json
import logging
import time
from collections import OrderedDict
from typing import Any, Callable

import redis.asyncio as redis

from config import settings

logger = logging.getLogger(__name__)


class TTLCache:
    def __init__(self, max_entries: int = 1024, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._counters: OrderedDict[str, tuple[float, int]] = OrderedDict()

    async def get(self, key: str) -> Any | None:
        if key in self._store:
            expires_at, value = self._store[key]
            if self._clock() < expires_at:
                self._store.move_to_end(key)
                return value
        return None

    async def get_stale(self, key: str) -> Any | None:
        entry = self._store.get(key)
        return entry[1] if entry else None

    async def set(self, key: str, value: Any, ttl_seconds: int = 60) -> None:
        self._store[key] = (self._clock() + ttl_seconds, value)
        self._store.move_to_end(key)
        while len(self._store) > self.max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.debug("Cache evicted %s", evicted)

    async def incr(self, key: str, ttl_seconds: int = 60) -> int:
        """Increment a counter that resets once ``ttl_seconds`` have passed since it started."""
        now = self._clock()
        entry = self._counters.get(key)
        if entry and now < entry[0]:
            count = entry[1] + 1
            self._counters[key] = (entry[0], count)
        else:
            count = 1
            self._counters[key] = (now + ttl_seconds, count)
        self._counters.move_to_end(key)
        self._prune_counters(now)
        return count

    def _prune_counters(self, now: float) -> None:
        if len(self._counters) <= self.max_entries:
            return
        for key in [k for k, (expires_at, _) in self._counters.items() if expires_at <= now]:
            del self._counters[key]
        while len(self._counters) > self.max_entries:
            self._counters.popitem(last=False)

    async def clear(self) -> None:
        self._store.clear()
        self._counters.clear()

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._store)

    @property
    def counter_count(self) -> int:
        return len(self._counters)


class RedisCache:
    """Same interface as TTLCache, backed by Redis. Values must be JSON-serializable."""

    def __init__(self, client: redis.Redis, stale_seconds: int = 86400, prefix: str = "painel:"):
        self._client = client
        self.stale_seconds = stale_seconds
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, stale_seconds: int = 86400) -> "RedisCache":
        return cls(redis.Redis.from_url(url, decode_responses=True), stale_seconds=stale_seconds)

    async def _load(self, key: str) -> dict | None:
        raw = await self._client.get(self.prefix + key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def get(self, key: str) -> Any | None:
        envelope = await self._load(key)
        if envelope and time.time() < envelope["expires_at"]:
            return envelope["value"]
        return None

    async def get_stale(self, key: str) -> Any | None:
        envelope = await self._load(key)
        return envelope["value"] if envelope else None

    async def set(self, key: str, value: Any, ttl_seconds: int = 60) -> None:
        envelope = {"expires_at": time.time() + ttl_seconds, "value": value}
        await self._client.set(self.prefix + key, json.dumps(envelope), ex=ttl_seconds + self.stale_seconds)

    async def incr(self, key: str, ttl_seconds: int = 60) -> int:
        full_key = self.prefix + key
        count = int(await self._client.incr(full_key))
        if count == 1:
            await self._client.expire(full_key, ttl_seconds)
        return count

    async def clear(self) -> None:
        async for key in self._client.scan_iter(match=self.prefix + "*"):
            await self._client.delete(key)

    async def ping(self) -> bool:
        return bool(await self._client.ping())


def build_cache() -> TTLCache | RedisCache:
    if settings.redis_url:
        logger.info("Using Redis cache backend")
        return RedisCache.from_url(settings.redis_url, stale_seconds=settings.cache_stale_seconds)
    return TTLCache(max_entries=settings.cache_max_entries)


cache = build_cache()
