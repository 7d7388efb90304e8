import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import redis

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_key(artist: str, track: str) -> str:
    return f"{artist.lower()}_{track.lower()}"


@dataclass
class CacheEntry:
    key: str
    payload: Dict[str, Any]
    stored_at_ms: int


class TrackCreditsCache:
    """
    Spotify track-credit lookups keyed by lowercased ``artist_track``.

    Entries older than the TTL are ignored on read. Redis is used when a
    host is given and reachable, otherwise a bounded in-process dict.
    """

    def __init__(
        self,
        ttl_seconds: int = 86400,  # 24 hours
        max_entries: int = 5000,
        redis_host: Optional[str] = None,
        redis_port: int = 6379,
        redis_db: int = 0,
        prefix: str = "audiox:trackinfo:",
        clock: Callable[[], int] = _now_ms,
        redis_client=None,
    ):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self.prefix = prefix
        self.clock = clock
        self.redis_client = redis_client
        self.fallback_cache: Dict[str, CacheEntry] = {}

        if self.redis_client is None and redis_host:
            try:
                self.redis_client = redis.Redis(
                    host=redis_host,
                    port=redis_port,
                    db=redis_db,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                self.redis_client.ping()
                logger.info("Redis track cache connected (%s:%s)", redis_host, redis_port)
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning("Redis unavailable, using in-memory track cache: %s", e)
                self.redis_client = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client is not None else "in-memory"

    def _fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.stored_at_ms < self.ttl * 1000

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._load(key)
        if entry is None or not self._fresh(entry):
            return None
        return entry.payload

    def _load(self, key: str) -> Optional[CacheEntry]:
        if self.redis_client is not None:
            try:
                raw = self.redis_client.get(self.prefix + key)
            except redis.RedisError as e:
                logger.warning("Redis read failed for %s: %s", key, e)
                return self.fallback_cache.get(key)
            if not raw:
                return self.fallback_cache.get(key)
            try:
                data = json.loads(raw)
                return CacheEntry(key=key, payload=data["payload"], stored_at_ms=int(data["stored_at_ms"]))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Ignoring unreadable cache value for %s: %s", key, e)
                return self.fallback_cache.get(key)
        return self.fallback_cache.get(key)

    def set(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, stored_at_ms=self.clock())

        if self.redis_client is not None:
            try:
                body = json.dumps({"payload": payload, "stored_at_ms": entry.stored_at_ms})
                self.redis_client.setex(self.prefix + key, self.ttl, body)
                return entry
            except redis.RedisError as e:
                logger.warning("Redis write failed for %s, keeping entry in memory: %s", key, e)

        # Re-inserting moves an overwritten key to the newest position.
        self.fallback_cache.pop(key, None)
        while len(self.fallback_cache) >= self.max_entries:
            oldest = next(iter(self.fallback_cache))
            del self.fallback_cache[oldest]
        self.fallback_cache[key] = entry
        return entry

    def clear(self) -> int:
        count = len(self.fallback_cache)
        self.fallback_cache.clear()
        if self.redis_client is not None:
            try:
                keys = self.redis_client.keys(f"{self.prefix}*")
                if keys:
                    count += self.redis_client.delete(*keys)
            except redis.RedisError as e:
                logger.warning("Redis clear failed: %s", e)
        return count

    def stats(self) -> dict:
        if self.redis_client is not None:
            try:
                keys = self.redis_client.keys(f"{self.prefix}*")
                return {
                    "backend": "redis",
                    "cached_tracks": len(keys),
                    "ttl_seconds": self.ttl,
                }
            except redis.RedisError as e:
                logger.warning("Redis stats failed: %s", e)

        return {
            "backend": "in-memory",
            "cached_tracks": len(self.fallback_cache),
            "ttl_seconds": self.ttl,
            "max_size": self.max_entries,
        }

    # Redis calls block, so request handlers go through these to keep them off the event loop.

    async def _offload(self, func, *args):
        if self.redis_client is None:
            return func(*args)
        return await asyncio.to_thread(func, *args)

    async def aget(self, key: str) -> Optional[Dict[str, Any]]:
        return await self._offload(self.get, key)

    async def aset(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        return await self._offload(self.set, key, payload)

    async def astats(self) -> dict:
        return await self._offload(self.stats)
