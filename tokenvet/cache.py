import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as aioredis


def cache_key(operation: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Stable key for (operation, params), identical across processes."""
    canonical = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"tokenvet:{operation}:{digest}"


class MemoryCache:
    """In-process TTL cache shared by concurrent fetches within a cycle."""

    def __init__(self) -> None:
        # key -> (value, expires_at)
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            value, expires_at = hit
            if time.time() >= expires_at:
                self._entries.pop(key, None)
                return None
            return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = (value, time.time() + max(0, ttl_seconds))

    async def clear_expired(self) -> None:
        now = time.time()
        async with self._lock:
            for key, (_, expires_at) in list(self._entries.items()):
                if now >= expires_at:
                    self._entries.pop(key, None)

    async def close(self) -> None:
        return None


class RedisCache:
    """SETEX-backed JSON cache. Any Redis failure reads as a miss."""

    def __init__(self, redis_url: str) -> None:
        self._redis = aioredis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._redis.get(key)
        except Exception as e:
            logging.debug(f"Redis cache get failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, max(1, int(ttl_seconds)), json.dumps(value, default=str))
        except Exception as e:
            logging.debug(f"Redis cache set failed: {e}")

    async def clear_expired(self) -> None:
        # SETEX entries expire server-side
        return None

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except Exception:
            pass


def make_cache(redis_url: Optional[str]):
    if redis_url:
        return RedisCache(redis_url)
    return MemoryCache()
