"""
Response Cache - short-lived caching of ML service responses.

Redis-backed when a URL is configured, in-memory otherwise. Request
payloads are hashed into keys (SHA-256), so no free text ends up in key
names. TTLs for PHI-bearing responses are capped.
"""

import fnmatch
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from service_clients.constants import PHI_CACHE_MAX_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class CacheConfig:
    """Cache configuration."""

    redis_url: Optional[str] = None
    default_ttl_seconds: int = 300  # 5 minutes
    max_phi_ttl_seconds: int = PHI_CACHE_MAX_TTL_SECONDS
    prefix: str = "mlclients:"


def make_cache_key(namespace: str, payload: Any) -> str:
    """Stable digest key for a request payload."""
    serialized = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class ResponseCache:
    """
    Async TTL cache.

    Usage:
        cache = ResponseCache(CacheConfig(redis_url="redis://localhost:6379/0"))
        await cache.set(key, {"a": 1}, ttl=60, contains_phi=True)
        value = await cache.get(key)
    """

    def __init__(self, config: Optional[CacheConfig] = None, client: Optional[aioredis.Redis] = None):
        self.config = config or CacheConfig()
        self._client = client
        if self._client is None and self.config.redis_url:
            self._client = aioredis.Redis.from_url(self.config.redis_url, decode_responses=True, socket_timeout=5)
        self._fallback: dict[str, tuple[Any, float]] = {}  # In-memory fallback

    @property
    def uses_redis(self) -> bool:
        return self._client is not None

    def _make_key(self, key: str) -> str:
        return f"{self.config.prefix}{key}"

    def effective_ttl(self, ttl: Optional[int], contains_phi: bool) -> int:
        ttl = ttl if ttl is not None else self.config.default_ttl_seconds
        if contains_phi:
            ttl = min(ttl, self.config.max_phi_ttl_seconds)
        return max(0, ttl)

    async def get(self, key: str) -> Optional[Any]:
        """Cached value or None."""
        cache_key = self._make_key(key)

        if self._client is not None:
            try:
                value = await self._client.get(cache_key)
                if value:
                    return json.loads(value)
            except (RedisError, OSError) as e:
                logger.debug("Cache get error: %s", type(e).__name__)

        entry = self._fallback.get(cache_key)
        if entry is not None:
            value, expires = entry
            if time.monotonic() < expires:
                return value
            del self._fallback[cache_key]
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, contains_phi: bool = True) -> bool:
        """
        Store a JSON-serializable value.

        Returns:
            False when the value cannot be serialized or the TTL is zero
        """
        ttl = self.effective_ttl(ttl, contains_phi)
        if ttl == 0:
            return False

        cache_key = self._make_key(key)
        try:
            serialized = json.dumps(value)
        except TypeError:
            logger.warning("Value not JSON serializable for cache key %s", key)
            return False

        if self._client is not None:
            try:
                await self._client.setex(cache_key, ttl, serialized)
                return True
            except (RedisError, OSError) as e:
                logger.debug("Cache set error: %s", type(e).__name__)

        self._fallback[cache_key] = (value, time.monotonic() + ttl)
        return True

    async def delete(self, key: str) -> None:
        cache_key = self._make_key(key)
        if self._client is not None:
            try:
                await self._client.delete(cache_key)
            except (RedisError, OSError) as e:
                logger.debug("Cache delete error: %s", type(e).__name__)
        self._fallback.pop(cache_key, None)

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys matching a glob pattern (e.g. "recommend:*").

        Returns:
            Number of keys deleted
        """
        full_pattern = self._make_key(pattern)
        count = 0

        if self._client is not None:
            try:
                keys = [k async for k in self._client.scan_iter(match=full_pattern)]
                if keys:
                    count = await self._client.delete(*keys)
            except (RedisError, OSError) as e:
                logger.debug("Cache invalidate error: %s", type(e).__name__)

        matched = [k for k in self._fallback if fnmatch.fnmatchcase(k, full_pattern)]
        for key in matched:
            del self._fallback[key]
        return max(count, len(matched))

    async def clear(self) -> None:
        await self.invalidate_pattern("*")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
