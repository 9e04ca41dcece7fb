"""Ephemeral cache backends used for scan leases."""

import asyncio
import time
from typing import Optional

import redis.asyncio as redis

from originality.core.config import CacheSettings
from originality.core.exceptions import ConfigurationError
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


class InMemoryCache:
    """Process-local cache with per-key expiry.

    Only correct for a single process; multi-worker deployments need
    ``RedisCache``.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _expired(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return True
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return True
        return False

    def _deadline(self, ttl: Optional[float]) -> Optional[float]:
        return self._clock() + ttl if ttl is not None else None

    async def get(self, key: str) -> Optional[str]:
        if self._expired(key):
            return None
        return self._data[key][0]

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        self._data[key] = (value, self._deadline(ttl))

    async def expire(self, key: str, ttl: float) -> bool:
        if self._expired(key):
            return False
        value, _ = self._data[key]
        self._data[key] = (value, self._deadline(ttl))
        return True

    async def add(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        async with self._lock:
            if not self._expired(key):
                return False
            self._data[key] = (value, self._deadline(ttl))
            return True

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisCache:
    """Cache backed by Redis, shared across processes."""

    def __init__(self, client: redis.Redis, prefix: str = "originality:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "originality:") -> "RedisCache":
        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @staticmethod
    def _ms(ttl: Optional[float]) -> Optional[int]:
        return max(1, int(ttl * 1000)) if ttl is not None else None

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        await self.client.set(self._key(key), value, px=self._ms(ttl))

    async def expire(self, key: str, ttl: float) -> bool:
        return bool(await self.client.pexpire(self._key(key), self._ms(ttl)))

    async def add(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        return bool(await self.client.set(self._key(key), value, px=self._ms(ttl), nx=True))

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def close(self) -> None:
        await self.client.aclose()


def build_cache(cache_settings: CacheSettings):
    """Create the configured cache backend.

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    backend = cache_settings.backend.strip().lower()
    if backend == "memory":
        return InMemoryCache()
    if backend == "redis":
        LOGGER.info("Using Redis cache backend", extra={"redis_url": cache_settings.redis_url.split("@")[-1]})
        return RedisCache.from_url(cache_settings.redis_url)
    raise ConfigurationError(f"Unknown cache backend '{cache_settings.backend}'. Expected 'memory' or 'redis'")
