"""Redis cache infrastructure with graceful degradation."""

import time
from dataclasses import dataclass
from typing import Any

import orjson
import redis.asyncio as aioredis
import structlog

from marketplace_sync.config import get_settings

logger = structlog.get_logger()

_redis_client: aioredis.Redis | None = None


async def get_redis_client() -> aioredis.Redis | None:
    """Get or create the global async Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        try:
            _redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning("Redis unavailable, caching disabled", error=str(e))
            _redis_client = None
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


@dataclass
class CachedEntry:
    """A cached value together with the time it was stored."""

    value: Any
    stored_at: float

    def age_seconds(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.stored_at


class CacheService:
    """Async Redis cache with orjson serialization. No-ops if Redis is unavailable."""

    def __init__(self, client: aioredis.Redis | None):
        self.client = client

    async def get(self, key: str) -> Any | None:
        if not self.client:
            return None
        try:
            data = await self.client.get(key)
            if data:
                return orjson.loads(data)
        except Exception as e:
            logger.warning("Cache get failed", key=key, error=str(e))
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        if not self.client:
            return
        try:
            await self.client.set(key, orjson.dumps(value), ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def get_entry(self, key: str) -> CachedEntry | None:
        """Get a value stored with ``set_entry``, including its age.

        Entries outlive their freshness window so callers can fall back to a
        stale copy when the upstream API is throttling.
        """
        envelope = await self.get(key)
        if not isinstance(envelope, dict) or "stored_at" not in envelope:
            return None
        return CachedEntry(value=envelope.get("value"), stored_at=envelope["stored_at"])

    async def set_entry(self, key: str, value: Any, retain_seconds: int = 3600) -> None:
        await self.set(
            key, {"value": value, "stored_at": time.time()}, ttl_seconds=retain_seconds
        )

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except Exception:
            return False
