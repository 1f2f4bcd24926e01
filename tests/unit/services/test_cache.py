"""Unit tests for Redis cache service."""

import pytest

from marketplace_sync.infrastructure.redis import CacheService


class TestCacheServiceGracefulDegradation:
    """CacheService should no-op safely when Redis is unavailable."""

    @pytest.fixture
    def cache(self) -> CacheService:
        return CacheService(None)

    @pytest.mark.asyncio
    async def test_get_returns_none(self, cache: CacheService) -> None:
        assert await cache.get("any-key") is None

    @pytest.mark.asyncio
    async def test_set_is_noop(self, cache: CacheService) -> None:
        await cache.set("key", {"data": "value"})  # should not raise

    @pytest.mark.asyncio
    async def test_health_check_returns_false(self, cache: CacheService) -> None:
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_get_entry_returns_none(self, cache: CacheService) -> None:
        await cache.set_entry("key", [1, 2])
        assert await cache.get_entry("key") is None


class DictRedis:
    """Minimal async stand-in for the redis client."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.expiry: dict[str, int | None] = {}

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self.data[key] = value
        self.expiry[key] = ex

    async def ping(self) -> bool:
        return True


class TestCacheServiceEntries:
    """Values stored with their write time for stale fallbacks."""

    @pytest.fixture
    def redis(self) -> DictRedis:
        return DictRedis()

    @pytest.fixture
    def cache(self, redis: DictRedis) -> CacheService:
        return CacheService(redis)

    @pytest.mark.asyncio
    async def test_round_trips_value_with_age(self, cache: CacheService, redis: DictRedis) -> None:
        await cache.set_entry("amazon:orders:1", [{"AmazonOrderId": "111-1"}], retain_seconds=900)

        entry = await cache.get_entry("amazon:orders:1")

        assert entry.value == [{"AmazonOrderId": "111-1"}]
        assert 0 <= entry.age_seconds() < 5
        assert redis.expiry["amazon:orders:1"] == 900

    @pytest.mark.asyncio
    async def test_age_is_measured_from_stored_at(self, cache: CacheService) -> None:
        await cache.set("old", {"value": "x", "stored_at": 1000.0})

        entry = await cache.get_entry("old")

        assert entry.age_seconds(now=1300.0) == 300.0

    @pytest.mark.asyncio
    async def test_plain_values_are_not_entries(self, cache: CacheService) -> None:
        await cache.set("plain", {"data": "value"})
        assert await cache.get_entry("plain") is None

    @pytest.mark.asyncio
    async def test_health_check(self, cache: CacheService) -> None:
        assert await cache.health_check() is True
