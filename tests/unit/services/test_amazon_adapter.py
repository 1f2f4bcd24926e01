"""Unit tests for the Amazon SP-API orders adapter."""

from datetime import datetime, timezone

import httpx
import pytest

from marketplace_sync.config import Settings
from marketplace_sync.infrastructure.redis import CacheService
from marketplace_sync.services.adapters import (
    AmazonAdapter,
    CredentialsNotConfiguredError,
    MarketplaceAPIError,
    OrderFetchOptions,
)
from marketplace_sync.services.channel_registry import ChannelConfig

SINCE = datetime(2024, 3, 1, tzinfo=timezone.utc)


class InMemoryRedis:
    """Just enough of the redis.asyncio client for CacheService."""

    def __init__(self):
        self.store: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self.store.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self.store[key] = value

    async def ping(self) -> bool:
        return True


class FakeSellingPartner:
    """Serves the LWA token endpoint and the Orders v0 endpoints."""

    def __init__(self, order_pages: list, rejected_tokens: set[str] | None = None):
        self.order_pages = order_pages
        self.rejected_tokens = rejected_tokens or set()
        self.token_requests = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "api.amazon.com":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": f"fresh-{self.token_requests}"})

        if request.headers.get("x-amz-access-token") in self.rejected_tokens:
            return httpx.Response(401, json={"errors": [{"code": "Unauthorized"}]})

        path = request.url.path
        if path.endswith("/orderItems"):
            order_id = path.split("/")[-2]
            return httpx.Response(
                200,
                json={"payload": {"AmazonOrderId": order_id, "OrderItems": [{"OrderItemId": f"{order_id}-1"}]}},
            )

        page = len(self.order_requests())
        response = self.order_pages[page - 1]
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json={"payload": response})

    def order_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/orders/v0/orders"]


@pytest.fixture
def channel() -> ChannelConfig:
    return ChannelConfig(
        id=3,
        type="amazon",
        name="Amazon US",
        api_config={
            "sellerId": "A1SELLER",
            "refreshToken": "Atzr|refresh",
            "clientId": "amzn1.client",
            "clientSecret": "secret",
        },
    )


def make_adapter(
    settings: Settings, fake: FakeSellingPartner, cache: CacheService | None = None
) -> AmazonAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    return AmazonAdapter(client, settings, cache=cache)


class TestAmazonAdapter:
    """Token handling, pagination and caching."""

    @pytest.mark.asyncio
    async def test_follows_next_token_and_attaches_items(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(
            order_pages=[
                {"Orders": [{"AmazonOrderId": "111-1"}], "NextToken": "page-2"},
                {"Orders": [{"AmazonOrderId": "111-2"}, {"AmazonOrderId": "111-1"}]},
            ]
        )
        adapter = make_adapter(test_settings, fake)

        orders = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert [o["AmazonOrderId"] for o in orders] == ["111-1", "111-2"]
        assert orders[0]["OrderItems"] == [{"OrderItemId": "111-1-1"}]

        first, second = fake.order_requests()
        assert first.url.params["LastUpdatedAfter"] == "2024-03-01T00:00:00Z"
        assert first.url.params["MarketplaceIds"] == "ATVPDKIKX0DER"
        assert second.url.params["NextToken"] == "page-2"
        assert "LastUpdatedAfter" not in second.url.params

    @pytest.mark.asyncio
    async def test_exchanges_refresh_token_once(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(order_pages=[{"Orders": [{"AmazonOrderId": "111-1"}]}])
        adapter = make_adapter(test_settings, fake)

        await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert fake.token_requests == 1
        assert all(
            r.headers["x-amz-access-token"] == "fresh-1"
            for r in fake.requests
            if r.url.host != "api.amazon.com"
        )

    @pytest.mark.asyncio
    async def test_refreshes_token_after_unauthorized(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        stale = channel.model_copy(
            update={"api_config": {**channel.api_config, "accessToken": "expired"}}
        )
        fake = FakeSellingPartner(
            order_pages=[httpx.Response(401), {"Orders": []}],
            rejected_tokens={"expired"},
        )
        adapter = make_adapter(test_settings, fake)

        orders = await adapter.get_orders(stale, OrderFetchOptions(since=SINCE))

        assert orders == []
        assert fake.token_requests == 1

    @pytest.mark.asyncio
    async def test_later_page_failure_keeps_earlier_pages(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(
            order_pages=[
                {"Orders": [{"AmazonOrderId": "111-1"}], "NextToken": "page-2"},
                httpx.Response(503),
            ]
        )
        adapter = make_adapter(test_settings, fake)

        orders = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert [o["AmazonOrderId"] for o in orders] == ["111-1"]

    @pytest.mark.asyncio
    async def test_non_json_later_page_keeps_earlier_pages(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(
            order_pages=[
                {"Orders": [{"AmazonOrderId": "111-1"}], "NextToken": "page-2"},
                httpx.Response(200, text="<html>gateway</html>"),
            ]
        )
        adapter = make_adapter(test_settings, fake)

        orders = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert [o["AmazonOrderId"] for o in orders] == ["111-1"]

    @pytest.mark.asyncio
    async def test_serves_fresh_cache_without_requests(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(order_pages=[{"Orders": [{"AmazonOrderId": "111-1"}]}])
        adapter = make_adapter(test_settings, fake, cache=CacheService(InMemoryRedis()))

        first = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))
        request_count = len(fake.requests)
        second = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert second == first
        assert len(fake.requests) == request_count

    @pytest.mark.asyncio
    async def test_serves_stale_cache_when_throttled(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        settings = test_settings.model_copy(update={"amazon_orders_cache_ttl_seconds": 0})
        fake = FakeSellingPartner(
            order_pages=[
                {"Orders": [{"AmazonOrderId": "111-1"}]},
                httpx.Response(429, json={"errors": [{"code": "QuotaExceeded"}]}),
            ]
        )
        adapter = make_adapter(settings, fake, cache=CacheService(InMemoryRedis()))

        first = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))
        second = await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))

        assert len(fake.order_requests()) == 2
        assert second == first

    @pytest.mark.asyncio
    async def test_throttled_without_cache_raises(
        self, test_settings: Settings, channel: ChannelConfig
    ) -> None:
        fake = FakeSellingPartner(order_pages=[httpx.Response(429)])
        adapter = make_adapter(test_settings, fake)

        with pytest.raises(MarketplaceAPIError) as exc_info:
            await adapter.get_orders(channel, OrderFetchOptions(since=SINCE))
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_settings: Settings) -> None:
        adapter = make_adapter(test_settings, FakeSellingPartner(order_pages=[]))
        channel = ChannelConfig(id=4, type="amazon", name="Unconfigured")

        with pytest.raises(CredentialsNotConfiguredError):
            await adapter.get_orders(channel)
