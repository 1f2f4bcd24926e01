"""Amazon Selling Partner API orders adapter."""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog

from marketplace_sync.config import Settings
from marketplace_sync.infrastructure.redis import CacheService
from marketplace_sync.services.adapters.base import (
    CredentialsNotConfiguredError,
    MarketplaceAdapter,
    MarketplaceAPIError,
    MarketplaceError,
    OrderFetchOptions,
    RawOrder,
    dedupe_orders,
)
from marketplace_sync.services.channel_registry import ChannelConfig
from shared.constants import AMAZON_MAX_RESULTS_PER_PAGE, AMAZON_TOKEN_URL

logger = structlog.get_logger()


@dataclass
class AmazonCredentials:
    """Resolved Selling Partner API credentials for one channel."""

    seller_id: str
    marketplace_id: str
    base_url: str
    refresh_token: str = ""
    client_id: str = ""
    client_secret: str = ""
    access_token: str = ""


def _pick(config: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = config.get(key)
        if value:
            return str(value)
    return ""


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AmazonAdapter(MarketplaceAdapter):
    """Fetches orders from the SP-API Orders v0 endpoints.

    Access tokens are exchanged from the channel's refresh token and kept per
    channel. Requests are spaced by ``amazon_min_request_interval_seconds``
    because the orders endpoints have a very low sustained rate limit.
    """

    marketplace_type = "amazon"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings,
        cache: CacheService | None = None,
    ):
        super().__init__(http_client)
        self.settings = settings
        self.cache = cache or CacheService(None)
        self._access_tokens: dict[int, str] = {}
        self._last_call = float("-inf")

    def _credentials(self, channel: ChannelConfig) -> AmazonCredentials:
        config = channel.api_config
        s = self.settings
        creds = AmazonCredentials(
            seller_id=_pick(config, "seller_id", "sellerId") or s.amazon_seller_id,
            marketplace_id=_pick(config, "marketplace_id", "marketplaceId")
            or s.amazon_marketplace_id,
            base_url=(_pick(config, "base_url", "baseUrl") or s.amazon_base_url).rstrip("/"),
            refresh_token=_pick(config, "refresh_token", "refreshToken") or s.amazon_refresh_token,
            client_id=_pick(config, "client_id", "clientId") or s.amazon_client_id,
            client_secret=_pick(config, "client_secret", "clientSecret")
            or s.amazon_client_secret,
            access_token=_pick(config, "access_token", "accessToken"),
        )
        if not creds.refresh_token and not creds.access_token:
            raise CredentialsNotConfiguredError(
                f"Amazon credentials not configured for channel {channel.id}"
            )
        return creds

    async def get_orders(
        self, channel: ChannelConfig, options: OrderFetchOptions | None = None
    ) -> list[RawOrder]:
        options = options or OrderFetchOptions()
        creds = self._credentials(channel)
        since = options.since or datetime.now(timezone.utc) - timedelta(
            days=self.settings.marketplace_sync_lookback_days
        )

        cache_key = (
            f"amazon:orders:{channel.id}:{creds.seller_id}:{creds.marketplace_id}:"
            f"{_format_timestamp(since)[:13]}"
        )
        cached = await self.cache.get_entry(cache_key)
        if cached and cached.age_seconds() < self.settings.amazon_orders_cache_ttl_seconds:
            logger.info("Using cached Amazon orders", channel_id=channel.id)
            return cached.value

        try:
            orders = await self._fetch_orders(channel, creds, since, options)
        except MarketplaceAPIError as e:
            if e.status_code == 429 and cached:
                logger.warning(
                    "Amazon API rate limited, using stale cached orders",
                    channel_id=channel.id,
                    cache_age_seconds=round(cached.age_seconds()),
                )
                return cached.value
            raise

        orders = dedupe_orders(orders, key="AmazonOrderId")
        enriched = [await self._with_items(channel, creds, order) for order in orders]

        await self.cache.set_entry(
            cache_key,
            enriched,
            retain_seconds=max(self.settings.amazon_orders_cache_ttl_seconds * 12, 3600),
        )
        logger.info("Collected Amazon orders", channel_id=channel.id, count=len(enriched))
        return enriched

    async def _fetch_orders(
        self,
        channel: ChannelConfig,
        creds: AmazonCredentials,
        since: datetime,
        options: OrderFetchOptions,
    ) -> list[RawOrder]:
        params: dict[str, Any] = {
            "MarketplaceIds": creds.marketplace_id,
            "LastUpdatedAfter": _format_timestamp(since),
            "MaxResultsPerPage": options.limit or AMAZON_MAX_RESULTS_PER_PAGE,
        }
        orders: list[RawOrder] = []
        page = 1
        while True:
            try:
                data = await self._call(channel, creds, "/orders/v0/orders", params)
            except MarketplaceError as e:
                if page == 1:
                    raise
                logger.error(
                    "Amazon orders page failed, keeping earlier pages",
                    channel_id=channel.id,
                    page=page,
                    error=str(e),
                )
                break

            payload = (data or {}).get("payload") or {}
            orders.extend(payload.get("Orders") or [])
            next_token = payload.get("NextToken")
            if not next_token:
                break
            params = {"MarketplaceIds": creds.marketplace_id, "NextToken": next_token}
            page += 1
        return orders

    async def _with_items(
        self, channel: ChannelConfig, creds: AmazonCredentials, order: RawOrder
    ) -> RawOrder:
        enriched = dict(order)
        order_id = order["AmazonOrderId"]
        try:
            data = await self._call(channel, creds, f"/orders/v0/orders/{order_id}/orderItems")
            enriched["OrderItems"] = ((data or {}).get("payload") or {}).get("OrderItems") or []
        except MarketplaceError as e:
            logger.warning("Failed to fetch Amazon order items", order_id=order_id, error=str(e))
        return enriched

    async def _call(
        self,
        channel: ChannelConfig,
        creds: AmazonCredentials,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET an SP-API path, refreshing the access token once on 401."""
        token = self._access_tokens.get(channel.id) or creds.access_token
        if not token:
            token = await self._refresh_access_token(channel, creds)

        try:
            return await self._get(creds, path, params, token)
        except MarketplaceAPIError as e:
            if e.status_code != 401:
                raise
            logger.info("Amazon access token rejected, refreshing", channel_id=channel.id)
        token = await self._refresh_access_token(channel, creds)
        return await self._get(creds, path, params, token)

    async def _get(
        self,
        creds: AmazonCredentials,
        path: str,
        params: dict[str, Any] | None,
        token: str,
    ) -> Any:
        await self._throttle()
        return await self._request_json(
            "GET",
            f"{creds.base_url}{path}",
            headers={"x-amz-access-token": token, "Accept": "application/json"},
            params=params,
        )

    async def _refresh_access_token(
        self, channel: ChannelConfig, creds: AmazonCredentials
    ) -> str:
        if not (creds.refresh_token and creds.client_id and creds.client_secret):
            raise CredentialsNotConfiguredError(
                f"Amazon refresh credentials not configured for channel {channel.id}"
            )
        data = await self._request_json(
            "POST",
            AMAZON_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": creds.refresh_token,
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
            },
        )
        token = (data or {}).get("access_token")
        if not token:
            raise MarketplaceAPIError("Amazon token response did not include an access token")
        self._access_tokens[channel.id] = token
        return token

    async def _throttle(self) -> None:
        interval = self.settings.amazon_min_request_interval_seconds
        wait = self._last_call + interval - time.monotonic()
        if wait > 0:
            logger.debug("Amazon API rate limiting", wait_seconds=round(wait, 2))
            await asyncio.sleep(wait)
        self._last_call = time.monotonic()
