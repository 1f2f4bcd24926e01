"""BigCommerce orders adapter (v2 Orders REST API)."""

import re

import httpx
import structlog

from marketplace_sync.config import Settings
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
from shared.constants import BIGCOMMERCE_ORDER_STATUSES, BIGCOMMERCE_PAGE_SIZE

logger = structlog.get_logger()

_STORE_HASH_IN_URL = re.compile(r"stores/([^/]+)")


def extract_store_hash(value: str) -> str:
    """Accept either a bare store hash or a full BigCommerce API URL."""
    if "bigcommerce.com" in value:
        match = _STORE_HASH_IN_URL.search(value)
        if match:
            return match.group(1)
    return value.strip()


class BigCommerceAdapter(MarketplaceAdapter):
    """Collects orders across every known BigCommerce order status.

    The orders endpoint filters on a single ``status_id`` per request, so one
    request stream is issued per status and the results are merged. A status
    that fails is skipped; the others still contribute.
    """

    marketplace_type = "bigcommerce"

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings):
        super().__init__(http_client)
        self.settings = settings
        self.statuses = BIGCOMMERCE_ORDER_STATUSES

    def _credentials(self, channel: ChannelConfig) -> tuple[str, str]:
        config = channel.api_config
        store_hash = extract_store_hash(
            config.get("store_hash") or self.settings.bigcommerce_store_hash
        )
        access_token = config.get("access_token") or self.settings.bigcommerce_access_token
        if not store_hash or not access_token:
            raise CredentialsNotConfiguredError(
                f"BigCommerce credentials not configured for channel {channel.id}"
            )
        return store_hash, access_token

    def _base_url(self, store_hash: str) -> str:
        return f"{self.settings.bigcommerce_api_base_url.rstrip('/')}/stores/{store_hash}/v2"

    async def get_orders(
        self, channel: ChannelConfig, options: OrderFetchOptions | None = None
    ) -> list[RawOrder]:
        options = options or OrderFetchOptions()
        store_hash, access_token = self._credentials(channel)
        base_url = self._base_url(store_hash)
        headers = {"X-Auth-Token": access_token, "Accept": "application/json"}

        collected: list[RawOrder] = []
        failed_statuses = 0
        for status_id, status_name in self.statuses:
            try:
                status_orders = await self._fetch_status(
                    base_url, headers, status_id, options
                )
            except MarketplaceError as e:
                failed_statuses += 1
                logger.error(
                    "Failed to fetch BigCommerce orders for status",
                    channel_id=channel.id,
                    status_id=status_id,
                    status=status_name,
                    error=str(e),
                )
                continue

            logger.debug(
                "Fetched BigCommerce orders for status",
                channel_id=channel.id,
                status=status_name,
                count=len(status_orders),
            )
            collected.extend(status_orders)

        if self.statuses and failed_statuses == len(self.statuses):
            raise MarketplaceAPIError(
                f"All BigCommerce order status requests failed for channel {channel.id}"
            )

        orders = dedupe_orders(collected, key="id")
        logger.info(
            "Collected BigCommerce orders",
            channel_id=channel.id,
            fetched=len(collected),
            unique=len(orders),
            failed_statuses=failed_statuses,
        )

        return [await self._enrich(base_url, headers, order) for order in orders]

    async def _fetch_status(
        self,
        base_url: str,
        headers: dict[str, str],
        status_id: int,
        options: OrderFetchOptions,
    ) -> list[RawOrder]:
        page_size = options.limit or BIGCOMMERCE_PAGE_SIZE
        params: dict[str, str | int] = {
            "status_id": status_id,
            "limit": page_size,
            "sort": "date_created:desc",
        }
        if options.since is not None:
            params["min_date_modified"] = options.since.isoformat()

        orders: list[RawOrder] = []
        for page in range(1, self.settings.bigcommerce_max_pages_per_status + 1):
            data = await self._request_json(
                "GET", f"{base_url}/orders", headers=headers, params={**params, "page": page}
            )
            if not data:
                break
            if not isinstance(data, list):
                raise MarketplaceAPIError("Unexpected response structure from BigCommerce API")
            orders.extend(data)
            if len(data) < page_size:
                break
        return orders

    async def _enrich(
        self, base_url: str, headers: dict[str, str], order: RawOrder
    ) -> RawOrder:
        """Attach line items and shipping addresses to an order."""
        enriched = dict(order)
        order_id = order["id"]
        try:
            enriched["products"] = (
                await self._request_json(
                    "GET",
                    f"{base_url}/orders/{order_id}/products",
                    headers=headers,
                    params={"limit": BIGCOMMERCE_PAGE_SIZE},
                )
                or []
            )
        except MarketplaceError as e:
            logger.warning(
                "Failed to fetch BigCommerce order products", order_id=order_id, error=str(e)
            )
        try:
            enriched["shipping_addresses"] = (
                await self._request_json(
                    "GET", f"{base_url}/orders/{order_id}/shipping_addresses", headers=headers
                )
                or []
            )
        except MarketplaceError as e:
            logger.warning(
                "Failed to fetch BigCommerce shipping addresses", order_id=order_id, error=str(e)
            )
        return enriched
