"""Common interface for marketplace client adapters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import structlog

from marketplace_sync.services.channel_registry import ChannelConfig

logger = structlog.get_logger()

RawOrder = dict[str, Any]


# =============================================================================
# Errors
# =============================================================================


class MarketplaceError(Exception):
    """Base class for marketplace integration errors."""


class CredentialsNotConfiguredError(MarketplaceError):
    """Raised when a channel has no usable API credentials."""


class UnsupportedMarketplaceError(MarketplaceError):
    """Raised when no adapter or normalizer exists for a channel type."""


class MarketplaceAPIError(MarketplaceError):
    """Raised on a failed request to a marketplace API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# Adapter interface
# =============================================================================


@dataclass(frozen=True)
class OrderFetchOptions:
    """Filters applied when fetching orders from a marketplace."""

    since: datetime | None = None
    limit: int | None = None


class MarketplaceAdapter(ABC):
    """Fetches raw orders for one marketplace type.

    Pagination, status partitioning and authentication stay inside the
    adapter; callers only see a flat, deduplicated list of raw orders.
    """

    marketplace_type: str

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @abstractmethod
    async def get_orders(
        self, channel: ChannelConfig, options: OrderFetchOptions | None = None
    ) -> list[RawOrder]:
        """Fetch raw orders for ``channel``."""

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Issue a request and decode its JSON body.

        Returns ``None`` for ``204 No Content``. Transport errors and non-2xx
        responses raise ``MarketplaceAPIError``.
        """
        try:
            response = await self.http_client.request(
                method, url, headers=headers, params=params, data=data
            )
        except httpx.RequestError as exc:
            raise MarketplaceAPIError(
                f"{self.marketplace_type} request error: {exc}"
            ) from exc

        if response.status_code == 204:
            return None
        if response.is_error:
            logger.warning(
                "Marketplace API error response",
                marketplace=self.marketplace_type,
                status=response.status_code,
                url=str(response.request.url),
                body=response.text[:500],
            )
            raise MarketplaceAPIError(
                f"{self.marketplace_type} API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "Marketplace API returned invalid JSON",
                marketplace=self.marketplace_type,
                status=response.status_code,
                url=str(response.request.url),
                body=response.text[:200],
            )
            raise MarketplaceAPIError(
                f"{self.marketplace_type} returned invalid JSON",
                status_code=response.status_code,
            ) from exc


def dedupe_orders(orders: list[RawOrder], key: str) -> list[RawOrder]:
    """Drop repeated orders by their native id, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[RawOrder] = []
    for order in orders:
        order_id = order.get(key)
        if order_id is None:
            continue
        marker = str(order_id)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(order)
    return unique
