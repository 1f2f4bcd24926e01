"""Marketplace client adapters and the type -> adapter registry."""

import httpx

from marketplace_sync.config import Settings
from marketplace_sync.infrastructure.redis import CacheService
from marketplace_sync.services.adapters.amazon import AmazonAdapter
from marketplace_sync.services.adapters.base import (
    CredentialsNotConfiguredError,
    MarketplaceAdapter,
    MarketplaceAPIError,
    MarketplaceError,
    OrderFetchOptions,
    RawOrder,
    UnsupportedMarketplaceError,
)
from marketplace_sync.services.adapters.bigcommerce import BigCommerceAdapter


class AdapterRegistry:
    """Maps a channel type to the adapter that serves it."""

    def __init__(self, adapters: list[MarketplaceAdapter] | None = None):
        self._adapters: dict[str, MarketplaceAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: MarketplaceAdapter) -> None:
        self._adapters[adapter.marketplace_type] = adapter

    def get(self, marketplace_type: str) -> MarketplaceAdapter:
        try:
            return self._adapters[marketplace_type]
        except KeyError:
            raise UnsupportedMarketplaceError(
                f"No adapter registered for marketplace type '{marketplace_type}'"
            ) from None

    @property
    def types(self) -> list[str]:
        return sorted(self._adapters)


def build_default_registry(
    settings: Settings,
    http_client: httpx.AsyncClient,
    cache: CacheService | None = None,
) -> AdapterRegistry:
    """Registry with the built-in BigCommerce and Amazon adapters."""
    return AdapterRegistry(
        [
            BigCommerceAdapter(http_client, settings),
            AmazonAdapter(http_client, settings, cache=cache),
        ]
    )


__all__ = [
    "AdapterRegistry",
    "AmazonAdapter",
    "BigCommerceAdapter",
    "CredentialsNotConfiguredError",
    "MarketplaceAdapter",
    "MarketplaceAPIError",
    "MarketplaceError",
    "OrderFetchOptions",
    "RawOrder",
    "UnsupportedMarketplaceError",
    "build_default_registry",
]
