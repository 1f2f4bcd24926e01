"""Business logic services."""

from marketplace_sync.services.channel_registry import ChannelConfig, ChannelRegistry
from marketplace_sync.services.normalizer import CanonicalOrder, normalize_order
from marketplace_sync.services.reconciliation import ReconciliationEngine
from marketplace_sync.services.scheduler import MarketplaceSyncScheduler

__all__ = [
    "CanonicalOrder",
    "ChannelConfig",
    "ChannelRegistry",
    "MarketplaceSyncScheduler",
    "ReconciliationEngine",
    "normalize_order",
]
