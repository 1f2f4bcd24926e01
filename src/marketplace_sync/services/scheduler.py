"""Periodic marketplace order synchronization.

One scheduler instance owns the periodic task, the single-flight guard and
the per-channel bookkeeping. Passes never overlap: a tick or manual trigger
that arrives while a pass is running is dropped, not queued.
"""

import asyncio
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace_sync.config import Settings
from marketplace_sync.infrastructure.redis import CacheService
from marketplace_sync.services.adapters import (
    AdapterRegistry,
    OrderFetchOptions,
    build_default_registry,
)
from marketplace_sync.services.channel_registry import ChannelConfig, ChannelRegistry
from marketplace_sync.services.normalizer import CanonicalOrder, normalize_order
from marketplace_sync.services.reconciliation import ReconciliationEngine

logger = structlog.get_logger()


@dataclass
class SyncRunResult:
    """Outcome of the last sync attempt for one channel."""

    success: bool
    orders_processed: int = 0
    orders_created: int = 0
    orders_updated: int = 0
    orders_failed: int = 0
    error: str | None = None
    finished_at: datetime | None = None


@dataclass
class SyncPassSummary:
    """Aggregate outcome of one full pass over the active channels."""

    channels_succeeded: int = 0
    channels_failed: int = 0
    orders_processed: int = 0
    duration_seconds: float = 0.0


@dataclass
class ManualSyncResult:
    success: bool
    message: str


class MarketplaceSyncScheduler:
    """Polls active marketplace channels and reconciles their orders."""

    def __init__(
        self,
        registry: ChannelRegistry,
        adapters: AdapterRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_minutes: int = 15,
        lookback_days: int = 30,
        initial_delay_seconds: float = 0.0,
    ):
        self.registry = registry
        self.adapters = adapters
        self.session_factory = session_factory
        self.interval_minutes = interval_minutes
        self.lookback_days = lookback_days
        self.initial_delay_seconds = initial_delay_seconds

        self.is_syncing = False
        self.last_sync_time: datetime | None = None
        self.channel_results: dict[int, SyncRunResult] = {}

        self._loop_task: asyncio.Task | None = None
        self._pass_tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic task. Must be called from a running event loop."""
        if self.is_running:
            logger.info("Marketplace sync scheduler already running")
            return

        self._loop_task = asyncio.get_running_loop().create_task(self._run_periodically())
        logger.info(
            "Started marketplace sync scheduler",
            interval_minutes=self.interval_minutes,
            initial_delay_seconds=self.initial_delay_seconds,
        )

    def stop(self) -> None:
        """Stop scheduling new passes. A pass already running is not cancelled."""
        if not self.is_running:
            logger.info("Marketplace sync scheduler is not running")
            return

        self._loop_task.cancel()
        self._loop_task = None
        logger.info("Stopped marketplace sync scheduler")

    async def shutdown(self) -> None:
        """Stop the scheduler and wait for in-flight passes to finish."""
        loop_task = self._loop_task
        if loop_task is not None:
            self.stop()
            await asyncio.gather(loop_task, return_exceptions=True)
        if self._pass_tasks:
            await asyncio.gather(*self._pass_tasks, return_exceptions=True)

    async def _run_periodically(self) -> None:
        if self.initial_delay_seconds:
            await asyncio.sleep(self.initial_delay_seconds)
        while True:
            # Each tick runs as its own task so the cadence does not drift
            # with pass duration; overlapping ticks hit the single-flight guard.
            task = asyncio.create_task(self.perform_sync())
            self._pass_tasks.add(task)
            task.add_done_callback(self._pass_tasks.discard)
            await asyncio.sleep(self.interval_minutes * 60)

    # -------------------------------------------------------------------------
    # Sync passes
    # -------------------------------------------------------------------------

    async def perform_sync(self) -> SyncPassSummary | None:
        """Run one pass over all active channels.

        Returns ``None`` when skipped because another pass is in progress or
        when the channel list could not be loaded.
        """
        if self.is_syncing:
            logger.info("Skipping marketplace sync, previous sync still in progress")
            return None

        self.is_syncing = True
        started = time.monotonic()
        try:
            try:
                channels = await self.registry.list_active_channels()
            except Exception as e:
                logger.error("Failed to load marketplace channels, aborting sync", error=str(e))
                return None

            summary = SyncPassSummary()
            if not channels:
                logger.warning("No active marketplace channels found for sync")
            else:
                logger.info("Starting marketplace order sync", channels=len(channels))

            for channel in channels:
                result = await self._sync_channel_safely(channel)
                if result.success:
                    summary.channels_succeeded += 1
                    summary.orders_processed += result.orders_processed
                else:
                    summary.channels_failed += 1

            summary.duration_seconds = round(time.monotonic() - started, 3)
            self.last_sync_time = datetime.now(timezone.utc)
            logger.info("Marketplace sync completed", **asdict(summary))
            return summary
        finally:
            self.is_syncing = False

    async def _sync_channel_safely(self, channel: ChannelConfig) -> SyncRunResult:
        """Sync one channel and record its result; never raises."""
        logger.info("Syncing marketplace channel", channel_id=channel.id, channel_type=channel.type)
        try:
            result = await self.sync_channel(channel)
        except Exception as e:
            logger.error(
                "Marketplace channel sync failed",
                channel_id=channel.id,
                channel_type=channel.type,
                error=str(e),
            )
            result = SyncRunResult(
                success=False, error=str(e), finished_at=datetime.now(timezone.utc)
            )
        else:
            logger.info(
                "Marketplace channel synced",
                channel_id=channel.id,
                orders_processed=result.orders_processed,
                orders_failed=result.orders_failed,
            )
        self.channel_results[channel.id] = result
        return result

    async def sync_channel(self, channel: ChannelConfig) -> SyncRunResult:
        """Fetch, normalize and reconcile one channel. Errors propagate."""
        adapter = self.adapters.get(channel.type)
        options = OrderFetchOptions(
            since=datetime.now(timezone.utc) - timedelta(days=self.lookback_days)
        )
        raw_orders = await adapter.get_orders(channel, options)

        orders: dict[str, CanonicalOrder] = {}
        invalid = 0
        for raw in raw_orders:
            try:
                order = normalize_order(raw, channel.type)
                orders.setdefault(order.external_order_id, order)
            except (KeyError, ValueError) as e:
                invalid += 1
                logger.error(
                    "Skipping unparseable marketplace order",
                    channel_id=channel.id,
                    error=str(e),
                )

        async with self.session_factory() as session:
            reconciled = await ReconciliationEngine(session).reconcile_channel(
                channel, list(orders.values())
            )

        failed = reconciled.orders_failed + invalid
        return SyncRunResult(
            success=True,
            orders_processed=reconciled.orders_processed,
            orders_created=reconciled.orders_created,
            orders_updated=reconciled.orders_updated,
            orders_failed=failed,
            error=f"{failed} orders could not be stored" if failed else None,
            finished_at=datetime.now(timezone.utc),
        )

    # -------------------------------------------------------------------------
    # Admin operations
    # -------------------------------------------------------------------------

    async def trigger_manual_sync(self, channel_id: int | None = None) -> ManualSyncResult:
        """Run a sync now, for one channel or for all active channels."""
        if self.is_syncing:
            return ManualSyncResult(False, "Marketplace sync already in progress")

        if channel_id is None:
            summary = await self.perform_sync()
            if summary is None:
                return ManualSyncResult(False, "Marketplace sync could not be completed")
            return ManualSyncResult(
                True,
                f"Manual marketplace sync completed: {summary.channels_succeeded} channels "
                f"successful, {summary.channels_failed} failed, "
                f"{summary.orders_processed} orders processed",
            )

        self.is_syncing = True
        try:
            try:
                channel = await self.registry.get_channel(channel_id)
            except Exception as e:
                logger.error("Failed to load marketplace channel", channel_id=channel_id, error=str(e))
                return ManualSyncResult(False, f"Failed to trigger manual sync: {e}")
            if channel is None:
                return ManualSyncResult(False, "Channel not found")

            result = await self._sync_channel_safely(channel)
            self.last_sync_time = datetime.now(timezone.utc)
        finally:
            self.is_syncing = False

        if not result.success:
            return ManualSyncResult(False, f"Failed to sync {channel.name}: {result.error}")
        return ManualSyncResult(
            True, f"Synced {result.orders_processed} orders from {channel.name}"
        )

    def get_status(self) -> dict[str, Any]:
        """Snapshot of in-memory scheduler state."""
        next_sync_time = None
        if self.last_sync_time and self.is_running:
            next_sync_time = self.last_sync_time + timedelta(minutes=self.interval_minutes)

        return {
            "is_running": self.is_running,
            "is_syncing": self.is_syncing,
            "interval_minutes": self.interval_minutes,
            "last_sync_time": self.last_sync_time,
            "next_sync_time": next_sync_time,
            "channel_results": {
                channel_id: asdict(result) for channel_id, result in self.channel_results.items()
            },
        }


def build_scheduler(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    cache: CacheService | None = None,
) -> MarketplaceSyncScheduler:
    """Wire a scheduler with the default adapters from settings."""
    return MarketplaceSyncScheduler(
        ChannelRegistry(session_factory),
        build_default_registry(settings, http_client, cache=cache),
        session_factory,
        interval_minutes=settings.marketplace_sync_interval_minutes,
        lookback_days=settings.marketplace_sync_lookback_days,
        initial_delay_seconds=settings.marketplace_sync_initial_delay_seconds,
    )
