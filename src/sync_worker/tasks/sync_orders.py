"""Marketplace order synchronization tasks."""

import asyncio

import httpx
import structlog
from celery import shared_task

from marketplace_sync.config import get_settings
from marketplace_sync.infrastructure.database.connection import (
    get_async_engine,
    get_async_session_factory,
)
from marketplace_sync.infrastructure.redis import CacheService, close_redis, get_redis_client
from marketplace_sync.services.scheduler import build_scheduler

logger = structlog.get_logger()


async def run_marketplace_sync(channel_id: int | None = None) -> dict:
    """Run one manual sync with engine and clients bound to the current loop."""
    settings = get_settings()
    engine = get_async_engine()
    try:
        async with httpx.AsyncClient(timeout=settings.marketplace_http_timeout_seconds) as client:
            cache = CacheService(await get_redis_client())
            scheduler = build_scheduler(
                settings, get_async_session_factory(engine), client, cache=cache
            )
            result = await scheduler.trigger_manual_sync(channel_id)
            return {
                "success": result.success,
                "message": result.message,
                "channels": {
                    str(cid): {
                        "success": r.success,
                        "orders_processed": r.orders_processed,
                        "orders_failed": r.orders_failed,
                        "error": r.error,
                    }
                    for cid, r in scheduler.channel_results.items()
                },
            }
    finally:
        await close_redis()
        await engine.dispose()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_marketplace_orders(self, channel_id: int | None = None) -> dict:
    """
    Synchronize marketplace orders for one or all active channels.

    This task:
    1. Loads active marketplace channels (or the requested one)
    2. Fetches orders through the channel's marketplace adapter
    3. Upserts orders and line items, stamping each channel's last_sync_at

    Errors raised outside the per-channel handling, such as a lost database
    connection, are retried up to three times. Channel failures are reported
    in the summary instead.

    Returns:
        dict: Summary of sync operation
    """
    logger.info("Starting marketplace order sync task", channel_id=channel_id)
    try:
        summary = asyncio.run(run_marketplace_sync(channel_id))
    except Exception as exc:
        logger.error(
            "Marketplace order sync task failed",
            channel_id=channel_id,
            attempt=self.request.retries + 1,
            error=str(exc),
        )
        raise self.retry(exc=exc)
    logger.info("Marketplace order sync task finished", **summary)
    return summary
