"""Marketplace sync administration endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from marketplace_sync.services.scheduler import MarketplaceSyncScheduler

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class ChannelSyncResult(BaseModel):
    """Last sync attempt for one channel."""

    success: bool
    orders_processed: int
    orders_created: int = 0
    orders_updated: int = 0
    orders_failed: int = 0
    error: str | None = None
    finished_at: datetime | None = None


class SyncStatusResponse(BaseModel):
    """Scheduler state for the admin dashboard widget."""

    is_running: bool
    is_syncing: bool
    interval_minutes: int
    last_sync_time: datetime | None = None
    next_sync_time: datetime | None = None
    channel_results: dict[int, ChannelSyncResult]


class ManualSyncRequest(BaseModel):
    """Manual trigger; omit channel_id to sync every active channel."""

    channel_id: int | None = Field(None, ge=1, description="Channel to sync")


class ManualSyncResponse(BaseModel):
    success: bool
    message: str


class ChannelSummary(BaseModel):
    """Active channel without its credentials."""

    id: int
    type: str
    name: str
    last_sync_at: datetime | None = None


# =============================================================================
# Dependencies
# =============================================================================


def get_scheduler(request: Request) -> MarketplaceSyncScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Marketplace sync scheduler not available")
    return scheduler


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    scheduler: MarketplaceSyncScheduler = Depends(get_scheduler),
) -> SyncStatusResponse:
    """Current scheduler state and the last result per channel."""
    return SyncStatusResponse(**scheduler.get_status())


@router.post("/sync/trigger", response_model=ManualSyncResponse)
async def trigger_sync(
    body: ManualSyncRequest,
    scheduler: MarketplaceSyncScheduler = Depends(get_scheduler),
) -> ManualSyncResponse:
    """
    Trigger a marketplace order sync immediately.

    Runs in the request and returns once the sync is done. When a sync
    is already running the request returns `success: false` at once
    instead of waiting.
    """
    logger.info("Manual marketplace sync requested", channel_id=body.channel_id)
    result = await scheduler.trigger_manual_sync(body.channel_id)
    return ManualSyncResponse(success=result.success, message=result.message)


@router.get("/channels", response_model=list[ChannelSummary])
async def list_channels(
    scheduler: MarketplaceSyncScheduler = Depends(get_scheduler),
) -> list[ChannelSummary]:
    """Active marketplace channels considered by the scheduler."""
    channels = await scheduler.registry.list_active_channels()
    return [
        ChannelSummary(id=c.id, type=c.type, name=c.name, last_sync_at=c.last_sync_at)
        for c in channels
    ]
