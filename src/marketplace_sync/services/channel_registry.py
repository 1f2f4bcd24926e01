"""Read access to configured marketplace channels."""

from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace_sync.infrastructure.database.models import MarketplaceChannel

logger = structlog.get_logger()


class ChannelConfig(BaseModel):
    """Detached snapshot of a marketplace channel row."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    type: str
    name: str
    is_active: bool = True
    api_config: dict[str, Any] = Field(default_factory=dict)
    last_sync_at: datetime | None = None

    @classmethod
    def from_row(cls, row: MarketplaceChannel) -> "ChannelConfig":
        return cls(
            id=row.id,
            type=row.type,
            name=row.name,
            is_active=row.is_active,
            api_config=row.api_config or {},
            last_sync_at=row.last_sync_at,
        )


class ChannelRegistry:
    """Loads channel configurations from storage.

    Storage errors are not handled here; the scheduler decides how a failed
    lookup affects the current pass.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_active_channels(self) -> list[ChannelConfig]:
        """Return all channels with the active flag set, ordered by id."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(MarketplaceChannel)
                .where(MarketplaceChannel.is_active.is_(True))
                .order_by(MarketplaceChannel.id)
            )
            channels = [ChannelConfig.from_row(row) for row in result.scalars()]

        logger.debug("Loaded active marketplace channels", count=len(channels))
        return channels

    async def get_channel(self, channel_id: int) -> ChannelConfig | None:
        """Return a channel by id regardless of its active flag."""
        async with self.session_factory() as session:
            row = await session.get(MarketplaceChannel, channel_id)
            return ChannelConfig.from_row(row) if row else None
