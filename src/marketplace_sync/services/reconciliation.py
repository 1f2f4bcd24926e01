"""Order reconciliation service.

Upserts canonical orders keyed by ``(channel_id, external_order_id)``. Only a
narrow set of order fields changes after creation; line items are upserted
by ``(order_id, external_item_id)`` and never deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_sync.infrastructure.database.models import (
    MarketplaceChannel,
    MarketplaceOrder,
    MarketplaceOrderItem,
)
from marketplace_sync.services.channel_registry import ChannelConfig
from marketplace_sync.services.normalizer import CanonicalOrder, CanonicalOrderLineItem

logger = structlog.get_logger()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UpsertOutcome(str, Enum):
    """What an upsert did to the order row."""

    CREATED = "created"
    UPDATED = "updated"


@dataclass
class ReconciliationResult:
    """Counts for one channel's batch."""

    orders_created: int = 0
    orders_updated: int = 0
    orders_failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def orders_processed(self) -> int:
        return self.orders_created + self.orders_updated


class ReconciliationEngine:
    """Writes canonical orders for a channel into storage."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_order(self, channel_id: int, order: CanonicalOrder) -> UpsertOutcome:
        """Insert the order if unseen, otherwise refresh its mutable fields."""
        now = utcnow()
        result = await self.session.execute(
            select(MarketplaceOrder).where(
                MarketplaceOrder.channel_id == channel_id,
                MarketplaceOrder.external_order_id == order.external_order_id,
            )
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            existing.status = order.status
            existing.payment_status = order.payment_status
            existing.grand_total = order.grand_total
            existing.currency = order.currency
            existing.updated_at = now
            if order.items:
                await self._upsert_items(existing.id, order.items, now)
            await self.session.flush()
            logger.debug(
                "Updated marketplace order",
                channel_id=channel_id,
                external_order_id=order.external_order_id,
                status=order.status,
            )
            return UpsertOutcome.UPDATED

        row = MarketplaceOrder(
            channel_id=channel_id,
            external_order_id=order.external_order_id,
            external_order_number=order.external_order_number,
            status=order.status,
            payment_status=order.payment_status,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            grand_total=order.grand_total,
            subtotal=order.subtotal,
            tax_total=order.tax_total,
            shipping_total=order.shipping_total,
            discount_total=order.discount_total,
            currency=order.currency,
            shipping_method=order.shipping_method,
            shipping_carrier=order.shipping_carrier,
            order_placed_at=order.order_placed_at or now,
            raw_payload=order.raw_payload,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        await self.session.flush()

        for item in _unique_items(order.items):
            self.session.add(_new_item(row.id, item, now))
        await self.session.flush()

        logger.debug(
            "Inserted marketplace order",
            channel_id=channel_id,
            external_order_id=order.external_order_id,
            items=len(order.items),
        )
        return UpsertOutcome.CREATED

    async def _upsert_items(
        self, order_id: int, items: list[CanonicalOrderLineItem], now: datetime
    ) -> None:
        result = await self.session.execute(
            select(MarketplaceOrderItem).where(MarketplaceOrderItem.order_id == order_id)
        )
        stored = {row.external_item_id: row for row in result.scalars()}

        for item in _unique_items(items):
            row = stored.get(item.external_item_id)
            if row is None:
                self.session.add(_new_item(order_id, item, now))
                continue
            row.sku = item.sku
            row.name = item.name
            row.quantity = item.quantity
            row.unit_price = item.unit_price
            row.total_price = item.total_price
            row.raw_payload = item.raw_payload
            row.updated_at = now

    async def mark_channel_synced(self, channel_id: int) -> None:
        await self.session.execute(
            update(MarketplaceChannel)
            .where(MarketplaceChannel.id == channel_id)
            .values(last_sync_at=utcnow())
        )

    async def reconcile_channel(
        self, channel: ChannelConfig, orders: list[CanonicalOrder]
    ) -> ReconciliationResult:
        """Upsert a channel's batch and stamp the channel as synced.

        Each order commits on its own. A storage error rolls back only that
        order; it is logged, counted, and the batch continues. The channel's
        ``last_sync_at`` is stamped even when the batch is empty.
        """
        result = ReconciliationResult()

        for order in orders:
            try:
                outcome = await self.upsert_order(channel.id, order)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                result.orders_failed += 1
                result.errors.append(f"{order.external_order_id}: {e}")
                logger.error(
                    "Failed to upsert marketplace order",
                    channel_id=channel.id,
                    external_order_id=order.external_order_id,
                    error=str(e),
                )
                continue

            if outcome is UpsertOutcome.CREATED:
                result.orders_created += 1
            else:
                result.orders_updated += 1

        await self.mark_channel_synced(channel.id)
        await self.session.commit()
        return result


def _unique_items(items: list[CanonicalOrderLineItem]) -> list[CanonicalOrderLineItem]:
    # Later duplicates of an external_item_id win
    return list({item.external_item_id: item for item in items}.values())


def _new_item(order_id: int, item: CanonicalOrderLineItem, now: datetime) -> MarketplaceOrderItem:
    return MarketplaceOrderItem(
        order_id=order_id,
        external_item_id=item.external_item_id,
        external_product_id=item.external_product_id,
        sku=item.sku,
        name=item.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        total_price=item.total_price,
        raw_payload=item.raw_payload,
        created_at=now,
        updated_at=now,
    )
