"""SQLAlchemy models for marketplace order synchronization.

Channels are managed by the admin workflow; this service only reads them and
stamps ``last_sync_at``. Orders and their line items are written exclusively
by the reconciliation step.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""


# Monetary columns
Money = Numeric(12, 2)


# =============================================================================
# Marketplace Channels
# =============================================================================


class MarketplaceChannel(Base):
    """A configured connection to one marketplace account."""

    __tablename__ = "marketplace_channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # bigcommerce, amazon
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Credentials and per-channel overrides, opaque to the sync core
    api_config: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)

    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    orders: Mapped[list["MarketplaceOrder"]] = relationship(back_populates="channel")

    __table_args__ = (Index("ix_marketplace_channels_active", "is_active"),)


# =============================================================================
# Marketplace Orders
# =============================================================================


class MarketplaceOrder(Base):
    """Canonical order, unique per (channel_id, external_order_id)."""

    __tablename__ = "marketplace_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        ForeignKey("marketplace_channels.id"), nullable=False
    )
    external_order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_order_number: Mapped[Optional[str]] = mapped_column(String(255))

    status: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_status: Mapped[Optional[str]] = mapped_column(String(100))

    # Customer
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50))
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSON)
    billing_address: Mapped[Optional[dict]] = mapped_column(JSON)

    # Money
    grand_total: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    subtotal: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    tax_total: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    shipping_total: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    discount_total: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Fulfillment
    shipping_method: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_carrier: Mapped[Optional[str]] = mapped_column(String(255))

    order_placed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    raw_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    channel: Mapped[MarketplaceChannel] = relationship(back_populates="orders")
    items: Mapped[list["MarketplaceOrderItem"]] = relationship(
        back_populates="order", order_by="MarketplaceOrderItem.id"
    )

    __table_args__ = (
        UniqueConstraint(
            "channel_id", "external_order_id", name="uq_marketplace_orders_channel_external"
        ),
        Index("ix_marketplace_orders_status", "status"),
        Index("ix_marketplace_orders_placed_at", "order_placed_at"),
    )


# =============================================================================
# Marketplace Order Items
# =============================================================================


class MarketplaceOrderItem(Base):
    """Line item belonging to a marketplace order."""

    __tablename__ = "marketplace_order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("marketplace_orders.id", ondelete="CASCADE"), nullable=False
    )
    external_item_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_product_id: Mapped[Optional[str]] = mapped_column(String(255))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    raw_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    order: Mapped[MarketplaceOrder] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint(
            "order_id", "external_item_id", name="uq_marketplace_order_items_order_external"
        ),
    )
