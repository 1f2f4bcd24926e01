"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace_sync.config import Settings, get_settings
from marketplace_sync.infrastructure.database.models import Base, MarketplaceChannel
from marketplace_sync.main import create_app
from marketplace_sync.services.adapters import MarketplaceAdapter, OrderFetchOptions, RawOrder
from marketplace_sync.services.channel_registry import ChannelConfig


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        redis_host="localhost",
        redis_port=6379,
        marketplace_sync_enabled=False,
        bigcommerce_api_base_url="https://bc.test",
        bigcommerce_max_pages_per_status=3,
        amazon_base_url="https://sp.test",
        amazon_min_request_interval_seconds=0,
    )


@pytest.fixture
def app(test_settings: Settings) -> Any:
    """Create test application."""
    # Override settings
    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create asynchronous test client sharing the test's event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite database with the marketplace tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def make_channel(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[ChannelConfig]]:
    """Insert a marketplace channel row and return its snapshot."""

    async def _make(
        channel_id: int,
        type: str = "bigcommerce",
        name: str | None = None,
        is_active: bool = True,
        api_config: dict | None = None,
    ) -> ChannelConfig:
        async with session_factory() as session:
            row = MarketplaceChannel(
                id=channel_id,
                type=type,
                name=name or f"{type} channel {channel_id}",
                is_active=is_active,
                api_config=api_config or {},
                last_sync_at=None,
            )
            session.add(row)
            await session.commit()
            return ChannelConfig.from_row(row)

    return _make


# =============================================================================
# Marketplace doubles
# =============================================================================


class StubAdapter(MarketplaceAdapter):
    """Adapter returning canned raw orders, or raising a canned error."""

    def __init__(
        self,
        marketplace_type: str,
        orders: list[RawOrder] | None = None,
        error: Exception | None = None,
    ):
        super().__init__(http_client=None)
        self.marketplace_type = marketplace_type
        self.orders = orders or []
        self.error = error
        self.calls: list[tuple[int, OrderFetchOptions | None]] = []

    async def get_orders(
        self, channel: ChannelConfig, options: OrderFetchOptions | None = None
    ) -> list[RawOrder]:
        self.calls.append((channel.id, options))
        if self.error is not None:
            raise self.error
        return list(self.orders)


@pytest.fixture
def stub_adapter() -> type[StubAdapter]:
    """The canned-response adapter class."""
    return StubAdapter


@pytest.fixture
def sample_bigcommerce_order() -> dict:
    """Raw BigCommerce v2 order with products and a shipping address attached."""
    return {
        "id": 1001,
        "status": "Awaiting Fulfillment",
        "payment_status": "captured",
        "date_created": "Tue, 05 Mar 2024 18:13:45 +0000",
        "subtotal_ex_tax": "40.0000",
        "total_tax": "3.2000",
        "shipping_cost_ex_tax": "5.0000",
        "total_inc_tax": "48.2000",
        "discount_amount": "0.0000",
        "coupon_discount": "0.0000",
        "currency_code": "USD",
        "billing_address": {
            "first_name": "Dana",
            "last_name": "Reyes",
            "email": "dana@example.com",
            "phone": "555-0100",
            "city": "Austin",
        },
        "shipping_addresses": [
            {"id": 11, "city": "Austin", "shipping_method": "UPS Ground"},
        ],
        "products": [
            {
                "id": 501,
                "product_id": 77,
                "sku": "MUG-BLK",
                "name": "Black Mug",
                "quantity": 2,
                "price_ex_tax": "20.0000",
                "total_ex_tax": "40.0000",
            },
        ],
    }


@pytest.fixture
def sample_amazon_order() -> dict:
    """Raw SP-API order with its order items attached."""
    return {
        "AmazonOrderId": "114-3941689-8772232",
        "PurchaseDate": "2024-03-05T18:13:45Z",
        "OrderStatus": "Unshipped",
        "PaymentMethod": "Other",
        "OrderTotal": {"CurrencyCode": "USD", "Amount": "31.98"},
        "ShipServiceLevel": "Std US D2D Dom",
        "BuyerInfo": {"BuyerEmail": "buyer@marketplace.amazon.com", "BuyerName": "Sam Lee"},
        "ShippingAddress": {
            "Name": "Sam Lee",
            "AddressLine1": "1 Main St",
            "City": "Seattle",
            "StateOrRegion": "WA",
            "PostalCode": "98101",
            "CountryCode": "US",
        },
        "OrderItems": [
            {
                "OrderItemId": "6833",
                "ASIN": "B00TEST01",
                "SellerSKU": "TEE-M",
                "Title": "T-Shirt M",
                "QuantityOrdered": 2,
                "ItemPrice": {"CurrencyCode": "USD", "Amount": "25.98"},
                "ItemTax": {"CurrencyCode": "USD", "Amount": "2.00"},
                "ShippingPrice": {"CurrencyCode": "USD", "Amount": "4.00"},
                "PromotionDiscount": {"CurrencyCode": "USD", "Amount": "0.00"},
            },
        ],
    }
