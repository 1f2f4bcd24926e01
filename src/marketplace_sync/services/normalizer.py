"""Normalization of marketplace-specific order payloads.

Every vendor quirk is handled here so that reconciliation only ever sees a
``CanonicalOrder``. All functions are pure: no I/O, no logging.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any, Callable

from pydantic import BaseModel, Field

from marketplace_sync.services.adapters.base import RawOrder, UnsupportedMarketplaceError
from shared.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_SHIPPING_METHOD,
    UNKNOWN_CUSTOMER,
    UNKNOWN_PAYMENT_STATUS,
)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


class CanonicalOrderLineItem(BaseModel):
    """Storage-ready line item."""

    external_item_id: str
    external_product_id: str | None = None
    sku: str | None = None
    name: str
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    raw_payload: dict[str, Any] | None = None


class CanonicalOrder(BaseModel):
    """Storage-ready order, independent of the source marketplace."""

    external_order_id: str
    external_order_number: str
    status: str
    payment_status: str = UNKNOWN_PAYMENT_STATUS
    customer_name: str = UNKNOWN_CUSTOMER
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: dict[str, Any] | None = None
    billing_address: dict[str, Any] | None = None
    grand_total: Decimal = Field(default=ZERO, ge=0)
    subtotal: Decimal = Field(default=ZERO, ge=0)
    tax_total: Decimal = Field(default=ZERO, ge=0)
    shipping_total: Decimal = Field(default=ZERO, ge=0)
    discount_total: Decimal = Field(default=ZERO, ge=0)
    currency: str = DEFAULT_CURRENCY
    shipping_method: str | None = DEFAULT_SHIPPING_METHOD
    shipping_carrier: str | None = None
    order_placed_at: datetime | None = None
    raw_payload: dict[str, Any] | None = None
    items: list[CanonicalOrderLineItem] = Field(default_factory=list)


# =============================================================================
# Coercion helpers
# =============================================================================


def to_money(value: Any) -> Decimal:
    """Coerce a vendor amount to a non-negative two-place Decimal."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite() or amount < 0:
            return ZERO
        # Amounts beyond the context precision cannot be quantized
        return amount.quantize(CENT)
    except (InvalidOperation, ValueError):
        return ZERO


def to_quantity(value: Any) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize_status(value: Any) -> str:
    """``"Awaiting Payment"`` -> ``"awaiting_payment"``."""
    text = str(value or "").strip().lower()
    return re.sub(r"\s+", "_", text) or "unknown"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse RFC 2822 or ISO 8601 into a naive UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(container: Any) -> Decimal:
    """Amount of an SP-API ``Money`` object."""
    if isinstance(container, dict):
        return to_money(container.get("Amount"))
    return ZERO


def _item_id(raw_id: Any, sku: str | None, position: int) -> str:
    return _text(raw_id) or sku or str(position)


# =============================================================================
# BigCommerce
# =============================================================================


def _normalize_bigcommerce(raw: RawOrder) -> CanonicalOrder:
    billing = raw.get("billing_address") or {}
    shipping_addresses = raw.get("shipping_addresses") or []
    shipping = shipping_addresses[0] if shipping_addresses else None

    name = " ".join(
        part for part in (_text(billing.get("first_name")), _text(billing.get("last_name"))) if part
    )

    items = []
    for position, product in enumerate(raw.get("products") or [], start=1):
        sku = _text(product.get("sku"))
        quantity = to_quantity(product.get("quantity"))
        unit_price = to_money(product.get("price_ex_tax"))
        total = product.get("total_ex_tax")
        items.append(
            CanonicalOrderLineItem(
                external_item_id=_item_id(product.get("id"), sku, position),
                external_product_id=_text(product.get("product_id")),
                sku=sku,
                name=_text(product.get("name")) or "Unknown Item",
                quantity=quantity,
                unit_price=unit_price,
                total_price=to_money(total) if total is not None else unit_price * quantity,
                raw_payload=product,
            )
        )

    order_id = str(raw["id"])
    return CanonicalOrder(
        external_order_id=order_id,
        external_order_number=_text(raw.get("order_number")) or order_id,
        status=normalize_status(raw.get("status")),
        payment_status=_text(raw.get("payment_status")) or UNKNOWN_PAYMENT_STATUS,
        customer_name=name or UNKNOWN_CUSTOMER,
        customer_email=_text(billing.get("email")),
        customer_phone=_text(billing.get("phone")),
        shipping_address=shipping,
        billing_address=billing or None,
        grand_total=to_money(raw.get("total_inc_tax")),
        subtotal=to_money(raw.get("subtotal_ex_tax")),
        tax_total=to_money(raw.get("total_tax")),
        shipping_total=to_money(raw.get("shipping_cost_ex_tax")),
        discount_total=to_money(raw.get("discount_amount")) + to_money(raw.get("coupon_discount")),
        currency=_text(raw.get("currency_code")) or DEFAULT_CURRENCY,
        shipping_method=_text((shipping or {}).get("shipping_method")) or DEFAULT_SHIPPING_METHOD,
        order_placed_at=parse_timestamp(raw.get("date_created")),
        raw_payload=raw,
        items=items,
    )


# =============================================================================
# Amazon
# =============================================================================


def _normalize_amazon(raw: RawOrder) -> CanonicalOrder:
    buyer = raw.get("BuyerInfo") or {}
    address = raw.get("ShippingAddress") or None
    name = _text(buyer.get("BuyerName")) or _text((address or {}).get("Name"))
    phone = _text((address or {}).get("Phone"))

    shipping_address = None
    if address:
        shipping_address = {
            "name": address.get("Name") or "",
            "street_1": address.get("AddressLine1") or "",
            "street_2": address.get("AddressLine2") or "",
            "city": address.get("City") or "",
            "state": address.get("StateOrRegion") or "",
            "zip": address.get("PostalCode") or "",
            "country": address.get("CountryCode") or "US",
            "phone": address.get("Phone") or "",
        }

    items = []
    subtotal = tax = shipping_total = discount = ZERO
    for position, item in enumerate(raw.get("OrderItems") or [], start=1):
        sku = _text(item.get("SellerSKU"))
        quantity = to_quantity(item.get("QuantityOrdered"))
        line_total = _amount(item.get("ItemPrice"))
        unit_price = (line_total / max(quantity, 1)).quantize(CENT)
        subtotal += line_total
        tax += _amount(item.get("ItemTax"))
        shipping_total += _amount(item.get("ShippingPrice"))
        discount += _amount(item.get("PromotionDiscount"))
        items.append(
            CanonicalOrderLineItem(
                external_item_id=_item_id(item.get("OrderItemId"), sku, position),
                external_product_id=_text(item.get("ASIN")),
                sku=sku,
                name=_text(item.get("Title")) or "Unknown Item",
                quantity=quantity,
                unit_price=unit_price,
                total_price=line_total,
                raw_payload=item,
            )
        )

    order_total = raw.get("OrderTotal") or {}
    grand_total = _amount(order_total)
    order_id = str(raw["AmazonOrderId"])
    return CanonicalOrder(
        external_order_id=order_id,
        external_order_number=_text(raw.get("SellerOrderId")) or order_id,
        status=normalize_status(raw.get("OrderStatus")),
        payment_status=_text(raw.get("PaymentMethod")) or UNKNOWN_PAYMENT_STATUS,
        customer_name=name or UNKNOWN_CUSTOMER,
        customer_email=_text(buyer.get("BuyerEmail")),
        customer_phone=phone,
        shipping_address=shipping_address,
        billing_address={"name": name or "", "email": buyer.get("BuyerEmail") or "", "phone": phone or ""},
        grand_total=grand_total,
        subtotal=subtotal if items else grand_total,
        tax_total=tax,
        shipping_total=shipping_total,
        discount_total=discount,
        currency=_text(order_total.get("CurrencyCode")) or DEFAULT_CURRENCY,
        shipping_method=_text(raw.get("ShipServiceLevel"))
        or _text(raw.get("ShipmentServiceLevelCategory"))
        or DEFAULT_SHIPPING_METHOD,
        shipping_carrier=_text(raw.get("ShipmentCarrier")),
        order_placed_at=parse_timestamp(raw.get("PurchaseDate")),
        raw_payload=raw,
        items=items,
    )


NORMALIZERS: dict[str, Callable[[RawOrder], CanonicalOrder]] = {
    "bigcommerce": _normalize_bigcommerce,
    "amazon": _normalize_amazon,
}


def normalize_order(raw: RawOrder, source_type: str) -> CanonicalOrder:
    """Convert a raw marketplace order into a ``CanonicalOrder``."""
    try:
        normalizer = NORMALIZERS[source_type]
    except KeyError:
        raise UnsupportedMarketplaceError(
            f"No normalizer for marketplace type '{source_type}'"
        ) from None
    return normalizer(raw)
