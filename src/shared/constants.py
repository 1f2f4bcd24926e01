"""Shared constants across the application."""

# BigCommerce order status ids queried one at a time, since the v2 orders
# endpoint accepts a single status_id per request.
BIGCOMMERCE_ORDER_STATUSES = [
    (0, "Pending"),
    (1, "Awaiting Payment"),
    (11, "Awaiting Fulfillment"),
    (9, "Awaiting Shipment"),
    (3, "Partially Shipped"),
    (2, "Shipped"),
    (10, "Completed"),
    (5, "Cancelled"),
    (4, "Refunded"),
    (14, "Partially Refunded"),
    (13, "Disputed"),
    (12, "Manual Verification Required"),
]

# Amazon Selling Partner API defaults
AMAZON_DEFAULT_MARKETPLACE_ID = "ATVPDKIKX0DER"  # US
AMAZON_DEFAULT_BASE_URL = "https://sellingpartnerapi-na.amazon.com"
AMAZON_TOKEN_URL = "https://api.amazon.com/auth/o2/token"

# Normalization fallbacks
DEFAULT_CURRENCY = "USD"
UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_PAYMENT_STATUS = "unknown"
DEFAULT_SHIPPING_METHOD = "Standard"

# Page sizes
BIGCOMMERCE_PAGE_SIZE = 250
AMAZON_MAX_RESULTS_PER_PAGE = 100

# Time windows
SYNC_LOOKBACK_DAYS = 30
