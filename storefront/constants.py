"""Store policy constants"""
from decimal import Decimal

# Tax and shipping
TAX_RATE = Decimal("0.10")
FREE_SHIPPING_THRESHOLD = Decimal("100")  # strictly greater than this ships free
STANDARD_SHIPPING_COST = Decimal("10")

# Pagination
DEFAULT_PAGE = 1
DEFAULT_ORDER_LIMIT = 10
MAX_LIMIT = 100

# Dashboard
RECENT_ORDERS_LIMIT = 10
TOP_PRODUCTS_LIMIT = 10
REVENUE_MONTHS = 12
