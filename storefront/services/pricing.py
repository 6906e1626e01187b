from decimal import Decimal
from typing import Iterable, Tuple
from ..constants import TAX_RATE, FREE_SHIPPING_THRESHOLD, STANDARD_SHIPPING_COST
from ..models.order import Pricing


def calculate_pricing(lines: Iterable[Tuple[Decimal, int]]) -> Pricing:
    """Compute order totals from (unit_price, quantity) pairs.

    Amounts stay unrounded; rounding to cents happens when they are displayed.
    """
    items_price = sum(
        (Decimal(str(unit_price)) * quantity for unit_price, quantity in lines),
        Decimal(0)
    )
    shipping_price = Decimal(0) if items_price > FREE_SHIPPING_THRESHOLD else STANDARD_SHIPPING_COST
    tax_price = items_price * TAX_RATE

    return Pricing(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=items_price + tax_price + shipping_price
    )
