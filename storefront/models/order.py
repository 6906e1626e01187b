from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from .base import StoredModel

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    COD = "cod"

# Forward-only fulfilment flow; cancellation is a separate branch
STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]

CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

class CartLine(BaseModel):
    """A product/quantity pair submitted at checkout"""
    product_id: int
    quantity: int = Field(gt=0)

class OrderLine(BaseModel):
    """Snapshot of a product taken when the order was placed"""
    product_id: int
    name: str
    image: Optional[str] = None
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

class ShippingAddress(BaseModel):
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)

class PaymentResult(BaseModel):
    """Outcome reported by the payment provider"""
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class Pricing(BaseModel):
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal

    @model_validator(mode="after")
    def check_total(self):
        if self.total_price != self.items_price + self.tax_price + self.shipping_price:
            raise ValueError("total_price must equal items_price + tax_price + shipping_price")
        return self

class OrderDraft(Pricing):
    """Order contents before the database assigns an id"""
    user_id: int
    lines: List[OrderLine] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod

class Order(StoredModel, OrderDraft):
    """Order model for purchases"""
    order_id: int
    status: OrderStatus = OrderStatus.PENDING
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

class OrderPage(BaseModel):
    """One page of an order listing"""
    orders: List[Order]
    current_page: int
    total_pages: int
    total_orders: int
    has_next: bool
    has_prev: bool
