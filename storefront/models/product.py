from decimal import Decimal
from typing import Optional
from pydantic import Field
from .base import StoredModel

class Product(StoredModel):
    """Catalog product as seen by the order pipeline"""
    product_id: int
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    is_active: bool = True
    image_url: Optional[str] = None
