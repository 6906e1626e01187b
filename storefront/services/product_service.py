from typing import Dict, Optional, Any
from decimal import Decimal
from ..models.product import Product

class ProductService:
    """Read access to the catalog plus the few writes the back office needs"""

    def __init__(self, db):
        self.db = db

    async def add_product(self, product_data: Dict[str, Any]) -> Product:
        """Add a product"""
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO products (
                    name, description, price, stock, image_url
                ) VALUES ($1, $2, $3, $4, $5)
                RETURNING *
            """,
                product_data['name'],
                product_data.get('description'),
                Decimal(str(product_data['price'])),
                product_data.get('stock', 0),
                product_data.get('image_url')
            )
            return Product.from_row(row)

    async def get_product(self, product_id: int) -> Optional[Product]:
        """Fetch an active product"""
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM products
                WHERE product_id = $1 AND is_active = true
            """, product_id)
            return Product.from_row(row)

    async def update_price(self, product_id: int, price: Decimal) -> bool:
        """Change a product's price"""
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE products
                SET price = $1, updated_at = CURRENT_TIMESTAMP
                WHERE product_id = $2
            """, Decimal(str(price)), product_id)
            return result == "UPDATE 1"
