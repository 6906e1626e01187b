from ..errors import InsufficientStockError, NotFoundError


class StockLedger:
    """Atomic stock arithmetic on the products table.

    Each operation is a single UPDATE so concurrent callers serialize on the
    product row inside PostgreSQL. Callers pass the connection so the update can
    join an open transaction.
    """

    async def reserve(self, conn, product_id: int, quantity: int) -> int:
        """Take quantity out of stock, only if enough is left"""
        new_stock = await conn.fetchval("""
            UPDATE products
            SET stock = stock - $1,
                updated_at = CURRENT_TIMESTAMP
            WHERE product_id = $2 AND stock >= $1
            RETURNING stock
        """, quantity, product_id)

        if new_stock is None:
            available = await conn.fetchval("""
                SELECT stock FROM products WHERE product_id = $1
            """, product_id)
            if available is None:
                raise NotFoundError(f"Product {product_id}")
            raise InsufficientStockError(product_id, available=available, requested=quantity)

        return new_stock

    async def release(self, conn, product_id: int, quantity: int) -> int:
        """Put quantity back into stock"""
        new_stock = await conn.fetchval("""
            UPDATE products
            SET stock = stock + $1,
                updated_at = CURRENT_TIMESTAMP
            WHERE product_id = $2
            RETURNING stock
        """, quantity, product_id)

        if new_stock is None:
            raise NotFoundError(f"Product {product_id}")

        return new_stock

    async def get_stock(self, conn, product_id: int):
        return await conn.fetchval("""
            SELECT stock FROM products WHERE product_id = $1
        """, product_id)
