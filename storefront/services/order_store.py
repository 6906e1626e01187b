import math
from typing import List, Optional
from ..models.order import (
    Order,
    OrderDraft,
    OrderPage,
    OrderStatus,
    PaymentResult,
    CANCELLABLE_STATUSES,
)


def build_page(orders: List[Order], total: int, page: int, limit: int) -> OrderPage:
    total_pages = math.ceil(total / limit) if limit else 0
    return OrderPage(
        orders=orders,
        current_page=page,
        total_pages=total_pages,
        total_orders=total,
        has_next=page < total_pages,
        has_prev=page > 1
    )


class OrderStore:
    """Persistence for order documents.

    Write methods take the connection from the caller so they can run inside a
    transaction opened by a committer.
    """

    async def insert(self, conn, draft: OrderDraft) -> Order:
        row = await conn.fetchrow("""
            INSERT INTO orders (
                user_id, lines, shipping_address, payment_method,
                items_price, tax_price, shipping_price, total_price, status
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *
        """,
            draft.user_id,
            [line.model_dump(mode="json") for line in draft.lines],
            draft.shipping_address.model_dump(mode="json"),
            draft.payment_method.value,
            draft.items_price,
            draft.tax_price,
            draft.shipping_price,
            draft.total_price,
            OrderStatus.PENDING.value
        )
        return Order.from_row(row)

    async def get(self, conn, order_id: int) -> Optional[Order]:
        row = await conn.fetchrow("""
            SELECT * FROM orders WHERE order_id = $1
        """, order_id)
        return Order.from_row(row)

    async def find_by_user(self, conn, user_id: int, page: int, limit: int) -> OrderPage:
        rows = await conn.fetch("""
            SELECT *
            FROM orders
            WHERE user_id = $1
            ORDER BY created_at DESC, order_id DESC
            OFFSET $2 LIMIT $3
        """, user_id, (page - 1) * limit, limit)
        total = await conn.fetchval("""
            SELECT COUNT(*) FROM orders WHERE user_id = $1
        """, user_id)
        return build_page([Order.from_row(r) for r in rows], total, page, limit)

    async def find_all(self, conn, status: Optional[OrderStatus], page: int, limit: int) -> OrderPage:
        status_value = status.value if status else None
        rows = await conn.fetch("""
            SELECT *
            FROM orders
            WHERE ($1::text IS NULL OR status = $1::text)
            ORDER BY created_at DESC, order_id DESC
            OFFSET $2 LIMIT $3
        """, status_value, (page - 1) * limit, limit)
        total = await conn.fetchval("""
            SELECT COUNT(*) FROM orders
            WHERE ($1::text IS NULL OR status = $1::text)
        """, status_value)
        return build_page([Order.from_row(r) for r in rows], total, page, limit)

    async def mark_cancelled(self, conn, order_id: int) -> Optional[Order]:
        """Flip status to cancelled; returns None unless the order was cancellable"""
        row = await conn.fetchrow("""
            UPDATE orders
            SET status = $2, updated_at = CURRENT_TIMESTAMP
            WHERE order_id = $1 AND status = ANY($3::text[])
            RETURNING *
        """,
            order_id,
            OrderStatus.CANCELLED.value,
            [s.value for s in CANCELLABLE_STATUSES]
        )
        return Order.from_row(row)

    async def mark_paid(self, conn, order_id: int, payment_result: PaymentResult) -> Optional[Order]:
        """Record a payment; returns None if already paid or cancelled"""
        row = await conn.fetchrow("""
            UPDATE orders
            SET is_paid = true,
                paid_at = CURRENT_TIMESTAMP,
                payment_result = $2,
                status = CASE WHEN status = $3 THEN $4 ELSE status END,
                updated_at = CURRENT_TIMESTAMP
            WHERE order_id = $1 AND is_paid = false AND status <> $5
            RETURNING *
        """,
            order_id,
            payment_result.model_dump(mode="json"),
            OrderStatus.PENDING.value,
            OrderStatus.PROCESSING.value,
            OrderStatus.CANCELLED.value
        )
        return Order.from_row(row)

    async def update_status(self, conn, order_id: int, expected: OrderStatus, status: OrderStatus,
                            tracking_number: Optional[str] = None,
                            notes: Optional[str] = None) -> Optional[Order]:
        """Move an order from ``expected`` to ``status``; None if it changed meanwhile"""
        row = await conn.fetchrow("""
            UPDATE orders
            SET status = $3::text,
                tracking_number = COALESCE($4, tracking_number),
                notes = COALESCE($5, notes),
                is_delivered = is_delivered OR $3::text = $6::text,
                delivered_at = CASE
                    WHEN $3::text = $6::text AND delivered_at IS NULL THEN CURRENT_TIMESTAMP
                    ELSE delivered_at
                END,
                updated_at = CURRENT_TIMESTAMP
            WHERE order_id = $1 AND status = $2::text
            RETURNING *
        """,
            order_id,
            expected.value,
            status.value,
            tracking_number,
            notes,
            OrderStatus.DELIVERED.value
        )
        return Order.from_row(row)
