from typing import Dict, Any
from datetime import date, datetime, timedelta
import pytz
from decimal import Decimal
from ..config import Config
from ..constants import RECENT_ORDERS_LIMIT, TOP_PRODUCTS_LIMIT, REVENUE_MONTHS
from ..models.order import Order, OrderStatus

class ReportService:
    """Sales reporting for the back office"""

    def __init__(self, db):
        self.db = db
        self.tz = pytz.timezone(Config.TIMEZONE)

    async def get_daily_report(self) -> Dict[str, Any]:
        today = datetime.now(self.tz).date()
        return await self.get_sales_report(today, today)

    async def get_weekly_report(self) -> Dict[str, Any]:
        today = datetime.now(self.tz).date()
        start_date = today - timedelta(days=7)
        return await self.get_sales_report(start_date, today)

    async def get_monthly_report(self) -> Dict[str, Any]:
        today = datetime.now(self.tz).date()
        start_date = today.replace(day=1)
        return await self.get_sales_report(start_date, today)

    def _revenue_window_start(self) -> datetime:
        """First instant of the month REVENUE_MONTHS - 1 months ago, local time"""
        today = datetime.now(self.tz).date()
        month_index = today.year * 12 + today.month - 1 - (REVENUE_MONTHS - 1)
        start = datetime(month_index // 12, month_index % 12 + 1, 1)
        return self.tz.localize(start)

    async def get_dashboard(self) -> Dict[str, Any]:
        """Headline numbers for the admin dashboard"""
        async with self.db.pool.acquire() as conn:
            total_orders = await conn.fetchval("SELECT COUNT(*) FROM orders")

            total_revenue = await conn.fetchval("""
                SELECT SUM(total_price) FROM orders WHERE is_paid = true
            """)

            orders_by_status = await conn.fetch("""
                SELECT status, COUNT(*) AS count
                FROM orders
                GROUP BY status
                ORDER BY status
            """)

            recent_orders = await conn.fetch("""
                SELECT *
                FROM orders
                ORDER BY created_at DESC, order_id DESC
                LIMIT $1
            """, RECENT_ORDERS_LIMIT)

            # Sold quantities come from the line snapshots, not the catalog
            top_products = await conn.fetch("""
                SELECT
                    (line->>'product_id')::int AS product_id,
                    MAX(line->>'name') AS name,
                    SUM((line->>'quantity')::int) AS total_sold,
                    SUM((line->>'unit_price')::numeric * (line->>'quantity')::int) AS revenue
                FROM orders, jsonb_array_elements(orders.lines) AS line
                WHERE orders.status <> $1
                GROUP BY 1
                ORDER BY total_sold DESC
                LIMIT $2
            """, OrderStatus.CANCELLED.value, TOP_PRODUCTS_LIMIT)

            monthly_revenue = await conn.fetch("""
                SELECT
                    date_trunc('month', created_at AT TIME ZONE $1)::date AS month,
                    SUM(total_price) AS revenue,
                    COUNT(*) AS orders
                FROM orders
                WHERE is_paid = true AND created_at >= $2
                GROUP BY 1
                ORDER BY 1
            """, Config.TIMEZONE, self._revenue_window_start())

            return {
                "total_orders": total_orders or 0,
                "total_revenue": total_revenue or Decimal(0),
                "orders_by_status": {r['status']: r['count'] for r in orders_by_status},
                "recent_orders": [Order.from_row(r) for r in recent_orders],
                "top_products": [dict(p) for p in top_products],
                "monthly_revenue": [dict(m) for m in monthly_revenue]
            }

    async def get_sales_report(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """Paid sales per local calendar day, both ends inclusive"""
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT
                    (created_at AT TIME ZONE $1)::date AS day,
                    SUM(total_price) AS total_sales,
                    COUNT(*) AS order_count,
                    AVG(total_price) AS avg_order_value
                FROM orders
                WHERE is_paid = true
                AND (created_at AT TIME ZONE $1)::date BETWEEN $2 AND $3
                GROUP BY 1
                ORDER BY 1
            """, Config.TIMEZONE, start_date, end_date)

            days = [dict(r) for r in rows]
            return {
                "period": {
                    "start": start_date.strftime("%Y-%m-%d"),
                    "end": end_date.strftime("%Y-%m-%d")
                },
                "total_sales": sum((d['total_sales'] for d in days), Decimal(0)),
                "total_orders": sum(d['order_count'] for d in days),
                "days": days
            }
