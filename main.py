"""Back-office command line for the storefront."""
import argparse
import asyncio
import sys
from storefront.config import Config, setup_logging
from storefront.database.database import Database
from storefront.errors import StoreError
from storefront.models.order import OrderStatus
from storefront.models.user import Requester, UserRole
from storefront.services.notification_service import NotificationDispatcher, build_notifier
from storefront.services.order_service import OrderService
from storefront.services.report_service import ReportService
from storefront.utils.formatters import format_price
from storefront.utils.messages import Messages


BACK_OFFICE = Requester(user_id=0, role=UserRole.ADMIN)


async def cmd_migrate(args, db, orders, reports) -> int:
    """Migrations run on connect; report what the database supports."""
    supported = await db.probe_transactions()
    print(f"Migrations applied. Transactions {'supported' if supported else 'NOT supported'}.")
    return 0


async def cmd_orders(args, db, orders, reports) -> int:
    page = await orders.list_orders(BACK_OFFICE, args.status, args.page, args.limit)
    for order in page.orders:
        print(Messages.format_order(order))
    print(f"Page {page.current_page}/{page.total_pages} ({page.total_orders} orders)")
    return 0


async def cmd_set_status(args, db, orders, reports) -> int:
    order = await orders.update_status(
        args.order_id, BACK_OFFICE, args.status,
        tracking_number=args.tracking,
        notes=args.notes
    )
    print(f"Order #{order.order_id} is now {order.status.value}")
    return 0


async def cmd_cancel(args, db, orders, reports) -> int:
    order = await orders.cancel_order(args.order_id, BACK_OFFICE)
    print(f"Order #{order.order_id} cancelled")
    return 0


async def cmd_report(args, db, orders, reports) -> int:
    if args.period == "dashboard":
        data = await reports.get_dashboard()
        print(f"Orders: {data['total_orders']}")
        print(f"Revenue: {format_price(data['total_revenue'])}")
        for status, count in data['orders_by_status'].items():
            print(f"  {status}: {count}")
        for product in data['top_products']:
            print(f"  #{product['product_id']} {product['name']}: {product['total_sold']} sold")
        return 0

    report = await {
        "daily": reports.get_daily_report,
        "weekly": reports.get_weekly_report,
        "monthly": reports.get_monthly_report,
    }[args.period]()
    print(f"{report['period']['start']} - {report['period']['end']}")
    for day in report['days']:
        print(f"  {day['day']}: {day['order_count']} orders, {format_price(day['total_sales'])}")
    print(f"Total: {report['total_orders']} orders, {format_price(report['total_sales'])}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront", description="Storefront back office")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("migrate", help="Apply migrations and probe transaction support")
    p.set_defaults(func=cmd_migrate)

    p = sub.add_parser("orders", help="List orders")
    p.add_argument("--status", choices=[s.value for s in OrderStatus])
    p.add_argument("--page", type=int)
    p.add_argument("--limit", type=int)
    p.set_defaults(func=cmd_orders)

    p = sub.add_parser("set-status", help="Advance an order's status")
    p.add_argument("order_id", type=int)
    p.add_argument("status", choices=[s.value for s in OrderStatus if s != OrderStatus.CANCELLED])
    p.add_argument("--tracking", help="Tracking number")
    p.add_argument("--notes")
    p.set_defaults(func=cmd_set_status)

    p = sub.add_parser("cancel", help="Cancel an order and restore its stock")
    p.add_argument("order_id", type=int)
    p.set_defaults(func=cmd_cancel)

    p = sub.add_parser("report", help="Sales reports")
    p.add_argument("period", choices=["daily", "weekly", "monthly", "dashboard"])
    p.set_defaults(func=cmd_report)

    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging()
    Config.validate()

    db = Database()
    await db.connect()
    notifier = build_notifier()
    await notifier.start()
    dispatcher = NotificationDispatcher(notifier)

    try:
        if Config.TRANSACTION_MODE == "auto" and args.command != "migrate":
            await db.probe_transactions()
        orders = OrderService(db, dispatcher=dispatcher)
        reports = ReportService(db)
        return await args.func(args, db, orders, reports)
    except StoreError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await dispatcher.drain()
        await notifier.close()
        await db.close()


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
