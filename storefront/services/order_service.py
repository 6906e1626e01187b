import functools
import logging
from typing import Dict, List, Optional, Union
from ..config import Config
from ..constants import DEFAULT_PAGE, DEFAULT_ORDER_LIMIT, MAX_LIMIT
from ..errors import (
    BadRequestError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    ServerError,
    StoreError,
    TransactionsUnsupported,
)
from ..models.order import (
    CartLine,
    Order,
    OrderDraft,
    OrderLine,
    OrderPage,
    OrderStatus,
    PaymentMethod,
    PaymentResult,
    ShippingAddress,
    STATUS_FLOW,
)
from ..models.user import Requester
from .committers import AtomicCommitter, LedgerAction, LedgerOp, SequentialCommitter
from .notification_service import LogNotifier, NotificationDispatcher
from .order_store import OrderStore
from .pricing import calculate_pricing
from .product_service import ProductService
from .stock_ledger import StockLedger


def reports_server_errors(message: str):
    """Let domain errors through; log anything else and raise it as ServerError"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except StoreError:
                raise
            except Exception as e:
                self.logger.error(
                    f"{func.__name__} failed (args={args}, kwargs={kwargs}): {e}",
                    exc_info=True
                )
                raise ServerError(message) from e
        return wrapper
    return decorator


class OrderService:
    """Order placement, cancellation and the rest of the order lifecycle"""

    def __init__(self, db, product_service: Optional[ProductService] = None,
                 ledger: Optional[StockLedger] = None, store: Optional[OrderStore] = None,
                 dispatcher: Optional[NotificationDispatcher] = None,
                 transaction_mode: Optional[str] = None):
        self.db = db
        self.product_service = product_service or ProductService(db)
        self.ledger = ledger or StockLedger()
        self.store = store or OrderStore()
        self.dispatcher = dispatcher or NotificationDispatcher(LogNotifier())
        self.atomic = AtomicCommitter(db, self.ledger)
        self.sequential = SequentialCommitter(db, self.ledger)
        self.transaction_mode = transaction_mode or Config.TRANSACTION_MODE
        self.logger = logging.getLogger(__name__)

    async def _commit(self, operation: str, order_op, ledger_ops: List[LedgerOp]) -> Order:
        """Run an order transition atomically when possible, sequentially otherwise"""
        use_atomic = (
            self.transaction_mode == "always"
            or (self.transaction_mode == "auto" and self.db.supports_transactions is not False)
        )

        if use_atomic:
            try:
                return await self.atomic.commit_order_transition(order_op, ledger_ops)
            except TransactionsUnsupported as e:
                if self.transaction_mode == "always":
                    raise
                self.logger.warning(f"Transactions not supported, {operation} without transaction: {e}")
                self.db.supports_transactions = False

        return await self.sequential.commit_order_transition(order_op, ledger_ops)

    async def _load_order(self, order_id: int) -> Order:
        async with self.db.pool.acquire() as conn:
            order = await self.store.get(conn, order_id)
        if not order:
            raise NotFoundError("Order")
        return order

    @staticmethod
    def _check_access(order: Order, requester: Requester, action: str):
        if order.user_id != requester.user_id and not requester.is_admin:
            raise ForbiddenError(f"Not authorized to {action} this order")

    @staticmethod
    def _page_args(page: Optional[int], limit: Optional[int]):
        page = page or DEFAULT_PAGE
        limit = limit or DEFAULT_ORDER_LIMIT
        if page < 1 or limit < 1:
            raise BadRequestError("page and limit must be positive")
        return page, min(limit, MAX_LIMIT)

    @reports_server_errors("Failed to create order")
    async def place_order(self, requester: Requester, cart_lines: List[CartLine],
                          shipping_address: ShippingAddress,
                          payment_method: PaymentMethod) -> Order:
        """Validate the cart, price it, reserve stock and write the order"""
        if not cart_lines:
            raise BadRequestError("No order items")

        lines: List[OrderLine] = []
        requested: Dict[int, int] = {}

        for item in cart_lines:
            product = await self.product_service.get_product(item.product_id)
            if not product:
                raise NotFoundError(f"Product {item.product_id}")

            requested[product.product_id] = requested.get(product.product_id, 0) + item.quantity
            if product.stock < requested[product.product_id]:
                raise InsufficientStockError(
                    product.product_id,
                    name=product.name,
                    available=product.stock,
                    requested=requested[product.product_id]
                )

            lines.append(OrderLine(
                product_id=product.product_id,
                name=product.name,
                image=product.image_url,
                unit_price=product.price,
                quantity=item.quantity
            ))

        pricing = calculate_pricing((line.unit_price, line.quantity) for line in lines)
        draft = OrderDraft(
            user_id=requester.user_id,
            lines=lines,
            shipping_address=shipping_address,
            payment_method=payment_method,
            **pricing.model_dump()
        )

        async def insert_order(conn) -> Order:
            return await self.store.insert(conn, draft)

        order = await self._commit(
            "creating order",
            insert_order,
            [
                LedgerOp(product_id=line.product_id, quantity=line.quantity, action=LedgerAction.RESERVE)
                for line in lines
            ]
        )

        self.logger.info(f"Order created: {order.order_id} (user {requester.user_id})")
        self.dispatcher.dispatch_order_confirmation(order)
        return order

    @reports_server_errors("Failed to cancel order")
    async def cancel_order(self, order_id: int, requester: Requester) -> Order:
        """Cancel a pending or processing order and put its stock back"""
        order = await self._load_order(order_id)
        self._check_access(order, requester, "cancel")

        if order.status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise BadRequestError("Cannot cancel shipped or delivered orders")
        if order.status == OrderStatus.CANCELLED:
            raise BadRequestError("Order is already cancelled")

        async def flip_status(conn) -> Order:
            cancelled = await self.store.mark_cancelled(conn, order_id)
            if cancelled is None:
                raise BadRequestError("Order can no longer be cancelled")
            return cancelled

        cancelled = await self._commit(
            "cancelling order",
            flip_status,
            [
                LedgerOp(product_id=line.product_id, quantity=line.quantity, action=LedgerAction.RELEASE)
                for line in order.lines
            ]
        )

        self.logger.info(f"Order cancelled: {order_id} (by user {requester.user_id})")
        return cancelled

    @reports_server_errors("Failed to fetch order")
    async def get_order(self, order_id: int, requester: Requester) -> Order:
        order = await self._load_order(order_id)
        self._check_access(order, requester, "view")
        return order

    @reports_server_errors("Failed to fetch orders")
    async def list_user_orders(self, requester: Requester, page: Optional[int] = None,
                               limit: Optional[int] = None) -> OrderPage:
        """The requester's own orders, newest first"""
        page, limit = self._page_args(page, limit)
        async with self.db.pool.acquire() as conn:
            return await self.store.find_by_user(conn, requester.user_id, page, limit)

    @reports_server_errors("Failed to fetch orders")
    async def list_orders(self, requester: Requester, status: Optional[Union[OrderStatus, str]] = None,
                          page: Optional[int] = None, limit: Optional[int] = None) -> OrderPage:
        """All orders, optionally filtered by status (admin)"""
        if not requester.is_admin:
            raise ForbiddenError("Admin access required")
        status = self._parse_status(status) if status else None
        page, limit = self._page_args(page, limit)
        async with self.db.pool.acquire() as conn:
            return await self.store.find_all(conn, status, page, limit)

    @reports_server_errors("Failed to update order payment")
    async def mark_paid(self, order_id: int, requester: Requester,
                        payment_result: PaymentResult) -> Order:
        """Record a confirmed payment and start processing the order"""
        order = await self._load_order(order_id)
        self._check_access(order, requester, "update")

        if order.is_paid:
            raise BadRequestError("Order is already paid")
        if order.status == OrderStatus.CANCELLED:
            raise BadRequestError("Cannot pay for a cancelled order")

        async with self.db.pool.acquire() as conn:
            updated = await self.store.mark_paid(conn, order_id, payment_result)
        if updated is None:
            raise BadRequestError("Order can no longer be paid")

        self.logger.info(f"Order paid: {order_id}")
        return updated

    @reports_server_errors("Failed to update order status")
    async def update_status(self, order_id: int, requester: Requester,
                            status: Union[OrderStatus, str],
                            tracking_number: Optional[str] = None,
                            notes: Optional[str] = None) -> Order:
        """Advance an order along pending -> processing -> shipped -> delivered (admin)"""
        if not requester.is_admin:
            raise ForbiddenError("Admin access required")

        status = self._parse_status(status)
        if status == OrderStatus.CANCELLED:
            raise BadRequestError("Use order cancellation to cancel an order")

        order = await self._load_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise BadRequestError("Cannot update a cancelled order")
        if STATUS_FLOW.index(status) < STATUS_FLOW.index(order.status):
            raise BadRequestError(
                f"Cannot move order from {order.status.value} back to {status.value}"
            )

        async with self.db.pool.acquire() as conn:
            updated = await self.store.update_status(
                conn, order_id, order.status, status,
                tracking_number=tracking_number,
                notes=notes
            )
        if updated is None:
            raise BadRequestError("Order was modified concurrently, try again")

        self.logger.info(f"Order status updated: {order_id} - {status.value}")
        return updated

    @staticmethod
    def _parse_status(status: Union[OrderStatus, str]) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise BadRequestError("Invalid order status")
