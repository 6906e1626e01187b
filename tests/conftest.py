"""Pytest fixtures for storefront tests.

The order service runs against in-memory stand-ins for the asyncpg pool, the
stock ledger, the order store and the catalog. They share one ``FakeBackend``;
a fake transaction takes the backend lock, snapshots that state on entry and
restores it when the block raises. It refuses to open at all to simulate a
pooler without transaction support. Reads and writes yield to the event loop,
so requests gathered together interleave the way they would against a server.
"""
import asyncio
import copy
from datetime import datetime, timezone
from decimal import Decimal

import asyncpg
import pytest

from storefront.config import Config
from storefront.errors import InsufficientStockError, NotFoundError
from storefront.models.order import CANCELLABLE_STATUSES, Order, OrderStatus, ShippingAddress
from storefront.models.product import Product
from storefront.models.user import Requester, UserRole
from storefront.services.notification_service import NotificationDispatcher, Notifier
from storefront.services.order_service import OrderService
from storefront.services.order_store import build_page


class FakeBackend:
    def __init__(self):
        self.products = {}
        self.orders = {}
        self.next_order_id = 1
        self.supports_transactions = True
        self.transaction_attempts = 0
        self.commits = 0
        self.rollbacks = 0
        # Row locks: one open transaction at a time
        self.lock = asyncio.Lock()

    def snapshot(self):
        return copy.deepcopy((self.products, self.orders, self.next_order_id))

    def restore(self, snapshot):
        self.products, self.orders, self.next_order_id = snapshot


class FakeTransaction:
    def __init__(self, backend):
        self.backend = backend
        self._snapshot = None

    async def __aenter__(self):
        self.backend.transaction_attempts += 1
        if not self.backend.supports_transactions:
            raise asyncpg.exceptions.FeatureNotSupportedError(
                "transaction blocks not allowed in statement pooling mode"
            )
        await self.backend.lock.acquire()
        self._snapshot = self.backend.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.backend.commits += 1
        else:
            self.backend.rollbacks += 1
            self.backend.restore(self._snapshot)
        self.backend.lock.release()
        return False


class FakeConnection:
    def __init__(self, backend):
        self.backend = backend

    def transaction(self):
        return FakeTransaction(self.backend)


class _Acquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakePool:
    def __init__(self, backend):
        self.backend = backend

    def acquire(self):
        return _Acquire(FakeConnection(self.backend))


class FakeDatabase:
    def __init__(self, backend):
        self.pool = FakePool(backend)
        self.supports_transactions = None


class InMemoryProductService:
    """Catalog reads; ``stale`` overrides what a lookup reports, like a read that lost a race"""

    def __init__(self, backend):
        self.backend = backend
        self.stale = {}

    async def get_product(self, product_id):
        await asyncio.sleep(0)
        product = self.backend.products.get(product_id)
        if product is None or not product.is_active:
            return None
        return product.model_copy(update=self.stale.get(product_id, {}))


class InMemoryStockLedger:
    def __init__(self, backend):
        self.backend = backend

    async def reserve(self, conn, product_id, quantity):
        await asyncio.sleep(0)
        product = self.backend.products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id}")
        if product.stock < quantity:
            raise InsufficientStockError(product_id, available=product.stock, requested=quantity)
        product.stock -= quantity
        return product.stock

    async def release(self, conn, product_id, quantity):
        await asyncio.sleep(0)
        product = self.backend.products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id}")
        product.stock += quantity
        return product.stock


class InMemoryOrderStore:
    def __init__(self, backend):
        self.backend = backend

    def _now(self):
        return datetime.now(timezone.utc)

    async def insert(self, conn, draft):
        await asyncio.sleep(0)
        order = Order(
            order_id=self.backend.next_order_id,
            created_at=self._now(),
            **draft.model_dump()
        )
        self.backend.orders[order.order_id] = order
        self.backend.next_order_id += 1
        return order.model_copy(deep=True)

    async def get(self, conn, order_id):
        await asyncio.sleep(0)
        order = self.backend.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    def _page(self, orders, page, limit):
        orders = sorted(orders, key=lambda o: (o.created_at, o.order_id), reverse=True)
        start = (page - 1) * limit
        chunk = [o.model_copy(deep=True) for o in orders[start:start + limit]]
        return build_page(chunk, len(orders), page, limit)

    async def find_by_user(self, conn, user_id, page, limit):
        return self._page(
            [o for o in self.backend.orders.values() if o.user_id == user_id], page, limit
        )

    async def find_all(self, conn, status, page, limit):
        return self._page(
            [o for o in self.backend.orders.values() if status is None or o.status == status],
            page, limit
        )

    async def mark_cancelled(self, conn, order_id):
        order = self.backend.orders.get(order_id)
        if order is None or order.status not in CANCELLABLE_STATUSES:
            return None
        order.status = OrderStatus.CANCELLED
        order.updated_at = self._now()
        return order.model_copy(deep=True)

    async def mark_paid(self, conn, order_id, payment_result):
        order = self.backend.orders.get(order_id)
        if order is None or order.is_paid or order.status == OrderStatus.CANCELLED:
            return None
        order.is_paid = True
        order.paid_at = self._now()
        order.payment_result = payment_result
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.PROCESSING
        order.updated_at = self._now()
        return order.model_copy(deep=True)

    async def update_status(self, conn, order_id, expected, status, tracking_number=None, notes=None):
        order = self.backend.orders.get(order_id)
        if order is None or order.status != expected:
            return None
        order.status = status
        if tracking_number is not None:
            order.tracking_number = tracking_number
        if notes is not None:
            order.notes = notes
        if status == OrderStatus.DELIVERED:
            order.is_delivered = True
            order.delivered_at = order.delivered_at or self._now()
        order.updated_at = self._now()
        return order.model_copy(deep=True)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_order_confirmation(self, order, chat_id):
        if self.fail:
            raise RuntimeError("mail server unreachable")
        self.sent.append((order.order_id, chat_id))


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    monkeypatch.setattr(Config, "ADMIN_IDS", [])
    monkeypatch.setattr(Config, "DEBUG", False)
    monkeypatch.setattr(Config, "TIMEZONE", "UTC")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def db(backend):
    return FakeDatabase(backend)


@pytest.fixture
def add_product(backend):
    def _add(product_id, price, stock, name=None, is_active=True):
        product = Product(
            product_id=product_id,
            name=name or f"Product {product_id}",
            price=Decimal(str(price)),
            stock=stock,
            is_active=is_active,
            created_at=datetime.now(timezone.utc)
        )
        backend.products[product_id] = product
        return product
    return _add


@pytest.fixture
def product_service(backend):
    return InMemoryProductService(backend)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def make_service(db, backend, product_service, dispatcher):
    def _make(transaction_mode="auto"):
        return OrderService(
            db,
            product_service=product_service,
            ledger=InMemoryStockLedger(backend),
            store=InMemoryOrderStore(backend),
            dispatcher=dispatcher,
            transaction_mode=transaction_mode
        )
    return _make


@pytest.fixture
def order_service(make_service):
    return make_service()


@pytest.fixture
def customer():
    return Requester(user_id=101)


@pytest.fixture
def other_customer():
    return Requester(user_id=202)


@pytest.fixture
def admin():
    return Requester(user_id=1, role=UserRole.ADMIN)


@pytest.fixture
def shipping():
    return ShippingAddress(
        address="12 Market Street",
        city="Springfield",
        postal_code="12345",
        country="US"
    )
