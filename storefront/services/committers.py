"""Commit strategies for order transitions.

An order transition is one write to the order row (insert or status flip)
followed by stock movements for each line. ``AtomicCommitter`` runs them in a
single transaction. ``SequentialCommitter`` runs the same steps one after the
other on deployments that refuse transaction blocks; there, a stock movement
that fails after the order row was written is logged and left as is, so the
order can exist with lines that were never reserved.
"""
import logging
from enum import Enum
from typing import Awaitable, Callable, List
import asyncpg
from pydantic import BaseModel, Field
from ..database.database import is_transaction_unsupported
from ..errors import StoreError, TransactionsUnsupported
from ..models.order import Order
from .stock_ledger import StockLedger

OrderOp = Callable[..., Awaitable[Order]]


class LedgerAction(str, Enum):
    RESERVE = "reserve"
    RELEASE = "release"


class LedgerOp(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    action: LedgerAction


class OrderCommitter:
    """Applies an order write plus its stock movements"""
    name = "base"

    def __init__(self, db, ledger: StockLedger):
        self.db = db
        self.ledger = ledger
        self.logger = logging.getLogger(__name__)

    async def commit_order_transition(self, order_op: OrderOp, ledger_ops: List[LedgerOp]) -> Order:
        raise NotImplementedError

    async def _apply(self, conn, op: LedgerOp) -> int:
        if op.action == LedgerAction.RESERVE:
            return await self.ledger.reserve(conn, op.product_id, op.quantity)
        return await self.ledger.release(conn, op.product_id, op.quantity)


class AtomicCommitter(OrderCommitter):
    name = "atomic"

    async def commit_order_transition(self, order_op: OrderOp, ledger_ops: List[LedgerOp]) -> Order:
        async with self.db.pool.acquire() as conn:
            try:
                async with conn.transaction():
                    order = await order_op(conn)
                    for op in ledger_ops:
                        await self._apply(conn, op)
                    return order
            except asyncpg.PostgresError as e:
                if is_transaction_unsupported(e):
                    raise TransactionsUnsupported(str(e)) from e
                raise


class SequentialCommitter(OrderCommitter):
    name = "sequential"

    async def commit_order_transition(self, order_op: OrderOp, ledger_ops: List[LedgerOp]) -> Order:
        async with self.db.pool.acquire() as conn:
            order = await order_op(conn)
            for op in ledger_ops:
                try:
                    await self._apply(conn, op)
                except StoreError as e:
                    # No rollback here: the order row is already written
                    self.logger.error(
                        f"Order {order.order_id}: {op.action.value} of {op.quantity} "
                        f"x product {op.product_id} failed without a transaction: {e.message}"
                    )
            return order
