"""Error taxonomy for the order pipeline.

Every error a caller can see derives from ``StoreError`` and carries an HTTP-like
``status_code`` and a stable ``category`` string. ``TransactionsUnsupported`` is
internal: the committer layer raises it and the order service recovers from it
by switching to the sequential path.
"""
from typing import Optional


class StoreError(Exception):
    """Base class for errors reported to callers"""
    status_code = 500
    category = "server_error"
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "category": self.category,
            "status_code": self.status_code,
        }


class BadRequestError(StoreError):
    status_code = 400
    category = "bad_request"
    default_message = "Bad request"


class ForbiddenError(StoreError):
    status_code = 403
    category = "forbidden"
    default_message = "Access denied"


class NotFoundError(StoreError):
    status_code = 404
    category = "not_found"
    default_message = "Resource not found"

    def __init__(self, resource: Optional[str] = None):
        super().__init__(f"{resource} not found" if resource else None)


class InsufficientStockError(StoreError):
    status_code = 409
    category = "insufficient_stock"
    default_message = "Insufficient stock"

    def __init__(self, product_id: int, name: Optional[str] = None,
                 available: Optional[int] = None, requested: Optional[int] = None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        message = f"Insufficient stock for {name or f'product {product_id}'}"
        if available is not None:
            message += f". Available: {available}"
        super().__init__(message)


class ServerError(StoreError):
    pass


class TransactionsUnsupported(Exception):
    """The database refused to open a multi-statement transaction"""
