"""Request handlers"""
from .order_handler import OrderHandler

__all__ = [
    'OrderHandler',
]
