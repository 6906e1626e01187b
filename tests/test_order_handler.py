import pytest

from storefront.config import Config
from storefront.handlers import OrderHandler


@pytest.fixture
def handler(order_service):
    return OrderHandler(order_service)


@pytest.fixture
def payload():
    return {
        "order_items": [{"product_id": 1, "quantity": 2}],
        "shipping_address": {
            "address": "12 Market Street",
            "city": "Springfield",
            "postal_code": "12345",
            "country": "US"
        },
        "payment_method": "paypal"
    }


async def test_place_order_response(handler, add_product, customer, payload):
    add_product(1, price="19.99", stock=5)

    response = await handler.place_order(customer, payload)

    assert response["success"] is True
    assert response["order"]["status"] == "pending"
    assert response["order"]["payment_method"] == "paypal"
    assert response["order"]["user_id"] == customer.user_id


async def test_invalid_payload_lists_fields(handler, customer, payload):
    payload["order_items"][0]["quantity"] = 0
    del payload["shipping_address"]["city"]

    response = await handler.place_order(customer, payload)

    assert response["success"] is False
    assert response["status_code"] == 400
    assert response["error"] == "Validation error"
    fields = {e["field"] for e in response["errors"]}
    assert "order_items.0.quantity" in fields
    assert "shipping_address.city" in fields


async def test_empty_cart_response(handler, customer, payload):
    payload["order_items"] = []

    response = await handler.place_order(customer, payload)

    assert response["status_code"] == 400
    assert response["error"] == "No order items"


async def test_insufficient_stock_response(handler, add_product, customer, payload):
    add_product(1, price=10, stock=1, name="Desk Lamp")

    response = await handler.place_order(customer, payload)

    assert response == {
        "success": False,
        "error": "Insufficient stock for Desk Lamp. Available: 1",
        "category": "insufficient_stock",
        "status_code": 409,
    }


async def test_debug_adds_stack(handler, customer, monkeypatch):
    monkeypatch.setattr(Config, "DEBUG", True)

    response = await handler.get_order(customer, 42)

    assert response["status_code"] == 404
    assert "NotFoundError" in response["stack"]


async def test_unexpected_error_is_hidden(handler, customer, order_service):
    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    order_service.list_user_orders = explode

    response = await handler.list_orders(customer)

    assert response["success"] is False
    assert response["status_code"] == 500
    assert response["error"] == "Server error"


async def test_cancel_order_response(handler, add_product, customer, payload):
    add_product(1, price=10, stock=5)
    placed = await handler.place_order(customer, payload)

    response = await handler.cancel_order(customer, placed["order"]["order_id"])

    assert response["success"] is True
    assert response["message"] == "Order cancelled successfully"
    assert response["order"]["status"] == "cancelled"


async def test_list_orders_pagination(handler, add_product, customer, payload):
    add_product(1, price=10, stock=50)
    for _ in range(3):
        await handler.place_order(customer, payload)

    response = await handler.list_orders(customer, page=1, limit=2)

    assert len(response["orders"]) == 2
    assert response["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total_orders": 3,
        "has_next": True,
        "has_prev": False,
    }


async def test_list_all_orders_forbidden_for_customers(handler, customer):
    response = await handler.list_orders(customer, all_orders=True)

    assert response["status_code"] == 403


async def test_mark_paid_and_update_status(handler, add_product, customer, admin, payload):
    add_product(1, price=10, stock=5)
    placed = await handler.place_order(customer, payload)
    order_id = placed["order"]["order_id"]

    paid = await handler.mark_paid(customer, order_id, {"id": "PAY-1", "status": "COMPLETED"})
    shipped = await handler.update_status(admin, order_id, {"status": "shipped", "tracking_number": "TRK1"})

    assert paid["order"]["is_paid"] is True
    assert paid["order"]["status"] == "processing"
    assert shipped["order"]["status"] == "shipped"
    assert shipped["order"]["tracking_number"] == "TRK1"


async def test_update_status_with_bad_value(handler, add_product, customer, admin, payload):
    add_product(1, price=10, stock=5)
    placed = await handler.place_order(customer, payload)

    response = await handler.update_status(admin, placed["order"]["order_id"], {"status": "teleported"})

    assert response["status_code"] == 400
    assert response["error"] == "Invalid order status"
