from ..models.order import Order, OrderStatus
from ..utils.formatters import format_price, format_datetime

class Messages:
    STATUS_EMOJI = {
        OrderStatus.PENDING: "⏳",
        OrderStatus.PROCESSING: "⚙️",
        OrderStatus.SHIPPED: "🚚",
        OrderStatus.DELIVERED: "📦",
        OrderStatus.CANCELLED: "❌",
    }

    @staticmethod
    def format_order(order: Order) -> str:
        """Render an order summary"""
        items_text = "\n".join([
            f"- {line.quantity}x {line.name}: {format_price(line.unit_price)}"
            for line in order.lines
        ])

        return (
            f"🛍 Order #{order.order_id}\n"
            f"------------------\n"
            f"{items_text}\n"
            f"------------------\n"
            f"Items: {format_price(order.items_price)}\n"
            f"Tax: {format_price(order.tax_price)}\n"
            f"Shipping: {format_price(order.shipping_price)}\n"
            f"💰 Total: {format_price(order.total_price)}\n"
            f"📊 Status: {Messages.STATUS_EMOJI[order.status]} {order.status.value}\n"
            f"🕒 Date: {format_datetime(order.created_at)}\n"
        )

    @staticmethod
    def order_confirmation(order: Order) -> str:
        """Message sent to the customer after checkout"""
        return (
            "Thank you for your order!\n\n"
            f"{Messages.format_order(order)}\n"
            "We'll let you know when your items ship."
        )
