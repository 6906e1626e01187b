import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, List, Optional
from pydantic import BaseModel, ValidationError
from ..config import Config
from ..errors import BadRequestError, ServerError, StoreError
from ..models.order import CartLine, PaymentMethod, PaymentResult, ShippingAddress
from ..models.user import Requester
from ..services.order_service import OrderService


class PlaceOrderRequest(BaseModel):
    order_items: List[CartLine]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod


class StatusUpdateRequest(BaseModel):
    status: str
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class OrderHandler:
    """Turns order service calls into response dicts for the transport layer"""

    def __init__(self, order_service: OrderService):
        self.order_service = order_service
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _failure(error: StoreError, cause: Optional[BaseException] = None, **extra) -> Dict[str, Any]:
        response = {"success": False, **error.to_dict(), **extra}
        if Config.DEBUG and cause is not None:
            response["stack"] = "".join(
                traceback.format_exception(type(cause), cause, cause.__traceback__)
            )
        return response

    async def _run(self, operation: str, call: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        try:
            return await call()
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            return self._failure(BadRequestError("Validation error"), errors=errors)
        except StoreError as e:
            self.logger.info(f"{operation} rejected: {e.message}")
            return self._failure(e, e)
        except Exception as e:
            self.logger.error(f"{operation} error: {e}", exc_info=True)
            return self._failure(ServerError(), e)

    async def place_order(self, requester: Requester, payload: Dict[str, Any]) -> Dict[str, Any]:
        async def call():
            request = PlaceOrderRequest.model_validate(payload)
            order = await self.order_service.place_order(
                requester,
                request.order_items,
                request.shipping_address,
                request.payment_method
            )
            return {"success": True, "order": order.model_dump(mode="json")}

        return await self._run("Create order", call)

    async def cancel_order(self, requester: Requester, order_id: int) -> Dict[str, Any]:
        async def call():
            order = await self.order_service.cancel_order(order_id, requester)
            return {
                "success": True,
                "message": "Order cancelled successfully",
                "order": order.model_dump(mode="json")
            }

        return await self._run("Cancel order", call)

    async def get_order(self, requester: Requester, order_id: int) -> Dict[str, Any]:
        async def call():
            order = await self.order_service.get_order(order_id, requester)
            return {"success": True, "order": order.model_dump(mode="json")}

        return await self._run("Get order", call)

    async def list_orders(self, requester: Requester, page: Optional[int] = None,
                          limit: Optional[int] = None, status: Optional[str] = None,
                          all_orders: bool = False) -> Dict[str, Any]:
        """The requester's orders, or every order when an admin asks for all of them"""
        async def call():
            if all_orders:
                result = await self.order_service.list_orders(requester, status, page, limit)
            else:
                result = await self.order_service.list_user_orders(requester, page, limit)
            data = result.model_dump(mode="json")
            return {
                "success": True,
                "orders": data.pop("orders"),
                "pagination": data
            }

        return await self._run("List orders", call)

    async def mark_paid(self, requester: Requester, order_id: int,
                        payload: Dict[str, Any]) -> Dict[str, Any]:
        async def call():
            payment_result = PaymentResult.model_validate(payload)
            order = await self.order_service.mark_paid(order_id, requester, payment_result)
            return {"success": True, "order": order.model_dump(mode="json")}

        return await self._run("Update order to paid", call)

    async def update_status(self, requester: Requester, order_id: int,
                            payload: Dict[str, Any]) -> Dict[str, Any]:
        async def call():
            request = StatusUpdateRequest.model_validate(payload)
            order = await self.order_service.update_status(
                order_id,
                requester,
                request.status,
                tracking_number=request.tracking_number,
                notes=request.notes
            )
            return {"success": True, "order": order.model_dump(mode="json")}

        return await self._run("Update order status", call)
