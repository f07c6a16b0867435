"""
Order status machine and the order endpoints used by the account area and
the admin back office.

    pendingPayment -> orderPlaced -> orderConfirmed -> orderDispatched -> orderDelivered
    pendingPayment -> cancelled

The client only ever moves an order forward; advancing is a manual admin
action, one step at a time.
"""
import logging
from typing import Dict, List, Optional, Union

from pydantic import Field

from errors import OrderStatusError
from schemas import CamelModel, Order, OrderStatus, parse_response

logger = logging.getLogger(__name__)

_NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING_PAYMENT: OrderStatus.ORDER_PLACED,
    OrderStatus.ORDER_PLACED: OrderStatus.ORDER_CONFIRMED,
    OrderStatus.ORDER_CONFIRMED: OrderStatus.ORDER_DISPATCHED,
    OrderStatus.ORDER_DISPATCHED: OrderStatus.ORDER_DELIVERED,
}

STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING_PAYMENT: "Pending Payment",
    OrderStatus.ORDER_PLACED: "Placed",
    OrderStatus.ORDER_CONFIRMED: "Confirmed",
    OrderStatus.ORDER_DISPATCHED: "Dispatched",
    OrderStatus.ORDER_DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}

# Button text for moving an order into the keyed status
ACTION_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.ORDER_PLACED: "Mark Paid",
    OrderStatus.ORDER_CONFIRMED: "Confirm Order",
    OrderStatus.ORDER_DISPATCHED: "Dispatch Order",
    OrderStatus.ORDER_DELIVERED: "Mark Delivered",
}

StatusLike = Union[OrderStatus, str]


def next_status(status: StatusLike) -> Optional[OrderStatus]:
    return _NEXT_STATUS.get(OrderStatus(status))


def is_terminal(status: StatusLike) -> bool:
    return next_status(status) is None


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    current, target = OrderStatus(current), OrderStatus(target)
    if current is OrderStatus.PENDING_PAYMENT and target is OrderStatus.CANCELLED:
        return True
    return _NEXT_STATUS.get(current) is target


class OrderPage(CamelModel):
    data: List[Order] = Field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1


class CustomerOrders:
    """Order history for the signed-in customer."""

    def __init__(self, api):
        self.api = api

    def list(self) -> List[Order]:
        return parse_response(OrderPage, self.api.get("/orders")).data


class AdminOrders:
    def __init__(self, api):
        self.api = api

    def list(self, page: int = 1, limit: int = 10, status: Optional[StatusLike] = None) -> OrderPage:
        params = {"page": page, "limit": limit}
        if status is not None:
            params["status"] = OrderStatus(status).value
        return parse_response(OrderPage, self.api.get("/admin/orders", params=params))

    def get(self, order_id: str) -> Order:
        return parse_response(Order, self.api.get(f"/admin/orders/{order_id}"))

    def set_status(self, order_id: str, current: StatusLike, target: StatusLike) -> Order:
        if not can_transition(current, target):
            raise OrderStatusError(f"Cannot move order {order_id} from {OrderStatus(current).value} to {OrderStatus(target).value}")
        body = self.api.patch(f"/admin/orders/{order_id}/status", json={"status": OrderStatus(target).value})
        order = parse_response(Order, body)
        logger.info(f"Order {order_id} moved to {order.status.value}")
        return order

    def advance(self, order: Union[Order, str]) -> Order:
        """Move an order (or order id) one step forward."""
        if isinstance(order, str):
            order = self.get(order)
        target = next_status(order.status)
        if target is None:
            raise OrderStatusError(f"Order {order.id} is {order.status.value}; no further status")
        return self.set_status(order.id, order.status, target)
