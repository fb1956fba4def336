"""Notification wording per order status."""

from __future__ import annotations

from typing import NamedTuple

from modules.notifications.models import NotificationKind
from modules.orders.constants import OrderStatus


class Wording(NamedTuple):
    kind: str
    title: str


_WORDING = {
    OrderStatus.PENDING: Wording(NotificationKind.NEW_ORDER, "New order received"),
    OrderStatus.ASSIGNED_TO_TRANSPORTER: Wording(
        NotificationKind.ORDER_ASSIGNED, "Order assigned to a transporter"
    ),
    OrderStatus.DELIVERED: Wording(NotificationKind.ORDER_DELIVERED, "Order delivered"),
    OrderStatus.DISPUTED: Wording(NotificationKind.ORDER_DISPUTED, "Delivery disputed"),
    OrderStatus.RETURN_TO_WHOLESALER: Wording(
        NotificationKind.ORDER_RETURN, "Order returned to wholesaler"
    ),
    OrderStatus.RETURN_ACCEPTED: Wording(NotificationKind.ORDER_RETURN, "Return accepted"),
    OrderStatus.RETURN_REJECTED: Wording(NotificationKind.ORDER_RETURN, "Return rejected"),
}


def wording_for(status: str) -> Wording:
    status = OrderStatus(status)
    return _WORDING.get(
        status,
        Wording(NotificationKind.ORDER_STATUS_UPDATE, f"Order {status.label.lower()}"),
    )


def message_for(order_id: str, status: str) -> str:
    return f"Order {order_id} is now {OrderStatus(status).label.lower()}."
