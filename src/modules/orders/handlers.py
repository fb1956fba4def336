"""Event handlers for Orders domain events.

Every party to the order except the one who acted hears about a change.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import structlog

from modules.notifications.channel import INotificationChannel
from modules.orders.constants import OrderStatus
from modules.orders.events import OrderPlaced, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


def _recipients(parties: Iterable[Optional[str]], actor_id: str) -> List[str]:
    seen: List[str] = []
    for party in parties:
        if party and party != actor_id and party not in seen:
            seen.append(party)
    return seen


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    def __init__(self, channel: INotificationChannel) -> None:
        self._channel = channel

    def handle(self, event: OrderPlaced) -> None:
        for recipient in _recipients([event.wholesaler_id], event.retailer_id):
            self._channel.notify(recipient, event.aggregate_id, OrderStatus.PENDING.value)
        logger.info("order.event.placed", order_id=str(event.aggregate_id))


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def __init__(self, channel: INotificationChannel) -> None:
        self._channel = channel

    def handle(self, event: OrderStatusChanged) -> None:
        recipients = _recipients(
            [event.retailer_id, event.wholesaler_id, event.transporter_id],
            event.actor_id,
        )
        for recipient in recipients:
            self._channel.notify(recipient, event.aggregate_id, event.to_status)
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            from_status=event.from_status,
            to_status=event.to_status,
            notified=len(recipients),
        )
