"""Asynchronous notification delivery."""

import structlog
from celery import shared_task

from modules.notifications.messages import message_for, wording_for
from modules.notifications.models import Notification

logger = structlog.get_logger(__name__)


@shared_task(name="notifications.deliver")
def deliver_notification(actor_id: str, order_id: str, new_status: str) -> str:
    """Store an in-app notification for ``actor_id``; returns its id."""
    wording = wording_for(new_status)
    notification = Notification.objects.create(
        recipient_id=actor_id,
        order_id=order_id,
        status=new_status,
        kind=wording.kind,
        title=wording.title,
        message=message_for(order_id, new_status),
    )
    logger.info(
        "notification.delivered",
        notification_id=str(notification.id),
        recipient_id=actor_id,
        order_id=order_id,
        status=new_status,
    )
    return str(notification.id)
