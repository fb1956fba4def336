"""Recipient-facing notification use cases."""

from __future__ import annotations

from uuid import UUID

import structlog
from django.db.models import QuerySet
from django.utils import timezone

from modules.core.actors import ActorContext
from modules.core.exceptions import NotFound
from modules.notifications.models import Notification

logger = structlog.get_logger(__name__)


class NotificationNotFound(NotFound):
    """No such notification for this recipient."""


class NotificationService:
    def list_for(self, actor: ActorContext, unread_only: bool = False) -> QuerySet:
        queryset = Notification.objects.filter(recipient_id=actor.id)
        if unread_only:
            queryset = queryset.filter(read=False)
        return queryset.order_by("-created_at", "-id")

    def unread_count(self, actor: ActorContext) -> int:
        return Notification.objects.filter(recipient_id=actor.id, read=False).count()

    def mark_read(self, actor: ActorContext, notification_id: UUID) -> Notification:
        """Raises ``NotificationNotFound`` for other recipients' notifications too."""
        notification = Notification.objects.filter(
            id=notification_id, recipient_id=actor.id
        ).first()
        if notification is None:
            raise NotificationNotFound(f"Notification {notification_id} not found.")
        notification.mark_read()
        return notification

    def mark_all_read(self, actor: ActorContext) -> int:
        updated = Notification.objects.filter(recipient_id=actor.id, read=False).update(
            read=True,
            read_at=timezone.now(),
            updated_at=timezone.now(),
        )
        logger.info("notification.marked_all_read", recipient_id=actor.id, count=updated)
        return updated
