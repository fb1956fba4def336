"""In-app notifications written when an order changes status.

One row per recipient and event.  Recipients only ever read their own rows
and flip ``read``; everything else is immutable once written.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import OrderStatus


class NotificationKind(models.TextChoices):
    NEW_ORDER = "new_order", "New order"
    ORDER_STATUS_UPDATE = "order_status_update", "Order status update"
    ORDER_ASSIGNED = "order_assigned", "Order assigned"
    ORDER_DELIVERED = "order_delivered", "Order delivered"
    ORDER_DISPUTED = "order_disputed", "Order disputed"
    ORDER_RETURN = "order_return", "Order return"


class Notification(BaseModel):
    recipient_id = models.CharField(max_length=64)
    order_id = models.UUIDField(db_index=True)
    status = models.CharField(max_length=32, choices=OrderStatus.choices)
    kind = models.CharField(
        max_length=32,
        choices=NotificationKind.choices,
        default=NotificationKind.ORDER_STATUS_UPDATE,
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient_id", "-created_at"], name="notif_recipient_created_idx"),
            models.Index(fields=["recipient_id", "read"], name="notif_recipient_read_idx"),
        ]

    def mark_read(self) -> None:
        if self.read:
            return
        self.read = True
        self.read_at = timezone.now()
        self.save(update_fields=["read", "read_at"])

    def __str__(self) -> str:
        return f"{self.recipient_id}: {self.title}"
