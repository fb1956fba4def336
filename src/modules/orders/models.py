"""Order persistence models.

Business rules implemented:
- ``total_price`` is written at placement and never recalculated.
- ``version`` backs optimistic concurrency: the repository only writes a
  transition when the stored version still matches the one it read.
- Each status change adds one ``OrderStatusHistory`` row; rows are numbered
  per order and the ``(order, sequence)`` pair is unique, so two writers
  can never both append the same step.
- Idempotent placement through the nullable, unique ``idempotency_key``.
- Deleting an order removes its history (CASCADE).

The state machine never touches these classes; it works on the immutable
aggregate in ``domain.py`` and the repository maps between the two.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxLengthValidator, MinValueValidator
from django.db import models

from modules.core.actors import ActorRole
from modules.core.models import BaseModel
from modules.orders.constants import OrderStatus, PaymentStatus


class OrderRecord(BaseModel):
    """Row-level representation of the Order aggregate root."""

    retailer_id = models.CharField(max_length=64, db_index=True)
    wholesaler_id = models.CharField(max_length=64, db_index=True)
    transporter_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    measurement_unit = models.CharField(max_length=32)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    status = models.CharField(
        max_length=32,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    cancellation_reason = models.TextField(null=True, blank=True)
    rejection_reason = models.TextField(null=True, blank=True)
    dispute_reason = models.TextField(null=True, blank=True)
    disputed_at = models.DateTimeField(null=True, blank=True)
    delivery_certification_date = models.DateTimeField(null=True, blank=True)
    actual_delivery_date = models.DateTimeField(null=True, blank=True)
    delivery_place = models.CharField(max_length=255)
    delivery_latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    delivery_longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    order_notes = models.TextField(
        blank=True,
        default="",
        validators=[MaxLengthValidator(500)],
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="orders_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.id} ({self.status})"


class OrderStatusHistory(models.Model):
    """Append-only audit trail for order status transitions.

    Rows are immutable: they are only ever inserted, and deleted together
    with their order.
    """

    id = models.BigAutoField(primary_key=True)
    order = models.ForeignKey(
        "orders.OrderRecord",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    sequence = models.PositiveIntegerField()
    status = models.CharField(max_length=32, choices=OrderStatus.choices)
    actor_role = models.CharField(max_length=16, choices=ActorRole.choices)
    actor_id = models.CharField(max_length=64)
    timestamp = models.DateTimeField()
    reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "order_status_history"
        ordering = ["order", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="osh_order_sequence_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.status}"
