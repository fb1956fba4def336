"""Product catalogue entry and its stock ledger.

Business rules implemented:
- SKU is unique and normalised to uppercase.
- Price must be greater than zero; stock can never go negative
  (database CHECK constraints back the model validation).
- ``min_order_quantity`` is the smallest quantity a retailer may order.
- Stock is mutated **only** through ``IStockLedger`` (``ledger.py``), which
  writes one ``StockMovement`` per (order, kind), the idempotency guard
  that makes a replayed acceptance or cancellation a no-op.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(BaseModel):
    """A wholesaler's product as seen by the order engine."""

    wholesaler_id = models.CharField(max_length=64, db_index=True)
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    measurement_unit = models.CharField(max_length=32, default="unit")
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    min_order_quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="products_price_positive",
            ),
            models.CheckConstraint(
                check=models.Q(stock_quantity__gte=0),
                name="products_stock_non_negative",
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})
        if self.min_order_quantity is not None and self.min_order_quantity < 1:
            raise ValidationError(
                {"min_order_quantity": "Minimum order quantity must be at least 1."}
            )

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product.created",
                product_id=str(self.id),
                sku=self.sku,
                wholesaler_id=self.wholesaler_id,
            )

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class MovementKind(models.TextChoices):
    RESERVE = "reserve", "Reserve"
    RESTORE = "restore", "Restore"


class StockMovement(BaseModel):
    """Append-only record of a stock change caused by an order.

    At most one ``reserve`` and one ``restore`` row exist per order; the
    unique constraint is what turns a retried ledger call into a no-op.
    """

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="movements",
    )
    order_id = models.UUIDField(db_index=True)
    kind = models.CharField(max_length=10, choices=MovementKind.choices)
    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = "stock_movements"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order_id", "kind"],
                name="stock_movements_order_kind_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind} {self.quantity} x {self.product_id} (order {self.order_id})"
