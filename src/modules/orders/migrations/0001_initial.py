from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import uuid6
from django.db import migrations, models

ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("processing", "Processing"),
    ("assigned_to_transporter", "Assigned to transporter"),
    ("accepted_by_transporter", "Accepted by transporter"),
    ("rejected_by_transporter", "Rejected by transporter"),
    ("in_transit", "In transit"),
    ("delivered", "Delivered"),
    ("certified", "Certified"),
    ("disputed", "Disputed"),
    ("return_to_wholesaler", "Return to wholesaler"),
    ("return_accepted", "Return accepted"),
    ("return_rejected", "Return rejected"),
    ("cancelled_by_retailer", "Cancelled by retailer"),
    ("cancelled_by_wholesaler", "Cancelled by wholesaler"),
    ("cancelled_by_transporter", "Cancelled by transporter"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="OrderRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("retailer_id", models.CharField(db_index=True, max_length=64)),
                ("wholesaler_id", models.CharField(db_index=True, max_length=64)),
                (
                    "transporter_id",
                    models.CharField(blank=True, db_index=True, max_length=64, null=True),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("measurement_unit", models.CharField(max_length=32)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=14
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUS_CHOICES, default="pending", max_length=32
                    ),
                ),
                ("cancellation_reason", models.TextField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, null=True)),
                ("dispute_reason", models.TextField(blank=True, null=True)),
                ("disputed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "delivery_certification_date",
                    models.DateTimeField(blank=True, null=True),
                ),
                ("actual_delivery_date", models.DateTimeField(blank=True, null=True)),
                ("delivery_place", models.CharField(max_length=255)),
                (
                    "delivery_latitude",
                    models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True),
                ),
                (
                    "delivery_longitude",
                    models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True),
                ),
                (
                    "order_notes",
                    models.TextField(
                        blank=True,
                        default="",
                        validators=[django.core.validators.MaxLengthValidator(500)],
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["status"], name="orders_status_idx"),
                    models.Index(fields=["-created_at"], name="orders_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(quantity__gte=1),
                        name="orders_quantity_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("sequence", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, max_length=32),
                ),
                (
                    "actor_role",
                    models.CharField(
                        choices=[
                            ("retailer", "Retailer"),
                            ("wholesaler", "Wholesaler"),
                            ("transporter", "Transporter"),
                        ],
                        max_length=16,
                    ),
                ),
                ("actor_id", models.CharField(max_length=64)),
                ("timestamp", models.DateTimeField()),
                ("reason", models.TextField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="orders.orderrecord",
                    ),
                ),
            ],
            options={
                "db_table": "order_status_history",
                "ordering": ["order", "sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order", "sequence"),
                        name="osh_order_sequence_unique",
                    ),
                ],
            },
        ),
    ]
