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
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
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
                ("recipient_id", models.CharField(max_length=64)),
                ("order_id", models.UUIDField(db_index=True)),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, max_length=32),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("new_order", "New order"),
                            ("order_status_update", "Order status update"),
                            ("order_assigned", "Order assigned"),
                            ("order_delivered", "Order delivered"),
                            ("order_disputed", "Order disputed"),
                            ("order_return", "Order return"),
                        ],
                        default="order_status_update",
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "notifications",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["recipient_id", "-created_at"],
                        name="notif_recipient_created_idx",
                    ),
                    models.Index(
                        fields=["recipient_id", "read"],
                        name="notif_recipient_read_idx",
                    ),
                ],
            },
        ),
    ]
