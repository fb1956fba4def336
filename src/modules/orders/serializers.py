"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py`` and returns ``domain.Order`` objects;
the output serializers below read those objects attribute by attribute.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import STATS_TIME_RANGES, OrderStatus

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the order placement payload."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    delivery_place = serializers.CharField(max_length=255)
    delivery_latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    delivery_longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    order_notes = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=500
    )


class UpdateStatusSerializer(serializers.Serializer):
    """Validates ``PATCH /orders/{id}/status/``.

    ``target_status`` is only checked for being a string here; whether the
    move is legal is the state machine's call, so an unknown status comes
    back as ``invalid_transition`` with the order's current status.
    """

    target_status = serializers.CharField(max_length=32)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    transporter_id = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=64
    )


class ListOrdersSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=["all", *OrderStatus.values], required=False, default="all"
    )
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    page_size = serializers.IntegerField(
        min_value=1, max_value=100, required=False, default=20
    )
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    min_total = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    max_total = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)


class StatisticsQuerySerializer(serializers.Serializer):
    time_range = serializers.ChoiceField(
        choices=list(STATS_TIME_RANGES), required=False, default="all"
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField()
    actor_role = serializers.CharField()
    actor_id = serializers.CharField()
    timestamp = serializers.DateTimeField()
    reason = serializers.CharField(allow_null=True)


class DeliveryDisputeSerializer(serializers.Serializer):
    reason = serializers.CharField()
    disputed_at = serializers.DateTimeField()


class OrderSerializer(serializers.Serializer):
    """Read serializer for the full order aggregate."""

    id = serializers.UUIDField()
    retailer_id = serializers.CharField()
    wholesaler_id = serializers.CharField()
    transporter_id = serializers.CharField(allow_null=True)
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField()
    measurement_unit = serializers.CharField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2)
    status = serializers.CharField()
    payment_status = serializers.CharField()
    status_history = StatusChangeSerializer(many=True)
    cancellation_reason = serializers.CharField(allow_null=True)
    rejection_reason = serializers.CharField(allow_null=True)
    delivery_dispute = DeliveryDisputeSerializer(allow_null=True)
    delivery_certification_date = serializers.DateTimeField(allow_null=True)
    actual_delivery_date = serializers.DateTimeField(allow_null=True)
    delivery_place = serializers.CharField()
    delivery_latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, allow_null=True
    )
    delivery_longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, allow_null=True
    )
    order_notes = serializers.CharField(allow_blank=True)
    version = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class StatusStatisticsSerializer(serializers.Serializer):
    count = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=16, decimal_places=2)
    average_value = serializers.DecimalField(max_digits=16, decimal_places=2)
    quantity = serializers.IntegerField()


class OrderStatisticsSerializer(serializers.Serializer):
    time_range = serializers.CharField()
    by_status = serializers.DictField(child=StatusStatisticsSerializer())
    total_orders = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=16, decimal_places=2)
    average_order_value = serializers.DecimalField(max_digits=16, decimal_places=2)
    total_quantity = serializers.IntegerField()
