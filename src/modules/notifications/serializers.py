from rest_framework import serializers

from modules.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "order_id",
            "status",
            "kind",
            "title",
            "message",
            "read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields
