from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.notifications.channel import CeleryNotificationChannel
        from modules.orders.events import OrderPlaced, OrderStatusChanged
        from modules.orders.handlers import OrderPlacedHandler, OrderStatusChangedHandler
        from shared.infrastructure.bus import event_bus

        channel = CeleryNotificationChannel()
        event_bus.subscribe(OrderPlaced, OrderPlacedHandler(channel))
        event_bus.subscribe(OrderStatusChanged, OrderStatusChangedHandler(channel))
