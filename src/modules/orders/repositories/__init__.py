"""Order repositories package."""

from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    OrderListFilters,
    StatusSummaryRow,
)
from modules.orders.repositories.memory import InMemoryOrderRepository

__all__ = [
    "IOrderRepository",
    "InMemoryOrderRepository",
    "OrderDjangoRepository",
    "OrderListFilters",
    "StatusSummaryRow",
]
