"""In-memory order engine used by the unit tests.

Every collaborator of ``OrderService`` is swapped for its in-memory
adapter; the clock is pinned so timestamps can be asserted exactly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

import pytest

from modules.core.actors import ActorContext, ActorRole
from modules.notifications.channel import InMemoryNotificationChannel
from modules.orders.constants import OrderStatus
from modules.orders.domain import Order, StatusChange
from modules.orders.dtos import PlaceOrderDTO
from modules.orders.events import OrderPlaced, OrderStatusChanged
from modules.orders.handlers import OrderPlacedHandler, OrderStatusChangedHandler
from modules.orders.repositories.memory import InMemoryOrderRepository
from modules.orders.services import OrderService
from modules.products.ledger import InMemoryStockLedger
from modules.products.models import Product, ProductStatus
from modules.products.repositories.interfaces import IProductRepository
from shared.infrastructure.bus import InMemoryEventBus

NOW = datetime(2026, 3, 4, 15, 30, tzinfo=timezone.utc)


class InMemoryProductRepository(IProductRepository):
    """Read side of the catalogue; stock figures come from the ledger."""

    def __init__(self, ledger: InMemoryStockLedger, *products: Product) -> None:
        self._ledger = ledger
        self._products: Dict[UUID, Product] = {p.id: p for p in products}

    def get_by_id(self, id: str) -> Optional[Product]:
        try:
            return self._products.get(UUID(str(id)))
        except ValueError:
            return None

    def available_quantity(self, id: str) -> int:
        return self._ledger.quantity(UUID(str(id)))


@pytest.fixture()
def now():
    return NOW


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def retailer():
    return ActorContext(role=ActorRole.RETAILER, id="retailer-1")


@pytest.fixture()
def other_retailer():
    return ActorContext(role=ActorRole.RETAILER, id="retailer-2")


@pytest.fixture()
def wholesaler():
    return ActorContext(role=ActorRole.WHOLESALER, id="wholesaler-1")


@pytest.fixture()
def transporter():
    return ActorContext(role=ActorRole.TRANSPORTER, id="T1")


# ---------------------------------------------------------------------------
# In-memory adapters
# ---------------------------------------------------------------------------


@pytest.fixture()
def catalog_product(wholesaler):
    return Product(
        wholesaler_id=wholesaler.id,
        sku="FLOUR-25",
        name="Wheat flour 25kg",
        measurement_unit="bag",
        price=Decimal("1000.00"),
        stock_quantity=20,
        min_order_quantity=2,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def inactive_product(wholesaler):
    return Product(
        wholesaler_id=wholesaler.id,
        sku="RICE-05",
        name="Long grain rice 5kg",
        price=Decimal("7.90"),
        stock_quantity=50,
        status=ProductStatus.INACTIVE,
    )


@pytest.fixture()
def ledger(catalog_product, inactive_product):
    return InMemoryStockLedger({catalog_product.id: 20, inactive_product.id: 50})


@pytest.fixture()
def product_repository(ledger, catalog_product, inactive_product):
    return InMemoryProductRepository(ledger, catalog_product, inactive_product)


@pytest.fixture()
def order_repository():
    return InMemoryOrderRepository(lock_timeout=1.0)


@pytest.fixture()
def channel():
    return InMemoryNotificationChannel()


@pytest.fixture()
def event_bus(channel):
    bus = InMemoryEventBus()
    bus.subscribe(OrderPlaced, OrderPlacedHandler(channel))
    bus.subscribe(OrderStatusChanged, OrderStatusChangedHandler(channel))
    return bus


@pytest.fixture()
def service(order_repository, product_repository, ledger, event_bus):
    return OrderService(
        order_repository=order_repository,
        product_repository=product_repository,
        ledger=ledger,
        event_bus=event_bus,
        clock=lambda: NOW,
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def place(service, retailer, catalog_product):
    """Place an order for ``catalog_product`` as ``retailer``."""

    def _place(quantity=5, actor=None, **overrides):
        dto = PlaceOrderDTO(
            product_id=overrides.pop("product_id", catalog_product.id),
            quantity=quantity,
            delivery_place=overrides.pop("delivery_place", "Store #1, Main Street"),
            **overrides,
        )
        return service.place_order(actor or retailer, dto)

    return _place


@pytest.fixture()
def advance(service, retailer, wholesaler, transporter):
    """Walk an order along the happy path (plus dispute/return) up to ``status``."""
    path = [
        (OrderStatus.ACCEPTED, wholesaler, {}),
        (OrderStatus.PROCESSING, wholesaler, {}),
        (OrderStatus.ASSIGNED_TO_TRANSPORTER, wholesaler, {"transporter_id": transporter.id}),
        (OrderStatus.ACCEPTED_BY_TRANSPORTER, transporter, {}),
        (OrderStatus.IN_TRANSIT, transporter, {}),
        (OrderStatus.DELIVERED, transporter, {}),
        (OrderStatus.DISPUTED, retailer, {"reason": "damaged goods"}),
        (OrderStatus.RETURN_TO_WHOLESALER, wholesaler, {}),
    ]

    def _advance(order, status):
        for target, actor, kwargs in path:
            if order.status == status:
                break
            order = service.update_status(order.id, target, actor, **kwargs)
        assert order.status == status
        return order

    return _advance


@pytest.fixture()
def make_order(retailer, wholesaler):
    """Build a bare ``Order`` aggregate in any status, bypassing the service."""

    def _make(status=OrderStatus.PENDING, transporter_id=None, **overrides):
        fields = dict(
            id=UUID("01890a5d-ac96-774b-bcce-b302099a8057"),
            retailer_id=retailer.id,
            wholesaler_id=wholesaler.id,
            transporter_id=transporter_id,
            product_id=UUID("01890a5d-ac96-774b-bcce-b302099a8058"),
            quantity=5,
            measurement_unit="bag",
            unit_price=Decimal("1000.00"),
            total_price=Decimal("5000.00"),
            status=status,
            status_history=(
                StatusChange(
                    status=OrderStatus.PENDING,
                    actor_role=retailer.role,
                    actor_id=retailer.id,
                    timestamp=NOW,
                ),
            ),
            delivery_place="Store #1",
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return Order(**fields)

    return _make
