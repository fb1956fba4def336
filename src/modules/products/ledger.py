"""Stock ledger: the single entry point for stock mutation.

``reserve`` and ``restore`` are each one atomic step: a conditional
``UPDATE ... SET stock = stock - n WHERE stock >= n`` for the ORM adapter
and a locked check-and-set for the in-memory adapter. Concurrent orders
for the same product can never drive stock negative.  Neither adapter
reads a quantity and writes it back.

Both operations are idempotent per ``order_id``:
- a second ``reserve`` for the same order is a no-op;
- ``restore`` only gives back stock that was actually reserved for that
  order, and only once.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set, Tuple
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.models import MovementKind, Product, StockMovement

logger = structlog.get_logger(__name__)


class IStockLedger(ABC):
    """Per-product stock on hand, mutated only through these two calls."""

    @abstractmethod
    def reserve(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        """Take ``quantity`` out of stock for ``order_id``.

        Returns ``False`` when the order already holds a reservation.

        Raises:
            InsufficientStock: less than ``quantity`` on hand.
            ProductNotFound: unknown product.
        """

    @abstractmethod
    def restore(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        """Give back the stock reserved for ``order_id``.

        Returns ``False`` when nothing was reserved or it was already restored.
        """


class DjangoStockLedger(IStockLedger):
    """Ledger backed by the ``products`` table and ``StockMovement`` rows.

    Runs inside the caller's transaction when there is one, so a failed
    order transition rolls the stock change back with it.
    """

    @transaction.atomic
    def reserve(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        log = logger.bind(product_id=str(product_id), order_id=str(order_id), quantity=quantity)

        if StockMovement.objects.filter(order_id=order_id, kind=MovementKind.RESERVE).exists():
            log.info("stock.reserve_replayed")
            return False

        updated = Product.objects.filter(id=product_id, stock_quantity__gte=quantity).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        if not updated:
            available = (
                Product.objects.filter(id=product_id)
                .values_list("stock_quantity", flat=True)
                .first()
            )
            if available is None:
                raise ProductNotFound(f"Product {product_id} not found.")
            log.warning("stock.insufficient", available=available)
            raise InsufficientStock(
                f"Product {product_id}: requested {quantity}, available {available}.",
                available=available,
            )

        StockMovement.objects.create(
            product_id=product_id,
            order_id=order_id,
            kind=MovementKind.RESERVE,
            quantity=quantity,
        )
        log.info("stock.reserved")
        return True

    @transaction.atomic
    def restore(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        log = logger.bind(product_id=str(product_id), order_id=str(order_id), quantity=quantity)

        kinds = set(
            StockMovement.objects.filter(order_id=order_id).values_list("kind", flat=True)
        )
        if MovementKind.RESERVE.value not in kinds:
            log.info("stock.restore_skipped", reason="nothing_reserved")
            return False
        if MovementKind.RESTORE.value in kinds:
            log.info("stock.restore_replayed")
            return False

        Product.objects.filter(id=product_id).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )
        StockMovement.objects.create(
            product_id=product_id,
            order_id=order_id,
            kind=MovementKind.RESTORE,
            quantity=quantity,
        )
        log.info("stock.restored")
        return True


class InMemoryStockLedger(IStockLedger):
    """Thread-safe ledger over a plain dict, for tests and local tooling."""

    def __init__(self, stock: Optional[Dict[UUID, int]] = None) -> None:
        self._stock: Dict[UUID, int] = dict(stock or {})
        self._movements: Set[Tuple[UUID, str]] = set()
        self._lock = threading.Lock()

    def quantity(self, product_id: UUID) -> int:
        with self._lock:
            return self._stock.get(product_id, 0)

    def reserve(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        with self._lock:
            if (order_id, MovementKind.RESERVE) in self._movements:
                return False
            if product_id not in self._stock:
                raise ProductNotFound(f"Product {product_id} not found.")
            available = self._stock[product_id]
            if available < quantity:
                raise InsufficientStock(
                    f"Product {product_id}: requested {quantity}, available {available}.",
                    available=available,
                )
            self._stock[product_id] = available - quantity
            self._movements.add((order_id, MovementKind.RESERVE))
            return True

    def restore(self, product_id: UUID, quantity: int, order_id: UUID) -> bool:
        with self._lock:
            if (order_id, MovementKind.RESERVE) not in self._movements:
                return False
            if (order_id, MovementKind.RESTORE) in self._movements:
                return False
            self._stock[product_id] = self._stock.get(product_id, 0) + quantity
            self._movements.add((order_id, MovementKind.RESTORE))
            return True
