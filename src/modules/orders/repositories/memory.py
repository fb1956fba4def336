"""In-memory implementation of the Order repository.

Used by unit tests and local experiments.  Mirrors the ORM adapter's
locking semantics with one ``threading.RLock`` per order: ``get_for_update``
acquires it (bounded by ``ORDER_LOCK_TIMEOUT_SECONDS``) and the enclosing
``atomic()`` block releases every lock its thread took.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple
from uuid import UUID

import structlog
from django.conf import settings

from modules.core.actors import ActorContext
from modules.orders.domain import Order
from modules.orders.exceptions import ConcurrencyConflict, OrderLockTimeout
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    OrderListFilters,
    StatusSummaryRow,
)

logger = structlog.get_logger(__name__)


class InMemoryOrderRepository(IOrderRepository):
    def __init__(self, lock_timeout: Optional[float] = None) -> None:
        self._orders: Dict[UUID, Order] = {}
        self._locks: Dict[UUID, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._held = threading.local()
        self._lock_timeout = (
            lock_timeout
            if lock_timeout is not None
            else getattr(settings, "ORDER_LOCK_TIMEOUT_SECONDS", 5.0)
        )

    # ------------------------------------------------------------------
    # Create / Read
    # ------------------------------------------------------------------

    def create(self, order: Order) -> Order:
        with self._registry_lock:
            if order.id in self._orders:
                raise ConcurrencyConflict(f"Order {order.id} already exists.")
            if order.idempotency_key and any(
                o.idempotency_key == order.idempotency_key for o in self._orders.values()
            ):
                raise ConcurrencyConflict(
                    f"Idempotency key {order.idempotency_key} already used."
                )
            self._orders[order.id] = order
        return order

    def get_by_id(self, id: str) -> Optional[Order]:
        key = _parse(id)
        if key is None:
            return None
        with self._registry_lock:
            return self._orders.get(key)

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        with self._registry_lock:
            return next(
                (o for o in self._orders.values() if o.idempotency_key == key),
                None,
            )

    def list(
        self, filters: OrderListFilters, page: int, page_size: int
    ) -> Tuple[List[Order], int]:
        with self._registry_lock:
            matches = [o for o in self._orders.values() if _matches(o, filters)]
        matches.sort(key=lambda o: (o.created_at, o.id), reverse=True)
        offset = (page - 1) * page_size
        return matches[offset : offset + page_size], len(matches)

    def status_summary(
        self, actor: ActorContext, since: Optional[datetime]
    ) -> Dict[str, StatusSummaryRow]:
        with self._registry_lock:
            orders = [
                o
                for o in self._orders.values()
                if o.involves(actor) and (since is None or o.created_at >= since)
            ]
        summary: Dict[str, StatusSummaryRow] = {}
        for order in orders:
            key = order.status.value
            row = summary.get(key) or StatusSummaryRow(key, 0, Decimal("0.00"), 0)
            summary[key] = StatusSummaryRow(
                key,
                row.count + 1,
                row.revenue + order.total_price,
                row.quantity + order.quantity,
            )
        return summary

    # ------------------------------------------------------------------
    # Locked read-modify-write
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        held = self._held_locks()
        depth = len(held)
        try:
            yield
        finally:
            # Release only what this block acquired; outer blocks keep theirs.
            while len(held) > depth:
                held.pop().release()

    def get_for_update(self, id: str) -> Optional[Order]:
        key = _parse(id)
        if key is None:
            return None
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self._lock_timeout):
            logger.warning("order.lock_timeout", order_id=str(key))
            raise OrderLockTimeout(f"Timed out waiting for order {key}.")
        self._held_locks().append(lock)
        with self._registry_lock:
            return self._orders.get(key)

    def update(self, order: Order, expected_version: int) -> Order:
        with self._registry_lock:
            current = self._orders.get(order.id)
            if current is None or current.version != expected_version:
                logger.warning(
                    "order.version_conflict",
                    order_id=str(order.id),
                    expected_version=expected_version,
                )
                raise ConcurrencyConflict(f"Order {order.id} was modified concurrently.")
            self._orders[order.id] = order
        return order

    def delete(self, id: str, expected_version: Optional[int] = None) -> bool:
        key = _parse(id)
        with self._registry_lock:
            current = self._orders.get(key)
            if current is None:
                return False
            if expected_version is not None and current.version != expected_version:
                return False
            del self._orders[key]
            # Waiters still hold the old lock object and will read "not found".
            self._locks.pop(key, None)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_for(self, key: UUID) -> threading.RLock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.RLock())

    def _held_locks(self) -> list:
        if not hasattr(self._held, "locks"):
            self._held.locks = []
        return self._held.locks


def _parse(id) -> Optional[UUID]:
    if isinstance(id, UUID):
        return id
    try:
        return UUID(str(id))
    except ValueError:
        return None


def _matches(order: Order, filters: OrderListFilters) -> bool:
    if not order.involves(filters.actor):
        return False
    if filters.status is not None and order.status.value != filters.status:
        return False
    created = order.created_at.date()
    if filters.start_date is not None and created < filters.start_date:
        return False
    if filters.end_date is not None and created > filters.end_date:
        return False
    if filters.min_total is not None and order.total_price < filters.min_total:
        return False
    if filters.max_total is not None and order.total_price > filters.max_total:
        return False
    return True
