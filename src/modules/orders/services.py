"""Order service layer (Use Cases).

Orchestrates the order lifecycle for the HTTP layer: placement, role-scoped
queries, status transitions, deletion and dashboard statistics.  Every call
receives an explicit ``ActorContext``; nothing is read from request state.

Business rules enforced:
- Only retailers place orders; the product must exist, be active, and the
  quantity must lie between its minimum order quantity and the stock on
  hand.  Placement never touches stock.
- Transitions go through ``OrderStateMachine`` (role, reason and stock
  rules live there).  A ``ConcurrencyConflict`` is retried once.
- Only the order's retailer may delete it, and only from a whitelisted
  status.
- Domain events are published after the change is committed.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID

import structlog
import uuid6
from django.utils import timezone

from modules.core.actors import ActorContext
from modules.core.exceptions import DomainError
from modules.orders.constants import DELETABLE_STATUSES, OrderStatus
from modules.orders.domain import Order, StatusChange
from modules.orders.dtos import (
    ListOrdersQuery,
    OrderPage,
    OrderStatistics,
    PlaceOrderDTO,
    StatusStatistics,
)
from modules.orders.events import OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import (
    ConcurrencyConflict,
    Forbidden,
    InsufficientStock,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
    QuantityBelowMinimum,
)
from modules.orders.repositories.interfaces import OrderListFilters
from modules.orders.state_machine import OrderStateMachine

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.ledger import IStockLedger
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


class OrderService:
    """Application service for Order use-cases.

    Receives its collaborators via constructor injection (DIP), so the same
    service runs against the ORM adapters in production and the in-memory
    adapters in tests.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        ledger: IStockLedger,
        event_bus: IEventBus,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._event_bus = event_bus
        self._clock = clock
        self._state_machine = OrderStateMachine(order_repository, ledger, clock=clock)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def place_order(self, actor: ActorContext, dto: PlaceOrderDTO) -> Order:
        """Create a ``pending`` order for ``actor``.

        Returns the existing order when ``dto.idempotency_key`` was already
        used by this retailer.

        Raises:
            Forbidden: the actor is not a retailer, or the key belongs to
                another retailer.
            ProductNotFound: the product does not exist.
            ProductUnavailable: the product is inactive.
            QuantityBelowMinimum: quantity under the product's minimum.
            InsufficientStock: quantity above the stock on hand.
        """
        if not actor.is_retailer:
            raise Forbidden("Only retailers can place orders.")

        log = logger.bind(retailer_id=actor.id, product_id=str(dto.product_id))

        if dto.idempotency_key:
            existing = self.find_by_idempotency_key(actor, dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        product = self._product_repo.get_by_id(str(dto.product_id))
        if not product:
            raise ProductNotFound(f"Product {dto.product_id} not found.")
        if not product.is_active:
            raise ProductUnavailable(f"Product {dto.product_id} is not available.")
        if dto.quantity < product.min_order_quantity:
            raise QuantityBelowMinimum(
                f"Minimum order quantity for {product.sku} is {product.min_order_quantity}.",
                min_order_quantity=product.min_order_quantity,
            )
        available = self._product_repo.available_quantity(str(product.id))
        if dto.quantity > available:
            raise InsufficientStock(
                f"Product {product.sku}: requested {dto.quantity}, available {available}.",
                available=available,
            )

        now = self._clock()
        order = Order(
            id=uuid6.uuid7(),
            retailer_id=actor.id,
            wholesaler_id=product.wholesaler_id,
            product_id=product.id,
            quantity=dto.quantity,
            measurement_unit=product.measurement_unit,
            unit_price=product.price,
            total_price=(product.price * dto.quantity).quantize(_CENT),
            status=OrderStatus.PENDING,
            status_history=(
                StatusChange(
                    status=OrderStatus.PENDING,
                    actor_role=actor.role,
                    actor_id=actor.id,
                    timestamp=now,
                ),
            ),
            delivery_place=dto.delivery_place,
            delivery_latitude=dto.delivery_latitude,
            delivery_longitude=dto.delivery_longitude,
            order_notes=dto.order_notes,
            idempotency_key=dto.idempotency_key,
            created_at=now,
            updated_at=now,
        )
        order = self._order_repo.create(order)

        log.info("order.placed", order_id=str(order.id), total_price=str(order.total_price))
        self._event_bus.publish(
            OrderPlaced(
                aggregate_id=order.id,
                retailer_id=order.retailer_id,
                wholesaler_id=order.wholesaler_id,
            )
        )
        return order

    def update_status(
        self,
        order_id: UUID,
        target_status: str,
        actor: ActorContext,
        reason: Optional[str] = None,
        transporter_id: Optional[str] = None,
    ) -> Order:
        """Transition an order through the state machine.

        A ``ConcurrencyConflict`` (lock timeout or version mismatch) is
        retried once with a fresh read; a second conflict propagates.
        Unexpected failures are logged with the attempted transition and
        re-raised.
        """
        log = logger.bind(
            order_id=str(order_id),
            target_status=str(target_status),
            actor_role=str(actor.role),
            actor_id=actor.id,
        )
        for attempt in (1, 2):
            try:
                order = self._state_machine.transition(
                    order_id,
                    target_status,
                    actor,
                    reason=reason,
                    transporter_id=transporter_id,
                )
                break
            except ConcurrencyConflict:
                if attempt == 2:
                    log.warning("order.transition_conflict", attempts=attempt)
                    raise
                log.info("order.transition_retry")
            except DomainError:
                raise
            except Exception:
                log.exception("order.transition_failed")
                raise

        self._event_bus.publish(_status_changed_event(order, actor))
        return order

    def delete_order(self, order_id: UUID, actor: ActorContext) -> None:
        """Hard-delete an order and its history.

        Runs under the same per-order lock as transitions, so the status
        checked is the status deleted.

        Raises:
            OrderNotFound: order does not exist.
            Forbidden: not the order's retailer, or status not deletable.
            ConcurrencyConflict: lock timeout, or the row moved under us.
        """
        with self._order_repo.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if not order:
                raise OrderNotFound(f"Order {order_id} not found.")
            if not (actor.is_retailer and order.retailer_id == actor.id):
                raise Forbidden("Only the retailer who placed the order can delete it.")
            if order.status not in DELETABLE_STATUSES:
                raise Forbidden(f"Orders in status {order.status.value} cannot be deleted.")
            if not self._order_repo.delete(str(order.id), expected_version=order.version):
                raise ConcurrencyConflict(f"Order {order_id} was modified concurrently.")

        logger.info("order.deleted", order_id=str(order.id), status=order.status.value)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, actor: ActorContext, order_id: str) -> Order:
        """Retrieve an order the actor is a party to.

        Raises:
            OrderNotFound: if the order does not exist.
            Forbidden: if the actor is not a party to the order.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not order.involves(actor):
            raise Forbidden(f"Order {order_id} does not belong to this {actor.role}.")
        return order

    def find_by_idempotency_key(self, actor: ActorContext, key: str) -> Optional[Order]:
        """The order ``actor`` already placed with ``key``, if any.

        Raises:
            Forbidden: the key was used by a different retailer.
        """
        existing = self._order_repo.get_by_idempotency_key(key)
        if existing and existing.retailer_id != actor.id:
            raise Forbidden("Idempotency key already used by another retailer.")
        return existing

    def list_orders(self, actor: ActorContext, query: ListOrdersQuery) -> OrderPage:
        """Return one page of the actor's orders, newest first."""
        filters = OrderListFilters(
            actor=actor,
            status=None if query.status == "all" else query.status,
            start_date=query.start_date,
            end_date=query.end_date,
            min_total=query.min_total,
            max_total=query.max_total,
        )
        items, total = self._order_repo.list(filters, query.page, query.page_size)
        return OrderPage(
            items=items,
            total=total,
            total_pages=math.ceil(total / query.page_size) if total else 0,
            page=query.page,
            page_size=query.page_size,
        )

    def order_statistics(self, actor: ActorContext, time_range: str = "all") -> OrderStatistics:
        """Per-status counts, revenue, average value and quantity."""
        summary = self._order_repo.status_summary(actor, self._range_start(time_range))

        by_status = {}
        for status in OrderStatus.values:
            row = summary.get(status)
            if row is None:
                by_status[status] = StatusStatistics()
                continue
            by_status[status] = StatusStatistics(
                count=row.count,
                revenue=Decimal(row.revenue).quantize(_CENT),
                average_value=_average(Decimal(row.revenue), row.count),
                quantity=row.quantity,
            )

        total_orders = sum(s.count for s in by_status.values())
        total_revenue = sum((s.revenue for s in by_status.values()), Decimal("0.00"))
        return OrderStatistics(
            time_range=time_range,
            by_status=by_status,
            total_orders=total_orders,
            total_revenue=total_revenue,
            average_order_value=_average(total_revenue, total_orders),
            total_quantity=sum(s.quantity for s in by_status.values()),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _range_start(self, time_range: str) -> Optional[datetime]:
        now = timezone.localtime(self._clock())
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if time_range == "today":
            return today
        if time_range == "week":
            return today - timedelta(days=today.weekday())
        if time_range == "month":
            return today.replace(day=1)
        if time_range == "year":
            return today.replace(month=1, day=1)
        return None


def _average(total: Decimal, count: int) -> Decimal:
    if not count:
        return Decimal("0.00")
    return (total / count).quantize(_CENT, rounding=ROUND_HALF_UP)


def _status_changed_event(order: Order, actor: ActorContext) -> OrderStatusChanged:
    history = order.status_history
    previous = history[-2].status if len(history) > 1 else order.status
    return OrderStatusChanged(
        aggregate_id=order.id,
        from_status=previous.value,
        to_status=order.status.value,
        actor_role=str(actor.role),
        actor_id=actor.id,
        retailer_id=order.retailer_id,
        wholesaler_id=order.wholesaler_id,
        transporter_id=order.transporter_id,
        reason=history[-1].reason,
    )

