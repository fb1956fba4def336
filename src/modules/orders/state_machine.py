"""Order state machine: the single authority on legal status changes.

``evaluate`` is pure: given an order, a target status and an actor it either
raises a domain error or returns the next version of the aggregate.  Checks
run in a fixed order and the first failure wins:

1. the ``(current, target)`` pair must be an edge of ``TRANSITIONS``
   (``InvalidTransition``, whoever asks);
2. the actor must hold the edge's role *and* be the order's party for that
   role (``Forbidden``);
3. reason-bearing edges need a non-blank reason (``MissingReason``);
4. assigning a transporter needs a transporter id (``MissingTransporter``).

``OrderStateMachine.transition`` wraps ``evaluate`` in the repository's
transactional boundary: lock the order, re-read it, evaluate, move stock
through the ledger, then write conditionally on the version it read.  A
request that loses a race therefore evaluates against the winner's state
and gets ``InvalidTransition``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Tuple
from uuid import UUID

import structlog
from django.utils import timezone

from modules.core.actors import ActorContext
from modules.orders.constants import (
    TRANSITIONS,
    Edge,
    OrderAction,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.domain import DeliveryDispute, Order, StatusChange
from modules.orders.exceptions import (
    Forbidden,
    InvalidTransition,
    MissingReason,
    MissingTransporter,
    OrderNotFound,
)
from modules.orders.repositories.interfaces import IOrderRepository
from modules.products.ledger import IStockLedger

logger = structlog.get_logger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def resolve_edge(order: Order, target_status: str) -> Tuple[OrderStatus, Edge]:
    """Look up the edge from the order's status to ``target_status``.

    Unknown status strings are treated like any other missing edge.
    """
    try:
        target = OrderStatus(target_status)
    except ValueError:
        target = None
    edge = TRANSITIONS.get((OrderStatus(order.status), target)) if target else None
    if edge is None:
        raise InvalidTransition(
            f"Order {order.id} cannot move from {order.status.value} to {target_status}.",
            current_status=order.status.value,
        )
    return target, edge


def evaluate(
    order: Order,
    target_status: str,
    actor: ActorContext,
    reason: Optional[str] = None,
    transporter_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Order, Edge]:
    """Validate one transition and build the resulting aggregate.

    Returns the new order together with the edge that was taken so the
    caller can apply the edge's stock effect.
    """
    target, edge = resolve_edge(order, target_status)

    if actor.role != edge.role or order.party_id(edge.role) != actor.id:
        raise Forbidden(
            f"A {actor.role} cannot {edge.action.value} order {order.id}."
        )
    if edge.requires_reason and _blank(reason):
        raise MissingReason(f"A reason is required to {edge.action.value} an order.")
    if edge.needs_transporter and _blank(transporter_id):
        raise MissingTransporter("A transporter id is required to assign an order.")

    now = now or timezone.now()
    stored_reason = None if _blank(reason) else reason
    changes = {
        "status": target,
        "status_history": order.status_history
        + (
            StatusChange(
                status=target,
                actor_role=actor.role,
                actor_id=actor.id,
                timestamp=now,
                reason=stored_reason,
            ),
        ),
        "updated_at": now,
        "version": order.version + 1,
    }

    if edge.action == OrderAction.CANCEL:
        changes["cancellation_reason"] = reason
    elif edge.action == OrderAction.REJECT:
        changes["rejection_reason"] = reason
    elif edge.action == OrderAction.REJECT_RETURN and stored_reason:
        changes["rejection_reason"] = stored_reason
    elif edge.action == OrderAction.ASSIGN:
        changes["transporter_id"] = transporter_id.strip()
    elif edge.action == OrderAction.DECLINE:
        changes["transporter_id"] = None
    elif edge.action == OrderAction.DELIVER:
        changes["actual_delivery_date"] = now
    elif edge.action == OrderAction.CERTIFY:
        changes["delivery_certification_date"] = now
        changes["payment_status"] = PaymentStatus.PAID
    elif edge.action == OrderAction.ACCEPT_RETURN:
        changes["payment_status"] = PaymentStatus.REFUNDED
    elif edge.action == OrderAction.DISPUTE:
        changes["delivery_dispute"] = DeliveryDispute(reason=reason, disputed_at=now)

    return order.model_copy(update=changes), edge


class OrderStateMachine:
    """Applies transitions atomically against a repository and a stock ledger."""

    def __init__(
        self,
        repository: IOrderRepository,
        ledger: IStockLedger,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._repository = repository
        self._ledger = ledger
        self._clock = clock

    def transition(
        self,
        order_id: UUID,
        target_status: str,
        actor: ActorContext,
        reason: Optional[str] = None,
        transporter_id: Optional[str] = None,
    ) -> Order:
        """Move an order to ``target_status`` on behalf of ``actor``.

        Raises:
            OrderNotFound: no such order.
            InvalidTransition: not an edge from the current status.
            Forbidden: wrong role, or not this order's party.
            MissingReason: reason-bearing edge without a reason.
            MissingTransporter: assignment without a transporter id.
            InsufficientStock: acceptance could not reserve the stock.
            ConcurrencyConflict: lock timeout or version mismatch.
        """
        log = logger.bind(
            order_id=str(order_id),
            actor_role=str(actor.role),
            target_status=str(target_status),
        )

        with self._repository.atomic():
            order = self._repository.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")

            try:
                updated, edge = evaluate(
                    order,
                    target_status,
                    actor,
                    reason=reason,
                    transporter_id=transporter_id,
                    now=self._clock(),
                )
            except InvalidTransition:
                log.warning("order.invalid_transition", current_status=order.status.value)
                raise

            if edge.commits_stock:
                self._ledger.reserve(order.product_id, order.quantity, order.id)
            if edge.restores_stock:
                self._ledger.restore(order.product_id, order.quantity, order.id)

            saved = self._repository.update(updated, expected_version=order.version)

        log.info(
            "order.transitioned",
            from_status=order.status.value,
            action=edge.action.value,
            version=saved.version,
        )
        return saved
