"""Order lifecycle constants.

Defines the closed status enumeration and the transition table consumed by
the order state machine.  ``TRANSITIONS`` is keyed by ``(from, to)`` status
pairs; a pair that is not a key is not a legal move for anybody.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from django.db import models

from modules.core.actors import ActorRole


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    PROCESSING = "processing", "Processing"
    ASSIGNED_TO_TRANSPORTER = "assigned_to_transporter", "Assigned to transporter"
    ACCEPTED_BY_TRANSPORTER = "accepted_by_transporter", "Accepted by transporter"
    REJECTED_BY_TRANSPORTER = "rejected_by_transporter", "Rejected by transporter"
    IN_TRANSIT = "in_transit", "In transit"
    DELIVERED = "delivered", "Delivered"
    CERTIFIED = "certified", "Certified"
    DISPUTED = "disputed", "Disputed"
    RETURN_TO_WHOLESALER = "return_to_wholesaler", "Return to wholesaler"
    RETURN_ACCEPTED = "return_accepted", "Return accepted"
    RETURN_REJECTED = "return_rejected", "Return rejected"
    CANCELLED_BY_RETAILER = "cancelled_by_retailer", "Cancelled by retailer"
    CANCELLED_BY_WHOLESALER = "cancelled_by_wholesaler", "Cancelled by wholesaler"
    CANCELLED_BY_TRANSPORTER = "cancelled_by_transporter", "Cancelled by transporter"


class OrderAction(models.TextChoices):
    ACCEPT = "accept", "Accept"
    REJECT = "reject", "Reject"
    CANCEL = "cancel", "Cancel"
    PROCESS = "process", "Process"
    ASSIGN = "assign", "Assign transporter"
    DECLINE = "decline", "Decline assignment"
    START = "start", "Start transit"
    DELIVER = "deliver", "Deliver"
    CERTIFY = "certify", "Certify delivery"
    DISPUTE = "dispute", "Dispute delivery"
    RETURN = "return", "Return to wholesaler"
    ACCEPT_RETURN = "accept_return", "Accept return"
    REJECT_RETURN = "reject_return", "Reject return"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


@dataclass(frozen=True)
class Edge:
    """One legal move of the state machine and its side effects."""

    action: OrderAction
    role: ActorRole
    requires_reason: bool = False
    commits_stock: bool = False
    restores_stock: bool = False
    needs_transporter: bool = False


CANCELLED_BY: Dict[ActorRole, OrderStatus] = {
    ActorRole.RETAILER: OrderStatus.CANCELLED_BY_RETAILER,
    ActorRole.WHOLESALER: OrderStatus.CANCELLED_BY_WHOLESALER,
    ActorRole.TRANSPORTER: OrderStatus.CANCELLED_BY_TRANSPORTER,
}


def _cancel(role: ActorRole, restores_stock: bool = True) -> Edge:
    return Edge(
        OrderAction.CANCEL,
        role,
        requires_reason=True,
        restores_stock=restores_stock,
    )


def _cancellations(
    source: OrderStatus, *roles: ActorRole, restores_stock: bool = True
) -> Dict[Tuple[OrderStatus, OrderStatus], Edge]:
    return {(source, CANCELLED_BY[role]): _cancel(role, restores_stock) for role in roles}


S = OrderStatus
R, W, T = ActorRole.RETAILER, ActorRole.WHOLESALER, ActorRole.TRANSPORTER

TRANSITIONS: Dict[Tuple[OrderStatus, OrderStatus], Edge] = {
    (S.PENDING, S.ACCEPTED): Edge(OrderAction.ACCEPT, W, commits_stock=True),
    (S.PENDING, S.REJECTED): Edge(OrderAction.REJECT, W, requires_reason=True),
    # Nothing is reserved before acceptance, so there is nothing to give back.
    **_cancellations(S.PENDING, R, restores_stock=False),
    (S.ACCEPTED, S.PROCESSING): Edge(OrderAction.PROCESS, W),
    **_cancellations(S.ACCEPTED, R, W),
    (S.PROCESSING, S.ASSIGNED_TO_TRANSPORTER): Edge(
        OrderAction.ASSIGN, W, needs_transporter=True
    ),
    **_cancellations(S.PROCESSING, R, W),
    (S.ASSIGNED_TO_TRANSPORTER, S.ACCEPTED_BY_TRANSPORTER): Edge(OrderAction.ACCEPT, T),
    (S.ASSIGNED_TO_TRANSPORTER, S.REJECTED_BY_TRANSPORTER): Edge(
        OrderAction.DECLINE, T, requires_reason=True
    ),
    **_cancellations(S.ASSIGNED_TO_TRANSPORTER, R, W, T),
    (S.REJECTED_BY_TRANSPORTER, S.ASSIGNED_TO_TRANSPORTER): Edge(
        OrderAction.ASSIGN, W, needs_transporter=True
    ),
    **_cancellations(S.REJECTED_BY_TRANSPORTER, R, W),
    (S.ACCEPTED_BY_TRANSPORTER, S.IN_TRANSIT): Edge(OrderAction.START, T),
    **_cancellations(S.ACCEPTED_BY_TRANSPORTER, T),
    (S.IN_TRANSIT, S.DELIVERED): Edge(OrderAction.DELIVER, T),
    **_cancellations(S.IN_TRANSIT, T),
    (S.DELIVERED, S.CERTIFIED): Edge(OrderAction.CERTIFY, R),
    (S.DELIVERED, S.DISPUTED): Edge(OrderAction.DISPUTE, R, requires_reason=True),
    (S.DISPUTED, S.RETURN_TO_WHOLESALER): Edge(OrderAction.RETURN, W),
    (S.RETURN_TO_WHOLESALER, S.RETURN_ACCEPTED): Edge(
        OrderAction.ACCEPT_RETURN, W, restores_stock=True
    ),
    (S.RETURN_TO_WHOLESALER, S.RETURN_REJECTED): Edge(OrderAction.REJECT_RETURN, W),
}

del S, R, W, T

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.CERTIFIED,
        OrderStatus.REJECTED,
        OrderStatus.RETURN_ACCEPTED,
        OrderStatus.RETURN_REJECTED,
        OrderStatus.CANCELLED_BY_RETAILER,
        OrderStatus.CANCELLED_BY_WHOLESALER,
        OrderStatus.CANCELLED_BY_TRANSPORTER,
    }
)

DELETABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.REJECTED,
        OrderStatus.RETURN_ACCEPTED,
        OrderStatus.RETURN_REJECTED,
        OrderStatus.CANCELLED_BY_WHOLESALER,
    }
)

# Statuses at which ``transporter_id`` must be set.
TRANSPORTER_STATES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.ASSIGNED_TO_TRANSPORTER,
        OrderStatus.ACCEPTED_BY_TRANSPORTER,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
        OrderStatus.CERTIFIED,
        OrderStatus.DISPUTED,
        OrderStatus.RETURN_TO_WHOLESALER,
        OrderStatus.RETURN_ACCEPTED,
        OrderStatus.RETURN_REJECTED,
    }
)

STATS_TIME_RANGES = ("today", "week", "month", "year", "all")
