"""Order aggregate as seen by the state machine.

Framework-agnostic value objects using Pydantic v2.  They are immutable
(``frozen=True``): a transition never mutates an ``Order``, it builds the
next one with ``model_copy``.  Repositories translate between these objects
and their storage representation.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from modules.core.actors import ActorContext, ActorRole
from modules.orders.constants import TERMINAL_STATES, OrderStatus, PaymentStatus


class StatusChange(BaseModel):
    """One entry of the append-only status history."""

    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    actor_role: ActorRole
    actor_id: str
    timestamp: datetime
    reason: Optional[str] = None


class DeliveryDispute(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    disputed_at: datetime


class Order(BaseModel):
    """Order aggregate root.

    ``total_price`` is computed once at placement and carried unchanged by
    every later copy.  ``version`` is bumped on each persisted transition and
    is what the repository checks before writing.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    retailer_id: str
    wholesaler_id: str
    transporter_id: Optional[str] = None
    product_id: UUID
    quantity: int = Field(gt=0)
    measurement_unit: str
    unit_price: Decimal
    total_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status_history: Tuple[StatusChange, ...] = ()
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    delivery_dispute: Optional[DeliveryDispute] = None
    delivery_certification_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    delivery_place: str = ""
    delivery_latitude: Optional[Decimal] = None
    delivery_longitude: Optional[Decimal] = None
    order_notes: str = ""
    idempotency_key: Optional[str] = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def party_id(self, role: ActorRole) -> Optional[str]:
        """The id the order holds for ``role``."""
        return {
            ActorRole.RETAILER: self.retailer_id,
            ActorRole.WHOLESALER: self.wholesaler_id,
            ActorRole.TRANSPORTER: self.transporter_id,
        }[ActorRole(role)]

    def involves(self, actor: ActorContext) -> bool:
        return self.party_id(actor.role) == actor.id
