"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderPlaced(DomainEvent):
    """Raised when a retailer places an order."""

    retailer_id: str
    wholesaler_id: str


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised after a transition has been committed."""

    from_status: str
    to_status: str
    actor_role: str
    actor_id: str
    retailer_id: str
    wholesaler_id: str
    transporter_id: Optional[str] = None
    reason: Optional[str] = None
