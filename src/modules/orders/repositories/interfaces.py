"""Order repository interface.

Extends ``IRepository[Order]`` with what the order lifecycle needs:
idempotent placement look-up, a transactional boundary with a per-order
lock, and a write that only succeeds when the caller's observed ``version``
is still current.

The state machine and the Service Layer depend exclusively on this
contract (DIP); ``OrderDjangoRepository`` and ``InMemoryOrderRepository``
are the two adapters.
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from modules.core.actors import ActorContext
from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.domain import Order


@dataclass(frozen=True)
class OrderListFilters:
    """Role scope plus optional filters for order listing.

    ``status=None`` means every status.
    """

    actor: ActorContext
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_total: Optional[Decimal] = None
    max_total: Optional[Decimal] = None


@dataclass(frozen=True)
class StatusSummaryRow:
    status: str
    count: int
    revenue: Decimal
    quantity: int


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, order: Order) -> Order:
        """Persist a freshly placed order together with its first history entry."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its full status history."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve the order placed with ``key``, if any."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Transactional boundary; locks taken inside are held until it exits."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Read an order and hold its per-order lock until ``atomic()`` exits.

        Raises:
            OrderLockTimeout: the lock could not be acquired in time.
        """

    @abstractmethod
    def update(self, order: Order, expected_version: int) -> Order:
        """Replace the stored aggregate if its version is ``expected_version``.

        Appends any history entries beyond those already stored.

        Raises:
            ConcurrencyConflict: the stored version moved on.
        """

    @abstractmethod
    def list(
        self, filters: OrderListFilters, page: int, page_size: int
    ) -> Tuple[List[Order], int]:
        """One page of matching orders, newest first, plus the total match count."""

    @abstractmethod
    def status_summary(
        self, actor: ActorContext, since: Optional[datetime]
    ) -> Dict[str, StatusSummaryRow]:
        """Per-status aggregates over the actor's orders created since ``since``."""

    @abstractmethod
    def delete(self, id: str, expected_version: Optional[int] = None) -> bool:
        """Hard-delete an order and its history.

        With ``expected_version`` the row is removed only while it still holds
        that version.  ``False`` when nothing was removed.
        """
