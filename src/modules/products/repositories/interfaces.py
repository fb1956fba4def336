"""Product repository interface.

The order engine only needs read access to products: price, unit, minimum
order quantity and a stock figure for placement-time validation.  Stock
*mutation* is not part of this contract (see ``IStockLedger``).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def available_quantity(self, id: str) -> int:
        """Current stock on hand, ``0`` for unknown products."""
