"""Django ORM implementation of the Product repository.

Error handling follows the Null Object pattern: look-ups return ``None``
instead of raising, and the service layer decides how a missing product
translates into a domain error.
"""

from __future__ import annotations

from typing import Optional

from django.core.exceptions import ValidationError

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Returns ``None`` for non-existent or malformed IDs."""
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def available_quantity(self, id: str) -> int:
        try:
            quantity = (
                Product.objects.filter(id=id)
                .values_list("stock_quantity", flat=True)
                .first()
            )
        except (ValueError, ValidationError):
            return 0
        return quantity or 0
