"""Product and stock domain exceptions.

Raised by the ledger and repositories; the API layer turns them into
HTTP responses through the standardized exception handler.
"""

from __future__ import annotations

from modules.core.exceptions import DomainError, NotFound


class ProductNotFound(NotFound):
    """The requested product does not exist."""


class InsufficientStock(DomainError):
    """Not enough stock on hand for the requested quantity."""

    code = "insufficient_stock"
