"""Order domain exceptions.

Raised by the state machine and the Service Layer when business rules are
violated.  The API layer never catches them one by one: the standardized
exception handler maps each ``code`` to an HTTP status.
"""

from __future__ import annotations

from modules.core.exceptions import DomainError, Forbidden, NotFound
from modules.products.exceptions import InsufficientStock, ProductNotFound

__all__ = [
    "ConcurrencyConflict",
    "Forbidden",
    "InsufficientStock",
    "InvalidOrder",
    "InvalidTransition",
    "MissingReason",
    "MissingTransporter",
    "OrderLockTimeout",
    "OrderNotFound",
    "ProductNotFound",
    "ProductUnavailable",
    "QuantityBelowMinimum",
]


class OrderNotFound(NotFound):
    """The requested order does not exist."""


class InvalidTransition(DomainError):
    """The requested status is not reachable from the order's current status.

    Always carries ``current_status`` so a client can resynchronise; this is
    also what the loser of a transition race receives.
    """

    code = "invalid_transition"

    def __init__(self, message: str, current_status: str) -> None:
        super().__init__(message, current_status=current_status)
        self.current_status = current_status


class MissingReason(DomainError):
    """A cancel, reject, decline or dispute was requested without a reason."""

    code = "missing_reason"


class MissingTransporter(DomainError):
    """Assigning a transporter requires a transporter id."""

    code = "missing_transporter"


class InvalidOrder(DomainError):
    """The order request breaks a placement rule."""

    code = "invalid_order"


class QuantityBelowMinimum(InvalidOrder):
    """Requested quantity is under the product's minimum order quantity."""


class ProductUnavailable(InvalidOrder):
    """The product exists but is not currently offered."""


class ConcurrencyConflict(DomainError):
    """The order changed between read and write; safe to retry."""

    code = "concurrency_conflict"


class OrderLockTimeout(ConcurrencyConflict):
    """Timed out waiting for the per-order lock."""
