"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``PlaceOrderDTO``: input for order placement.
- ``ListOrdersQuery``: input for the role-scoped listing.
- ``OrderPage``: one page of orders.
- ``StatusStatistics`` / ``OrderStatistics``: dashboard aggregates.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import STATS_TIME_RANGES, OrderStatus
from modules.orders.domain import Order

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class PlaceOrderDTO(BaseModel):
    """Immutable DTO for an order placement request.

    ``unit_price``, ``measurement_unit`` and the wholesaler are resolved by
    the Service Layer from the product, never trusted from the client.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    delivery_place: str
    delivery_latitude: Optional[Decimal] = None
    delivery_longitude: Optional[Decimal] = None
    order_notes: str = Field(default="", max_length=500)
    idempotency_key: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("delivery_place")
    @classmethod
    def delivery_place_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery place is required.")
        return v.strip()


class ListOrdersQuery(BaseModel):
    """Listing parameters; ``status="all"`` disables status filtering."""

    model_config = ConfigDict(frozen=True)

    status: str = "all"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_total: Optional[Decimal] = None
    max_total: Optional[Decimal] = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        if v != "all" and v not in OrderStatus.values:
            raise ValueError(f"Unknown order status: {v}.")
        return v

    @model_validator(mode="after")
    def ranges_must_be_ordered(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date.")
        if (
            self.min_total is not None
            and self.max_total is not None
            and self.min_total > self.max_total
        ):
            raise ValueError("min_total must not exceed max_total.")
        return self


class StatisticsQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_range: str = "all"

    @field_validator("time_range")
    @classmethod
    def time_range_must_be_known(cls, v: str) -> str:
        if v not in STATS_TIME_RANGES:
            raise ValueError(f"time_range must be one of {', '.join(STATS_TIME_RANGES)}.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[Order]
    total: int
    total_pages: int
    page: int
    page_size: int


class StatusStatistics(BaseModel):
    """Aggregates for one status bucket."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    revenue: Decimal = Decimal("0.00")
    average_value: Decimal = Decimal("0.00")
    quantity: int = 0


class OrderStatistics(BaseModel):
    """Per-status breakdown of an actor's orders plus overall totals."""

    model_config = ConfigDict(frozen=True)

    time_range: str
    by_status: Dict[str, StatusStatistics]
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    total_quantity: int
