"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.

Concurrency control is layered:
- ``get_for_update`` takes a row lock (``SELECT ... FOR UPDATE``) that is
  held until the surrounding ``atomic()`` block exits;
- ``update`` is a conditional ``UPDATE ... WHERE version = <expected>`` so a
  writer that somehow skipped the lock still cannot overwrite a newer state;
- history rows are numbered per order under a unique constraint.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, OperationalError, transaction
from django.db.models import Count, Sum

from modules.core.actors import ActorContext, ActorRole
from modules.orders.domain import DeliveryDispute, Order, StatusChange
from modules.orders.exceptions import ConcurrencyConflict, OrderLockTimeout
from modules.orders.filters import OrderFilter
from modules.orders.models import OrderRecord, OrderStatusHistory
from modules.orders.repositories.interfaces import (
    IOrderRepository,
    OrderListFilters,
    StatusSummaryRow,
)

logger = structlog.get_logger(__name__)

# PostgreSQL lock_not_available / MySQL ER_LOCK_WAIT_TIMEOUT.
_LOCK_TIMEOUT_PGCODE = "55P03"
_LOCK_TIMEOUT_MYSQL_ERRNO = 1205

_SCOPE_FIELD = {
    ActorRole.RETAILER: "retailer_id",
    ActorRole.WHOLESALER: "wholesaler_id",
    ActorRole.TRANSPORTER: "transporter_id",
}


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, order: Order) -> Order:
        """Insert the order and its first history entry in one transaction.

        Raises:
            ConcurrencyConflict: another request already used the same
                idempotency key.
        """
        try:
            with transaction.atomic():
                record = OrderRecord.objects.create(
                    id=order.id,
                    retailer_id=order.retailer_id,
                    wholesaler_id=order.wholesaler_id,
                    product_id=order.product_id,
                    quantity=order.quantity,
                    measurement_unit=order.measurement_unit,
                    unit_price=order.unit_price,
                    total_price=order.total_price,
                    delivery_place=order.delivery_place,
                    delivery_latitude=order.delivery_latitude,
                    delivery_longitude=order.delivery_longitude,
                    order_notes=order.order_notes,
                    idempotency_key=order.idempotency_key,
                    version=order.version,
                    **self._lifecycle_values(order),
                )
                self._append_history(record.pk, order.status_history, already_stored=0)
        except IntegrityError as exc:
            logger.warning("order.create_conflict", idempotency_key=order.idempotency_key)
            raise ConcurrencyConflict("Order was placed concurrently; retry the request.") from exc
        logger.info("order.persisted", order_id=str(record.pk))
        return self._load(record.pk)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or malformed IDs."""
        try:
            record = (
                OrderRecord.objects.prefetch_related("status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None
        return _to_domain(record) if record else None

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        record = (
            OrderRecord.objects.prefetch_related("status_history")
            .filter(idempotency_key=key)
            .first()
        )
        return _to_domain(record) if record else None

    def list(
        self, filters: OrderListFilters, page: int, page_size: int
    ) -> Tuple[List[Order], int]:
        """Role-scoped listing.

        Optional filters go through ``OrderFilter`` so the listing endpoint
        and this query share one definition of "start_date", "min_total", ...
        """
        queryset = self._scoped(filters.actor)
        data = {
            name: str(value)
            for name, value in (
                ("status", filters.status),
                ("start_date", filters.start_date),
                ("end_date", filters.end_date),
                ("min_total", filters.min_total),
                ("max_total", filters.max_total),
            )
            if value is not None
        }
        queryset = OrderFilter(data, queryset=queryset).qs.order_by("-created_at", "-id")

        total = queryset.count()
        offset = (page - 1) * page_size
        records = queryset.prefetch_related("status_history")[offset : offset + page_size]
        return [_to_domain(record) for record in records], total

    def status_summary(
        self, actor: ActorContext, since: Optional[datetime]
    ) -> Dict[str, StatusSummaryRow]:
        queryset = self._scoped(actor)
        if since is not None:
            queryset = queryset.filter(created_at__gte=since)
        rows = (
            queryset.order_by()
            .values("status")
            .annotate(
                count=Count("id"),
                revenue=Sum("total_price"),
                quantity=Sum("quantity"),
            )
        )
        return {
            row["status"]: StatusSummaryRow(
                status=row["status"],
                count=row["count"],
                revenue=row["revenue"] or Decimal("0.00"),
                quantity=row["quantity"] or 0,
            )
            for row in rows
        }

    # ------------------------------------------------------------------
    # Locked read-modify-write
    # ------------------------------------------------------------------

    def atomic(self):
        return transaction.atomic()

    def get_for_update(self, id: str) -> Optional[Order]:
        """Lock the order row and return the aggregate.

        Must run inside ``atomic()``; Django refuses ``select_for_update``
        in autocommit mode.
        """
        try:
            record = OrderRecord.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None
        except OperationalError as exc:
            if _is_lock_timeout(exc):
                logger.warning("order.lock_timeout", order_id=str(id))
                raise OrderLockTimeout(f"Timed out waiting for order {id}.") from exc
            raise
        if record is None:
            return None
        return self._load(record.pk)

    @transaction.atomic
    def update(self, order: Order, expected_version: int) -> Order:
        updated = OrderRecord.objects.filter(id=order.id, version=expected_version).update(
            version=order.version,
            updated_at=order.updated_at,
            **self._lifecycle_values(order),
        )
        if not updated:
            logger.warning(
                "order.version_conflict",
                order_id=str(order.id),
                expected_version=expected_version,
            )
            raise ConcurrencyConflict(f"Order {order.id} was modified concurrently.")

        stored = OrderStatusHistory.objects.filter(order_id=order.id).count()
        try:
            with transaction.atomic():
                self._append_history(order.id, order.status_history, already_stored=stored)
        except IntegrityError as exc:
            raise ConcurrencyConflict(
                f"Order {order.id} history was appended concurrently."
            ) from exc

        logger.info("order.updated", order_id=str(order.id), version=order.version)
        return self._load(order.id)

    # ------------------------------------------------------------------
    # Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def delete(self, id: str, expected_version: Optional[int] = None) -> bool:
        """Hard-delete an order; its history goes with it (CASCADE)."""
        queryset = OrderRecord.objects.filter(id=id)
        if expected_version is not None:
            queryset = queryset.filter(version=expected_version)
        deleted, _ = queryset.delete()
        if deleted:
            logger.info("order.deleted", order_id=str(id))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scoped(self, actor: ActorContext):
        return OrderRecord.objects.filter(**{_SCOPE_FIELD[ActorRole(actor.role)]: actor.id})

    def _load(self, id) -> Order:
        record = OrderRecord.objects.prefetch_related("status_history").get(id=id)
        return _to_domain(record)

    @staticmethod
    def _lifecycle_values(order: Order) -> Dict[str, Any]:
        dispute = order.delivery_dispute
        return {
            "transporter_id": order.transporter_id,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "cancellation_reason": order.cancellation_reason,
            "rejection_reason": order.rejection_reason,
            "dispute_reason": dispute.reason if dispute else None,
            "disputed_at": dispute.disputed_at if dispute else None,
            "delivery_certification_date": order.delivery_certification_date,
            "actual_delivery_date": order.actual_delivery_date,
        }

    @staticmethod
    def _append_history(
        order_id, entries: Iterable[StatusChange], already_stored: int
    ) -> None:
        new_entries = list(entries)[already_stored:]
        OrderStatusHistory.objects.bulk_create(
            [
                OrderStatusHistory(
                    order_id=order_id,
                    sequence=already_stored + offset,
                    status=entry.status.value,
                    actor_role=entry.actor_role.value,
                    actor_id=entry.actor_id,
                    timestamp=entry.timestamp,
                    reason=entry.reason,
                )
                for offset, entry in enumerate(new_entries, start=1)
            ]
        )


def _to_domain(record: OrderRecord) -> Order:
    dispute = None
    if record.dispute_reason is not None and record.disputed_at is not None:
        dispute = DeliveryDispute(reason=record.dispute_reason, disputed_at=record.disputed_at)
    history = sorted(record.status_history.all(), key=lambda row: row.sequence)
    return Order(
        id=record.id,
        retailer_id=record.retailer_id,
        wholesaler_id=record.wholesaler_id,
        transporter_id=record.transporter_id,
        product_id=record.product_id,
        quantity=record.quantity,
        measurement_unit=record.measurement_unit,
        unit_price=record.unit_price,
        total_price=record.total_price,
        status=record.status,
        payment_status=record.payment_status,
        status_history=tuple(
            StatusChange(
                status=row.status,
                actor_role=row.actor_role,
                actor_id=row.actor_id,
                timestamp=row.timestamp,
                reason=row.reason,
            )
            for row in history
        ),
        cancellation_reason=record.cancellation_reason,
        rejection_reason=record.rejection_reason,
        delivery_dispute=dispute,
        delivery_certification_date=record.delivery_certification_date,
        actual_delivery_date=record.actual_delivery_date,
        delivery_place=record.delivery_place,
        delivery_latitude=record.delivery_latitude,
        delivery_longitude=record.delivery_longitude,
        order_notes=record.order_notes,
        idempotency_key=record.idempotency_key,
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _is_lock_timeout(exc: OperationalError) -> bool:
    cause = exc.__cause__
    if getattr(cause, "pgcode", None) == _LOCK_TIMEOUT_PGCODE:
        return True
    sqlstate = getattr(getattr(cause, "diag", None), "sqlstate", None)
    if sqlstate == _LOCK_TIMEOUT_PGCODE:
        return True
    args = getattr(cause, "args", None) or exc.args
    return bool(args) and args[0] == _LOCK_TIMEOUT_MYSQL_ERRNO
