"""Unit tests for OrderService against the in-memory adapters.

Covers:
- Placement rules (role, product, minimum quantity, stock on hand).
- Idempotent placement keyed by ``idempotency_key``.
- Stock commit on acceptance and restore on cancellation/return.
- Terminal immutability and the deletion whitelist.
- Role-scoped reads, listing filters and statistics.
- Automatic single retry on ``ConcurrencyConflict``.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest

from modules.core.actors import ActorContext, ActorRole
from modules.orders.constants import DELETABLE_STATUSES, OrderStatus, PaymentStatus
from modules.orders.dtos import ListOrdersQuery
from modules.orders.exceptions import (
    ConcurrencyConflict,
    Forbidden,
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
    QuantityBelowMinimum,
)
from modules.orders.repositories.interfaces import OrderListFilters

pytestmark = pytest.mark.unit


# ===========================================================================
# Placement
# ===========================================================================


class TestPlaceOrder:
    def test_creates_pending_order(self, place, retailer, wholesaler, catalog_product, now):
        order = place(quantity=5)

        assert order.status == OrderStatus.PENDING
        assert order.retailer_id == retailer.id
        assert order.wholesaler_id == wholesaler.id
        assert order.transporter_id is None
        assert order.product_id == catalog_product.id
        assert order.measurement_unit == "bag"
        assert order.unit_price == Decimal("1000.00")
        assert order.total_price == Decimal("5000.00")
        assert order.version == 1
        assert order.created_at == now

    def test_records_initial_history_entry(self, place, retailer, now):
        order = place()

        assert len(order.status_history) == 1
        entry = order.status_history[0]
        assert entry.status == OrderStatus.PENDING
        assert entry.actor_role == ActorRole.RETAILER
        assert entry.actor_id == retailer.id
        assert entry.timestamp == now

    def test_placement_does_not_touch_stock(self, place, ledger, catalog_product):
        place(quantity=5)
        assert ledger.quantity(catalog_product.id) == 20

    def test_stores_delivery_details(self, place):
        order = place(
            delivery_place="  Dock 4  ",
            delivery_latitude=Decimal("-23.550520"),
            delivery_longitude=Decimal("-46.633308"),
            order_notes="Ring twice",
        )
        assert order.delivery_place == "Dock 4"
        assert order.delivery_latitude == Decimal("-23.550520")
        assert order.order_notes == "Ring twice"

    @pytest.mark.parametrize("role", [ActorRole.WHOLESALER, ActorRole.TRANSPORTER])
    def test_only_retailers_place_orders(self, place, role):
        with pytest.raises(Forbidden):
            place(actor=ActorContext(role=role, id="someone"))

    def test_unknown_product(self, place):
        with pytest.raises(ProductNotFound):
            place(product_id=uuid4())

    def test_inactive_product(self, place, inactive_product):
        with pytest.raises(ProductUnavailable):
            place(product_id=inactive_product.id)

    def test_below_minimum_quantity(self, place):
        with pytest.raises(QuantityBelowMinimum) as exc_info:
            place(quantity=1)
        assert exc_info.value.extra["min_order_quantity"] == 2

    def test_minimum_quantity_is_inclusive(self, place):
        assert place(quantity=2).quantity == 2

    def test_above_stock_on_hand(self, place):
        with pytest.raises(InsufficientStock) as exc_info:
            place(quantity=21)
        assert exc_info.value.extra["available"] == 20

    def test_entire_stock_can_be_ordered(self, place):
        assert place(quantity=20).total_price == Decimal("20000.00")

    def test_publishes_order_placed(self, place, channel, wholesaler):
        order = place()
        assert [(n.actor_id, n.order_id, n.new_status) for n in channel.sent] == [
            (wholesaler.id, order.id, "pending")
        ]


class TestIdempotentPlacement:
    def test_same_key_returns_same_order(self, place, order_repository, retailer):
        first = place(idempotency_key="key-1")
        second = place(quantity=7, idempotency_key="key-1")

        assert second.id == first.id
        assert second.quantity == 5
        _, total = order_repository.list(OrderListFilters(actor=retailer), page=1, page_size=10)
        assert total == 1

    def test_replay_does_not_notify_again(self, place, channel):
        place(idempotency_key="key-1")
        place(idempotency_key="key-1")
        assert len(channel.sent) == 1

    def test_key_of_another_retailer_is_forbidden(self, place, other_retailer):
        place(idempotency_key="key-1")
        with pytest.raises(Forbidden):
            place(actor=other_retailer, idempotency_key="key-1")

    def test_orders_without_key_are_independent(self, place):
        assert place().id != place().id


# ===========================================================================
# Transitions and stock
# ===========================================================================


class TestStockEffects:
    def test_accept_reserves_stock_once(self, place, service, wholesaler, ledger, catalog_product):
        order = place(quantity=5)

        accepted = service.update_status(order.id, "accepted", wholesaler)
        assert accepted.status == OrderStatus.ACCEPTED
        assert ledger.quantity(catalog_product.id) == 15

        with pytest.raises(InvalidTransition) as exc_info:
            service.update_status(order.id, "accepted", wholesaler)
        assert exc_info.value.current_status == "accepted"
        assert ledger.quantity(catalog_product.id) == 15

    def test_accept_fails_when_stock_ran_out(
        self, place, service, wholesaler, ledger, catalog_product, order_repository
    ):
        first = place(quantity=15)
        second = place(quantity=10)
        service.update_status(first.id, "accepted", wholesaler)

        with pytest.raises(InsufficientStock):
            service.update_status(second.id, "accepted", wholesaler)

        stored = order_repository.get_by_id(str(second.id))
        assert stored.status == OrderStatus.PENDING
        assert stored.version == 1
        assert len(stored.status_history) == 1
        assert ledger.quantity(catalog_product.id) == 5

    def test_cancel_pending_leaves_stock(self, place, service, retailer, ledger, catalog_product):
        order = place(quantity=5)
        service.update_status(order.id, "cancelled_by_retailer", retailer, reason="Changed my mind")
        assert ledger.quantity(catalog_product.id) == 20

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.ACCEPTED, OrderStatus.PROCESSING, OrderStatus.ASSIGNED_TO_TRANSPORTER],
    )
    def test_retailer_cancel_after_accept_restores(
        self, status, place, advance, service, retailer, ledger, catalog_product
    ):
        order = advance(place(quantity=5), status)
        assert ledger.quantity(catalog_product.id) == 15

        cancelled = service.update_status(
            order.id, "cancelled_by_retailer", retailer, reason="Store closed"
        )

        assert cancelled.cancellation_reason == "Store closed"
        assert ledger.quantity(catalog_product.id) == 20

    def test_transporter_cancel_in_transit_restores(
        self, place, advance, service, transporter, ledger, catalog_product
    ):
        order = advance(place(quantity=5), OrderStatus.IN_TRANSIT)
        service.update_status(order.id, "cancelled_by_transporter", transporter, reason="Accident")
        assert ledger.quantity(catalog_product.id) == 20

    def test_accepted_return_restores_stock(
        self, place, advance, service, wholesaler, ledger, catalog_product
    ):
        order = advance(place(quantity=5), OrderStatus.RETURN_TO_WHOLESALER)
        assert ledger.quantity(catalog_product.id) == 15

        returned = service.update_status(order.id, "return_accepted", wholesaler)

        assert ledger.quantity(catalog_product.id) == 20
        assert returned.payment_status == PaymentStatus.REFUNDED

    def test_rejected_return_keeps_stock(
        self, place, advance, service, wholesaler, ledger, catalog_product
    ):
        order = advance(place(quantity=5), OrderStatus.RETURN_TO_WHOLESALER)
        rejected = service.update_status(
            order.id, "return_rejected", wholesaler, reason="Goods were fine"
        )
        assert rejected.rejection_reason == "Goods were fine"
        assert ledger.quantity(catalog_product.id) == 15


class TestTerminalStates:
    @pytest.fixture()
    def terminal_orders(self, place, advance, service, retailer, wholesaler):
        certified = advance(place(), OrderStatus.DELIVERED)
        certified = service.update_status(certified.id, "certified", retailer)
        rejected = service.update_status(place().id, "rejected", wholesaler, reason="No")
        cancelled = service.update_status(
            place().id, "cancelled_by_retailer", retailer, reason="No"
        )
        by_wholesaler = advance(place(), OrderStatus.ACCEPTED)
        by_wholesaler = service.update_status(
            by_wholesaler.id, "cancelled_by_wholesaler", wholesaler, reason="No"
        )
        return [certified, rejected, cancelled, by_wholesaler]

    def test_every_further_transition_is_invalid(
        self, terminal_orders, service, retailer, wholesaler, transporter
    ):
        for order in terminal_orders:
            assert order.is_terminal
            for target in OrderStatus:
                for actor in (retailer, wholesaler, transporter):
                    with pytest.raises(InvalidTransition) as exc_info:
                        service.update_status(
                            order.id, target, actor, reason="retry", transporter_id="T1"
                        )
                    assert exc_info.value.current_status == order.status.value


class TestUpdateStatus:
    def test_unknown_order(self, service, wholesaler):
        with pytest.raises(OrderNotFound):
            service.update_status(uuid4(), "accepted", wholesaler)

    def test_history_is_append_only(self, place, advance, retailer, wholesaler, transporter):
        order = advance(place(), OrderStatus.DELIVERED)

        assert [h.status for h in order.status_history] == [
            OrderStatus.PENDING,
            OrderStatus.ACCEPTED,
            OrderStatus.PROCESSING,
            OrderStatus.ASSIGNED_TO_TRANSPORTER,
            OrderStatus.ACCEPTED_BY_TRANSPORTER,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
        ]
        assert [h.actor_id for h in order.status_history] == [
            retailer.id,
            wholesaler.id,
            wholesaler.id,
            wholesaler.id,
            transporter.id,
            transporter.id,
            transporter.id,
        ]
        assert order.version == 7

    def test_retries_once_on_concurrency_conflict(
        self, place, service, wholesaler, order_repository
    ):
        order = place()
        original_update = order_repository.update
        calls = []

        def flaky_update(updated, expected_version):
            calls.append(expected_version)
            if len(calls) == 1:
                raise ConcurrencyConflict("simulated")
            return original_update(updated, expected_version)

        with patch.object(order_repository, "update", side_effect=flaky_update):
            accepted = service.update_status(order.id, "accepted", wholesaler)

        assert accepted.status == OrderStatus.ACCEPTED
        assert calls == [1, 1]

    def test_second_conflict_propagates(self, place, service, wholesaler, order_repository):
        order = place()

        with patch.object(
            order_repository, "update", side_effect=ConcurrencyConflict("simulated")
        ) as update:
            with pytest.raises(ConcurrencyConflict):
                service.update_status(order.id, "accepted", wholesaler)

        assert update.call_count == 2
        assert order_repository.get_by_id(str(order.id)).status == OrderStatus.PENDING

    def test_unexpected_error_is_logged_and_reraised(
        self, place, service, wholesaler, order_repository
    ):
        order = place()

        with patch.object(order_repository, "update", side_effect=RuntimeError("disk full")):
            with patch("modules.orders.services.logger") as logger:
                bound = logger.bind.return_value
                with pytest.raises(RuntimeError):
                    service.update_status(order.id, "accepted", wholesaler)

        bound.exception.assert_called_once_with("order.transition_failed")

    def test_publishes_status_change_to_other_parties(
        self, place, service, channel, retailer, wholesaler
    ):
        order = place()
        service.update_status(order.id, "accepted", wholesaler)

        assert channel.sent[-1] == (retailer.id, order.id, "accepted")
        assert all(n.actor_id != wholesaler.id for n in channel.sent[1:])

    def test_failed_transition_publishes_nothing(self, place, service, retailer, channel):
        order = place()
        sent_before = len(channel.sent)
        with pytest.raises(Forbidden):
            service.update_status(order.id, "accepted", retailer)
        assert len(channel.sent) == sent_before


class TestConcreteScenario:
    def test_dispute_blocks_certification(
        self, service, place, retailer, wholesaler, transporter, ledger, catalog_product, now
    ):
        order = place(quantity=5)
        assert order.total_price == Decimal("5000.00")
        assert order.status == OrderStatus.PENDING

        order = service.update_status(order.id, "accepted", wholesaler)
        assert order.status == OrderStatus.ACCEPTED
        assert ledger.quantity(catalog_product.id) == 15

        order = service.update_status(order.id, "processing", wholesaler)
        order = service.update_status(
            order.id, "assigned_to_transporter", wholesaler, transporter_id="T1"
        )
        assert order.transporter_id == "T1"

        order = service.update_status(order.id, "accepted_by_transporter", transporter)
        order = service.update_status(order.id, "in_transit", transporter)
        order = service.update_status(order.id, "delivered", transporter)
        assert order.actual_delivery_date == now

        order = service.update_status(order.id, "disputed", retailer, reason="damaged goods")
        assert order.delivery_dispute.reason == "damaged goods"
        assert order.delivery_dispute.disputed_at == now

        with pytest.raises(InvalidTransition):
            service.update_status(order.id, "certified", retailer)

        order = service.update_status(order.id, "return_to_wholesaler", wholesaler)
        assert order.status == OrderStatus.RETURN_TO_WHOLESALER
        assert order.total_price == Decimal("5000.00")


class TestTransporterDecline:
    def test_decline_then_reassign(
        self, place, advance, service, retailer, wholesaler, transporter, channel
    ):
        order = advance(place(), OrderStatus.ASSIGNED_TO_TRANSPORTER)

        declined = service.update_status(
            order.id, "rejected_by_transporter", transporter, reason="No capacity"
        )
        assert declined.transporter_id is None
        assert {n.actor_id for n in channel.sent[-2:]} == {retailer.id, wholesaler.id}

        reassigned = service.update_status(
            order.id, "assigned_to_transporter", wholesaler, transporter_id="T2"
        )
        assert reassigned.transporter_id == "T2"
        assert channel.sent[-1] == ("T2", order.id, "assigned_to_transporter")


# ===========================================================================
# Deletion
# ===========================================================================


class TestDeleteOrder:
    def test_pending_order_is_deleted(self, place, service, retailer, order_repository):
        order = place()
        service.delete_order(order.id, retailer)
        assert order_repository.get_by_id(str(order.id)) is None

    def test_cancelled_by_wholesaler_is_deletable(
        self, place, advance, service, retailer, wholesaler, order_repository
    ):
        order = advance(place(), OrderStatus.ACCEPTED)
        service.update_status(order.id, "cancelled_by_wholesaler", wholesaler, reason="No truck")
        service.delete_order(order.id, retailer)
        assert order_repository.get_by_id(str(order.id)) is None

    @pytest.mark.parametrize(
        "status",
        [
            OrderStatus.ACCEPTED,
            OrderStatus.PROCESSING,
            OrderStatus.ASSIGNED_TO_TRANSPORTER,
            OrderStatus.IN_TRANSIT,
            OrderStatus.DELIVERED,
            OrderStatus.DISPUTED,
            OrderStatus.RETURN_TO_WHOLESALER,
        ],
    )
    def test_non_whitelisted_status_is_forbidden(self, status, place, advance, service, retailer):
        assert status not in DELETABLE_STATUSES
        order = advance(place(), status)
        with pytest.raises(Forbidden):
            service.delete_order(order.id, retailer)

    def test_cancelled_by_retailer_is_kept(self, place, service, retailer):
        order = place()
        service.update_status(order.id, "cancelled_by_retailer", retailer, reason="Oops")
        with pytest.raises(Forbidden):
            service.delete_order(order.id, retailer)

    def test_only_the_orders_retailer_may_delete(self, place, service, other_retailer, wholesaler):
        order = place()
        for actor in (other_retailer, wholesaler):
            with pytest.raises(Forbidden):
                service.delete_order(order.id, actor)

    def test_unknown_order(self, service, retailer):
        with pytest.raises(OrderNotFound):
            service.delete_order(uuid4(), retailer)


# ===========================================================================
# Queries
# ===========================================================================


class TestQueries:
    def test_get_order_for_party(self, place, service, retailer, wholesaler):
        order = place()
        assert service.get_order(retailer, str(order.id)).id == order.id
        assert service.get_order(wholesaler, str(order.id)).id == order.id

    def test_get_order_for_stranger(self, place, service, other_retailer, transporter):
        order = place()
        for actor in (other_retailer, transporter):
            with pytest.raises(Forbidden):
                service.get_order(actor, str(order.id))

    def test_get_unknown_order(self, service, retailer):
        with pytest.raises(OrderNotFound):
            service.get_order(retailer, str(uuid4()))

    def test_listing_is_role_scoped(
        self, place, advance, service, retailer, other_retailer, wholesaler, transporter
    ):
        mine = place()
        assigned = advance(place(), OrderStatus.ASSIGNED_TO_TRANSPORTER)

        assert service.list_orders(retailer, ListOrdersQuery()).total == 2
        assert service.list_orders(other_retailer, ListOrdersQuery()).total == 0
        assert service.list_orders(wholesaler, ListOrdersQuery()).total == 2
        page = service.list_orders(transporter, ListOrdersQuery())
        assert [o.id for o in page.items] == [assigned.id]
        assert mine.id not in [o.id for o in page.items]

    def test_status_filter(self, place, service, retailer, wholesaler):
        place()
        accepted = service.update_status(place().id, "accepted", wholesaler)

        page = service.list_orders(retailer, ListOrdersQuery(status="accepted"))
        assert [o.id for o in page.items] == [accepted.id]
        assert service.list_orders(retailer, ListOrdersQuery(status="all")).total == 2

    def test_pagination(self, place, service, retailer):
        for _ in range(5):
            place(quantity=2)

        page = service.list_orders(retailer, ListOrdersQuery(page=2, page_size=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert page.page == 2
        assert len(page.items) == 2

    def test_empty_listing_has_no_pages(self, service, retailer):
        page = service.list_orders(retailer, ListOrdersQuery())
        assert page.total == 0
        assert page.total_pages == 0
        assert page.items == []

    def test_total_and_date_filters(self, place, service, retailer, now):
        place(quantity=2)
        place(quantity=10)

        expensive = service.list_orders(retailer, ListOrdersQuery(min_total=Decimal("5000")))
        assert [o.total_price for o in expensive.items] == [Decimal("10000.00")]

        cheap = service.list_orders(retailer, ListOrdersQuery(max_total=Decimal("5000")))
        assert [o.total_price for o in cheap.items] == [Decimal("2000.00")]

        today = now.date()
        assert service.list_orders(retailer, ListOrdersQuery(start_date=today)).total == 2
        tomorrow = today + timedelta(days=1)
        assert service.list_orders(retailer, ListOrdersQuery(start_date=tomorrow)).total == 0
        assert service.list_orders(retailer, ListOrdersQuery(end_date=date(2020, 1, 1))).total == 0


class TestStatistics:
    def test_per_status_breakdown(self, place, service, retailer, wholesaler):
        place(quantity=2)
        place(quantity=4)
        service.update_status(place(quantity=10).id, "accepted", wholesaler)

        stats = service.order_statistics(retailer)

        assert stats.time_range == "all"
        assert stats.total_orders == 3
        assert stats.total_revenue == Decimal("16000.00")
        assert stats.total_quantity == 16
        assert stats.average_order_value == Decimal("5333.33")

        pending = stats.by_status["pending"]
        assert pending.count == 2
        assert pending.revenue == Decimal("6000.00")
        assert pending.average_value == Decimal("3000.00")
        assert pending.quantity == 6
        assert stats.by_status["accepted"].count == 1

    def test_every_status_is_reported(self, service, retailer):
        stats = service.order_statistics(retailer)

        assert set(stats.by_status) == set(OrderStatus.values)
        assert stats.total_orders == 0
        assert stats.average_order_value == Decimal("0.00")

    def test_scoped_to_actor(self, place, service, other_retailer):
        place()
        assert service.order_statistics(other_retailer).total_orders == 0

    @pytest.mark.parametrize("time_range", ["today", "week", "month", "year"])
    def test_time_ranges_include_orders_placed_now(self, time_range, place, service, retailer):
        place()
        assert service.order_statistics(retailer, time_range).total_orders == 1
