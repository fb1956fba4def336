"""Unit tests for the in-memory order repository."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import ConcurrencyConflict
from modules.orders.repositories.interfaces import OrderListFilters
from modules.orders.repositories.memory import InMemoryOrderRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repository():
    return InMemoryOrderRepository(lock_timeout=0.5)


class TestInMemoryOrderRepository:
    def test_create_and_get(self, repository, make_order):
        order = repository.create(make_order())
        assert repository.get_by_id(str(order.id)) == order

    def test_get_malformed_id_returns_none(self, repository):
        assert repository.get_by_id("not-a-uuid") is None

    def test_duplicate_idempotency_key_conflicts(self, repository, make_order):
        repository.create(make_order(idempotency_key="k"))
        with pytest.raises(ConcurrencyConflict):
            repository.create(make_order(id=uuid4(), idempotency_key="k"))

    def test_get_by_idempotency_key(self, repository, make_order):
        order = repository.create(make_order(idempotency_key="k"))
        assert repository.get_by_idempotency_key("k") == order
        assert repository.get_by_idempotency_key("other") is None

    def test_update_checks_version(self, repository, make_order):
        order = repository.create(make_order())
        moved = order.model_copy(update={"status": OrderStatus.ACCEPTED, "version": 2})

        repository.update(moved, expected_version=1)

        with pytest.raises(ConcurrencyConflict):
            repository.update(moved.model_copy(update={"version": 3}), expected_version=1)
        assert repository.get_by_id(str(order.id)).version == 2

    def test_delete(self, repository, make_order):
        order = repository.create(make_order())
        assert repository.delete(str(order.id)) is True
        assert repository.delete(str(order.id)) is False

    def test_delete_with_stale_version_keeps_order(self, repository, make_order):
        order = repository.create(make_order())
        repository.update(
            order.model_copy(update={"status": OrderStatus.ACCEPTED, "version": 2}), 1
        )

        assert repository.delete(str(order.id), expected_version=1) is False
        assert repository.get_by_id(str(order.id)).version == 2
        assert repository.delete(str(order.id), expected_version=2) is True

    def test_delete_drops_the_order_lock(self, repository, make_order):
        order = repository.create(make_order())
        with repository.atomic():
            repository.get_for_update(str(order.id))
            assert order.id in repository._locks
            repository.delete(str(order.id), expected_version=order.version)
        assert order.id not in repository._locks

    def test_list_scopes_to_actor(self, repository, make_order, retailer, other_retailer):
        repository.create(make_order())
        items, total = repository.list(OrderListFilters(actor=other_retailer), 1, 10)
        assert (items, total) == ([], 0)
        _, total = repository.list(OrderListFilters(actor=retailer), 1, 10)
        assert total == 1

    def test_status_summary(self, repository, make_order, wholesaler):
        repository.create(make_order())
        repository.create(make_order(id=uuid4(), status=OrderStatus.ACCEPTED))

        summary = repository.status_summary(wholesaler, since=None)

        assert summary["pending"].count == 1
        assert summary["accepted"].revenue == make_order().total_price

    def test_nested_atomic_keeps_outer_lock(self, repository, make_order):
        order = repository.create(make_order())
        with repository.atomic():
            repository.get_for_update(str(order.id))
            with repository.atomic():
                repository.get_for_update(str(order.id))
            assert len(repository._held_locks()) == 1
        assert repository._held_locks() == []
