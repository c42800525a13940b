"""Order placement against the in-memory stores."""

from decimal import Decimal
import threading

import pytest

from order_service.domain import LineItem
from order_service.errors import InsufficientStockError, PersistenceError, VariantNotFoundError
from order_service.memory import InMemoryVariantStore


def test_place_order_updates_state(memory_uow, memory_service):
    memory_uow.add_to_cart(7, 1, 2)

    order = memory_service.place_order(7, [LineItem(variant_id=1, quantity=2)])

    assert order.total_amount == Decimal("20.00")
    assert memory_uow.state.variants[1].stock_qty == 3
    assert memory_uow.state.cart == []
    assert len(memory_uow.state.activity) == 1
    assert memory_uow.state.activity[0].description == f"Created order #{order.id} with 1 items"


def test_other_users_cart_is_untouched(memory_uow, memory_service):
    memory_uow.add_to_cart(7, 1)
    memory_uow.add_to_cart(8, 1)

    memory_service.place_order(7, [LineItem(variant_id=1, quantity=1)])

    assert [line.user_id for line in memory_uow.state.cart] == [8]


def test_insufficient_stock_leaves_state_alone(memory_uow, memory_service):
    with pytest.raises(InsufficientStockError):
        memory_service.place_order(7, [LineItem(variant_id=2, quantity=2)])

    assert memory_uow.state.variants[2].stock_qty == 1
    assert memory_uow.state.orders == {}


def test_unknown_variant(memory_uow, memory_service):
    with pytest.raises(VariantNotFoundError):
        memory_service.place_order(7, [LineItem(variant_id=1, quantity=1), LineItem(variant_id=9999, quantity=1)])

    assert memory_uow.state.variants[1].stock_qty == 5
    assert memory_uow.state.orders == {}


def test_failure_after_first_decrement_restores_snapshot(memory_uow, memory_service, monkeypatch):
    memory_uow.add_to_cart(7, 1)
    original = InMemoryVariantStore.decrement_stock
    calls = []

    def failing_decrement(self, variant_id, amount):
        calls.append(variant_id)
        if len(calls) == 2:
            raise RuntimeError("simulated write failure")
        return original(self, variant_id, amount)

    monkeypatch.setattr(InMemoryVariantStore, "decrement_stock", failing_decrement)

    with pytest.raises(PersistenceError):
        memory_service.place_order(7, [LineItem(variant_id=1, quantity=2), LineItem(variant_id=2, quantity=1)])

    assert memory_uow.state.variants[1].stock_qty == 5
    assert memory_uow.state.variants[2].stock_qty == 1
    assert memory_uow.state.orders == {}
    assert memory_uow.state.activity == []
    assert len(memory_uow.state.cart) == 1


def test_price_change_does_not_touch_placed_order(memory_uow, memory_service):
    order = memory_service.place_order(7, [LineItem(variant_id=1, quantity=2)])

    memory_uow.set_price(1, Decimal("99.00"))

    stored = memory_service.get_order(7, order.id)
    assert stored.lines[0].unit_price == Decimal("10.00")
    assert stored.total_amount == Decimal("20.00")


def test_concurrent_orders_never_oversell(memory_uow, memory_service):
    barrier = threading.Barrier(2)
    results = []

    def place():
        barrier.wait()
        try:
            results.append(memory_service.place_order(7, [LineItem(variant_id=1, quantity=3)]))
        except InsufficientStockError as exc:
            results.append(exc)

    threads = [threading.Thread(target=place) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    errors = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(results) == 2
    assert len(errors) == 1
    assert memory_uow.state.variants[1].stock_qty == 2
    assert len(memory_uow.state.orders) == 1


def test_many_concurrent_orders_stop_at_zero(memory_uow, memory_service):
    failures = []

    def place():
        try:
            memory_service.place_order(7, [LineItem(variant_id=1, quantity=1)])
        except InsufficientStockError as exc:
            failures.append(exc)

    threads = [threading.Thread(target=place) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert memory_uow.state.variants[1].stock_qty == 0
    assert len(memory_uow.state.orders) == 5
    assert len(failures) == 3
