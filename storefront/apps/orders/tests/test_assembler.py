"""Checkout tests for the OrderAssembler.

Exercise the reserve → persist → commit → clear sequence over the in-memory
adapters, including rollback on every failure point and concurrent
checkouts competing for the same units.
"""

import re
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from storefront.apps.cart.store import CartCheckout
from storefront.apps.orders.domain import OrderStatus, ShippingDetails
from storefront.errors import (
    EmptyCart,
    InsufficientStock,
    InvalidStateTransition,
    NotFound,
    PersistenceFailure,
    ProductUnavailable,
)

USER = 11
WIDGET, GADGET, GIZMO = 1, 2, 3


def levels(ledger, *product_ids):
    return {p: (ledger.get_level(p).available, ledger.get_level(p).reserved) for p in product_ids}


def test_create_order_happy_path(assembler, carts, ledger):
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    shipping = ShippingDetails(customer_name="Ada", customer_email="ada@example.com", city="Lyon")

    order = assembler.create_order(USER, shipping=shipping, notes="leave at door")

    assert order.status == OrderStatus.PENDING
    assert re.fullmatch(r"ORD-\d{8}-\d{8}", order.order_number)
    assert [(i.product_id, i.quantity, i.unit_price_cents) for i in order.items] == [
        (WIDGET, 2, 1000),
        (GADGET, 1, 2000),
    ]
    assert order.total_cents == 4000
    assert order.shipping.city == "Lyon"
    assert order.notes == "leave at door"
    assert levels(ledger, WIDGET, GADGET) == {WIDGET: (8, 0), GADGET: (4, 0)}
    assert carts.get_cart(USER).is_empty
    assert assembler.get_order(order.id).order_number == order.order_number
    assert assembler.get_order_by_number(order.order_number).id == order.id


def test_empty_cart_never_touches_the_ledger(assembler, ledger, monkeypatch):
    def boom(*a, **kw):
        raise AssertionError("reserve must not be called")

    monkeypatch.setattr(ledger, "reserve", boom)
    with pytest.raises(EmptyCart):
        assembler.create_order(USER)
    assert assembler.list_orders() == []


def test_insufficient_stock_releases_earlier_reservations(assembler, carts, ledger):
    """Widget is reserved first, then Gizmo fails: Widget comes back."""
    carts.add_item(USER, GIZMO, 2)
    carts.add_item(USER, WIDGET, 3)
    before = levels(ledger, WIDGET, GIZMO)

    with pytest.raises(InsufficientStock) as e:
        assembler.create_order(USER)

    assert e.value.product_id == GIZMO
    assert levels(ledger, WIDGET, GIZMO) == before
    assert [(i.product_id, i.quantity) for i in carts.get_cart(USER).items] == [(GIZMO, 2), (WIDGET, 3)]
    assert assembler.list_orders() == []


def test_frozen_product_fails_checkout_cleanly(assembler, carts, ledger):
    carts.add_item(USER, WIDGET, 1)
    carts.add_item(USER, GADGET, 1)
    ledger.freeze(GADGET)

    with pytest.raises(ProductUnavailable) as e:
        assembler.create_order(USER)
    assert e.value.product_id == GADGET
    assert levels(ledger, WIDGET) == {WIDGET: (10, 0)}


def test_order_write_failure_restores_every_counter(assembler, carts, ledger, monkeypatch):
    """All three lines reserved, then the order write fails."""
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    carts.add_item(USER, GIZMO, 1)
    before = levels(ledger, WIDGET, GADGET, GIZMO)

    def broken_create(order):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(assembler.orders, "create", broken_create)
    with pytest.raises(PersistenceFailure):
        assembler.create_order(USER)

    assert levels(ledger, WIDGET, GADGET, GIZMO) == before
    assert len(carts.get_cart(USER).items) == 3


def test_commit_failure_undoes_the_placed_order(assembler, carts, ledger, monkeypatch):
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    carts.add_item(USER, GIZMO, 1)
    before = levels(ledger, WIDGET, GADGET, GIZMO)
    original = ledger.commit

    def flaky_commit(token):
        if token.product_id == GADGET:
            raise RuntimeError("lost connection")
        original(token)

    monkeypatch.setattr(ledger, "commit", flaky_commit)
    with pytest.raises(PersistenceFailure):
        assembler.create_order(USER)

    assert levels(ledger, WIDGET, GADGET, GIZMO) == before
    assert assembler.list_orders() == []
    assert len(carts.get_cart(USER).items) == 3


def test_order_keeps_prices_seen_at_checkout(assembler, carts, catalog):
    carts.add_item(USER, WIDGET, 1)
    order = assembler.create_order(USER)
    catalog.set_price(WIDGET, 99999)
    assert assembler.get_order(order.id).items[0].unit_price_cents == 1000


def test_two_shoppers_race_for_the_last_unit(assembler, carts, ledger):
    """Gizmo has one unit: exactly one checkout wins."""
    carts.add_item(100, GIZMO, 1)
    carts.add_item(200, GIZMO, 1)
    barrier = threading.Barrier(2)

    def checkout(user_id):
        barrier.wait()
        try:
            return assembler.create_order(user_id)
        except InsufficientStock:
            return None

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(checkout, [100, 200]))

    assert sum(r is not None for r in results) == 1
    assert levels(ledger, GIZMO) == {GIZMO: (0, 0)}
    loser = 100 if results[0] is None else 200
    assert len(carts.get_cart(loser).items) == 1


def test_concurrent_checkouts_get_unique_order_numbers(assembler, carts, ledger):
    ledger.set_stock(WIDGET, 1000)
    users = range(1000, 2000)
    for u in users:
        carts.add_item(u, WIDGET, 1)

    with ThreadPoolExecutor(max_workers=32) as pool:
        orders = list(pool.map(assembler.create_order, users))

    numbers = {o.order_number for o in orders}
    assert len(numbers) == 1000
    assert len({o.internal_id for o in orders}) == 1000
    assert ledger.get_available(WIDGET) == 0


def test_second_checkout_of_same_cart_sees_empty_cart(assembler, carts):
    carts.add_item(USER, WIDGET, 1)
    assembler.create_order(USER)
    with pytest.raises(EmptyCart):
        assembler.create_order(USER)


def test_list_orders_filters_and_orders_newest_first(assembler, carts, status_machine):
    carts.add_item(USER, WIDGET, 1)
    first = assembler.create_order(USER)
    carts.add_item(USER, GADGET, 1)
    second = assembler.create_order(USER)
    carts.add_item(99, WIDGET, 1)
    assembler.create_order(99)
    status_machine.update_status(first.id, OrderStatus.CONFIRMED)

    assert [o.id for o in assembler.list_orders(user_id=USER)] == [second.id, first.id]
    assert [o.id for o in assembler.list_orders(user_id=USER, status=OrderStatus.CONFIRMED)] == [first.id]
    assert len(assembler.list_orders()) == 3


def test_delete_pending_order_returns_stock(assembler, carts, ledger):
    carts.add_item(USER, WIDGET, 4)
    order = assembler.create_order(USER)
    assert ledger.get_available(WIDGET) == 6

    assembler.delete_order(order.id)

    assert ledger.get_available(WIDGET) == 10
    with pytest.raises(NotFound):
        assembler.get_order(order.id)
    with pytest.raises(NotFound):
        assembler.get_order_by_number(order.order_number)


def test_delete_cancelled_order_does_not_restock_twice(assembler, carts, ledger, status_machine):
    carts.add_item(USER, WIDGET, 4)
    order = assembler.create_order(USER)
    status_machine.update_status(order.id, OrderStatus.CANCELLED)
    assert ledger.get_available(WIDGET) == 10

    assembler.delete_order(order.id)
    assert ledger.get_available(WIDGET) == 10


FULFILLED_PATHS = [
    [OrderStatus.CONFIRMED, OrderStatus.SHIPPED],
    [OrderStatus.CONFIRMED, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
]


@pytest.mark.parametrize("path", FULFILLED_PATHS)
def test_delete_fulfilled_order_is_refused(assembler, carts, ledger, status_machine, path):
    carts.add_item(USER, WIDGET, 4)
    order = assembler.create_order(USER)
    for s in path:
        status_machine.update_status(order.id, s)

    with pytest.raises(InvalidStateTransition):
        assembler.delete_order(order.id)
    assert ledger.get_available(WIDGET) == 6
    assert assembler.get_order(order.id).status == path[-1]


def test_delete_failure_reverts_restock(assembler, carts, ledger, monkeypatch):
    carts.add_item(USER, WIDGET, 4)
    order = assembler.create_order(USER)

    def broken_delete(order_id):
        raise PersistenceFailure("db down")

    monkeypatch.setattr(assembler.orders, "delete", broken_delete)
    with pytest.raises(PersistenceFailure):
        assembler.delete_order(order.id)
    assert ledger.get_available(WIDGET) == 6


def test_delete_unknown_order(assembler):
    with pytest.raises(NotFound):
        assembler.delete_order(uuid.uuid4())


def test_product_soft_deleted_in_catalog_fails_checkout(assembler, carts, ledger, catalog):
    """Deactivating a product in the catalog is enough; the stock record is untouched."""
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    catalog.deactivate(GADGET)
    before = levels(ledger, WIDGET, GADGET)

    with pytest.raises(ProductUnavailable) as e:
        assembler.create_order(USER)

    assert e.value.product_id == GADGET
    assert levels(ledger, WIDGET, GADGET) == before
    assert len(carts.get_cart(USER).items) == 2
    assert assembler.list_orders() == []


def test_product_removed_from_catalog_fails_checkout(assembler, carts, ledger, catalog, monkeypatch):
    carts.add_item(USER, WIDGET, 2)
    original = catalog.get_product
    monkeypatch.setattr(catalog, "get_product", lambda pid: None if pid == WIDGET else original(pid))

    with pytest.raises(ProductUnavailable):
        assembler.create_order(USER)
    assert levels(ledger, WIDGET) == {WIDGET: (10, 0)}


def test_failed_release_does_not_strand_other_reservations(assembler, carts, ledger, monkeypatch):
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    carts.add_item(USER, GIZMO, 1)
    original_release = ledger.release

    def broken_create(order):
        raise RuntimeError("connection reset")

    def flaky_release(token):
        if token.product_id == GIZMO:
            raise RuntimeError("stock table locked")
        original_release(token)

    monkeypatch.setattr(assembler.orders, "create", broken_create)
    monkeypatch.setattr(ledger, "release", flaky_release)
    with pytest.raises(PersistenceFailure) as e:
        assembler.create_order(USER)

    # the order write failure stays visible as the cause
    assert isinstance(e.value.__cause__, PersistenceFailure)
    assert "order write failed" in str(e.value.__cause__)
    assert levels(ledger, WIDGET, GADGET) == {WIDGET: (10, 0), GADGET: (5, 0)}
    assert levels(ledger, GIZMO) == {GIZMO: (0, 1)}


def test_stock_is_restored_even_if_order_cannot_be_removed(assembler, carts, ledger, monkeypatch):
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    carts.add_item(USER, GIZMO, 1)
    before = levels(ledger, WIDGET, GADGET, GIZMO)
    original_commit = ledger.commit

    def flaky_commit(token):
        if token.product_id == GADGET:
            raise RuntimeError("lost connection")
        original_commit(token)

    def broken_delete(order_id):
        raise RuntimeError("orders table locked")

    monkeypatch.setattr(ledger, "commit", flaky_commit)
    monkeypatch.setattr(assembler.orders, "delete", broken_delete)
    with pytest.raises(PersistenceFailure) as e:
        assembler.create_order(USER)

    assert "still exists" in e.value.message
    assert levels(ledger, WIDGET, GADGET, GIZMO) == before
    assert len(assembler.list_orders()) == 1
    assert len(carts.get_cart(USER).items) == 3


def test_cart_clear_failure_undoes_the_placed_order(assembler, carts, ledger, monkeypatch):
    """Every token is committed when the clear fails: all of it is restocked."""
    carts.add_item(USER, WIDGET, 2)
    carts.add_item(USER, GADGET, 1)
    carts.add_item(USER, GIZMO, 1)
    before = levels(ledger, WIDGET, GADGET, GIZMO)

    def broken_clear(self):
        raise RuntimeError("cart store unavailable")

    monkeypatch.setattr(CartCheckout, "clear", broken_clear)
    with pytest.raises(PersistenceFailure):
        assembler.create_order(USER)

    assert levels(ledger, WIDGET, GADGET, GIZMO) == before
    assert assembler.list_orders() == []
    assert [(i.product_id, i.quantity) for i in carts.get_cart(USER).items] == [(WIDGET, 2), (GADGET, 1), (GIZMO, 1)]
