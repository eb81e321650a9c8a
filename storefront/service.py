"""Boundary facade of the storefront core.

``Storefront`` exposes the cart, checkout and order lifecycle operations to
callers outside the core. Each method returns a ``Result`` instead of
raising a ``ShopError``, so a transport can map ``Result.error`` to a
response code in one place. Unexpected exceptions (bugs, infrastructure
errors the adapters did not translate) still propagate.
"""

import functools
import uuid
from typing import Callable, List, Optional, TypeVar

from storefront.apps.cart.domain import Cart
from storefront.apps.cart.store import CartStore
from storefront.apps.orders.assembler import OrderAssembler
from storefront.apps.orders.domain import Order, OrderStatus, ShippingDetails
from storefront.apps.orders.status import OrderStatusMachine
from storefront.apps.stock.ledger import StockLedger
from storefront.errors import Result, ShopError

T = TypeVar("T")


def _as_result(fn: Callable[..., T]) -> Callable[..., Result[T]]:
    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return Result.success(fn(*args, **kwargs))
        except ShopError as e:
            return Result.failure(e)

    return wrapper


class Storefront:
    """Result-returning entry points over the wired components.

    Attributes:
        ledger: Stock ledger.
        carts: Cart store.
        status: Order status machine.
        assembler: Order assembler.
    """

    def __init__(self, ledger: StockLedger, carts: CartStore, status: OrderStatusMachine, assembler: OrderAssembler):
        self.ledger = ledger
        self.carts = carts
        self.status = status
        self.assembler = assembler

    # ---- cart ----

    @_as_result
    def get_cart(self, user_id: int) -> Cart:
        return self.carts.get_cart(user_id)

    @_as_result
    def add_item(self, user_id: int, product_id: int, quantity: int) -> Cart:
        return self.carts.add_item(user_id, product_id, quantity)

    @_as_result
    def update_item(self, user_id: int, product_id: int, quantity: int) -> Cart:
        return self.carts.update_item(user_id, product_id, quantity)

    @_as_result
    def remove_item(self, user_id: int, product_id: int) -> Cart:
        return self.carts.remove_item(user_id, product_id)

    @_as_result
    def clear_cart(self, user_id: int) -> Cart:
        return self.carts.clear(user_id)

    # ---- orders ----

    @_as_result
    def create_order(
        self, user_id: int, shipping: Optional[ShippingDetails] = None, notes: Optional[str] = None
    ) -> Order:
        return self.assembler.create_order(user_id, shipping=shipping, notes=notes)

    @_as_result
    def get_order(self, order_id: uuid.UUID) -> Order:
        return self.assembler.get_order(order_id)

    @_as_result
    def get_order_by_number(self, order_number: str) -> Order:
        return self.assembler.get_order_by_number(order_number)

    @_as_result
    def list_orders(self, user_id: Optional[int] = None, status: Optional[OrderStatus] = None) -> List[Order]:
        return self.assembler.list_orders(user_id=user_id, status=status)

    @_as_result
    def update_status(self, order_id: uuid.UUID, new_status: OrderStatus, notes: Optional[str] = None) -> Order:
        return self.status.update_status(order_id, new_status, notes=notes)

    @_as_result
    def delete_order(self, order_id: uuid.UUID) -> None:
        self.assembler.delete_order(order_id)

    # ---- stock ----

    @_as_result
    def get_available(self, product_id: int) -> int:
        return self.ledger.get_available(product_id)
