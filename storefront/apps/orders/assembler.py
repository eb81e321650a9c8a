"""Order assembler: turns a cart into an order as one logical transaction.

``create_order`` runs the sequence

    reserve all lines → persist order → commit all reservations → clear cart

while holding the shopper's cart lock, so the cart cannot change under the
checkout. Reservations are taken in ascending product id order. If a
reservation or the order write fails, every reservation taken by the attempt
is released (in reverse order) before the error is raised: stock ends
exactly where it was and the cart is untouched.
"""

import logging
import uuid
from typing import List, Optional

from storefront.apps.cart.domain import CartItem
from storefront.apps.cart.store import CartStore
from storefront.apps.stock.domain import ReservationToken, TokenStatus
from storefront.apps.stock.ledger import StockLedger
from storefront.errors import (
    AlreadyResolved,
    EmptyCart,
    InvalidStateTransition,
    NotFound,
    PersistenceFailure,
    ProductUnavailable,
    ShopError,
)

from .domain import Order, OrderItem, OrderRepository, OrderStatus, ShippingDetails
from .status import OrderStatusMachine, UNFULFILLED, can_delete

logger = logging.getLogger("storefront.orders")


class OrderAssembler:
    """Creates, reads and deletes orders.

    Args:
        carts: Cart store the order is built from.
        ledger: Stock ledger used to reserve and commit stock.
        orders: Order persistence port.
        status: Status machine; its per-order locks also guard deletes.
    """

    def __init__(self, carts: CartStore, ledger: StockLedger, orders: OrderRepository, status: OrderStatusMachine):
        self.carts = carts
        self.ledger = ledger
        self.orders = orders
        self.status = status

    def create_order(
        self,
        user_id: int,
        shipping: Optional[ShippingDetails] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """Check out the user's cart.

        Args:
            user_id: Authenticated shopper.
            shipping: Optional contact and delivery details.
            notes: Optional free-text notes.

        Returns:
            Order: The persisted order, status ``Pending``.

        Raises:
            EmptyCart: If the cart has no items (stock is not touched).
            ProductUnavailable: If a product was removed from the catalog or
                soft-deleted after it was added (stock is not touched), or
                its stock record was frozen.
            InsufficientStock: If a product cannot cover its line; names the
                product. All reservations of the attempt are released.
            PersistenceFailure: If the order could not be written, or a
                rollback step itself failed. All reservations of the attempt
                are released.
        """
        attempt_id = uuid.uuid4().hex
        with self.carts.checkout(user_id) as checkout:
            cart = checkout.cart
            if cart.is_empty:
                raise EmptyCart(f"Cart of user {user_id} is empty")

            lines = sorted(cart.items, key=lambda i: i.product_id)
            self._ensure_sellable(lines)
            tokens: List[ReservationToken] = []
            try:
                for line in lines:
                    tokens.append(self.ledger.reserve(line.product_id, line.quantity, attempt_id=attempt_id))

                order = Order(
                    user_id=user_id,
                    items=tuple(
                        OrderItem(
                            product_id=i.product_id,
                            quantity=i.quantity,
                            unit_price_cents=i.unit_price_cents,
                            name=i.name,
                        )
                        for i in cart.items
                    ),
                    shipping=shipping,
                    notes=notes,
                )
                try:
                    order = self.orders.create(order)
                except ShopError:
                    raise
                except Exception as e:
                    raise PersistenceFailure(f"order write failed: {e}") from e
            except Exception as e:
                logger.warning(
                    "checkout failed, releasing reservations",
                    extra={"user_id": user_id, "attempt_id": attempt_id, "reserved": len(tokens), "error": str(e)},
                )
                failed = self._release_all(tokens)
                if failed:
                    raise PersistenceFailure(
                        f"checkout failed ({e}) and {len(failed)} reservation(s) could not be released"
                    ) from e
                raise

            try:
                for token in tokens:
                    self.ledger.commit(token)
                checkout.clear()
            except Exception as e:
                logger.error(
                    "checkout failed after persist, undoing order",
                    extra={"order_number": order.order_number, "attempt_id": attempt_id, "error": str(e)},
                )
                problems = self._undo_placed(order, tokens)
                if problems:
                    raise PersistenceFailure(
                        f"checkout could not be completed ({e}); rollback incomplete: {'; '.join(problems)}"
                    ) from e
                if isinstance(e, PersistenceFailure):
                    raise
                raise PersistenceFailure(f"checkout could not be completed: {e}") from e

        logger.info(
            "order created",
            extra={
                "order_number": order.order_number,
                "user_id": user_id,
                "items": len(order.items),
                "total_cents": order.total_cents,
                "attempt_id": attempt_id,
            },
        )
        return order

    def _ensure_sellable(self, lines: List[CartItem]) -> None:
        """Refuse lines whose product left the catalog or was soft-deleted."""
        for line in lines:
            product = self.carts.catalog.get_product(line.product_id)
            if product is None or not product.is_active:
                raise ProductUnavailable(f"Product {line.product_id} is not available", product_id=line.product_id)

    def _release_all(self, tokens: List[ReservationToken]) -> List[ReservationToken]:
        """Release every active token, newest first.

        A failing release is logged and the loop goes on with the remaining
        tokens.

        Returns:
            The tokens that could not be released.
        """
        failed: List[ReservationToken] = []
        for token in reversed(tokens):
            try:
                self.ledger.release(token)
            except AlreadyResolved:
                continue
            except Exception as e:
                logger.error(
                    "release failed",
                    extra={"product_id": token.product_id, "token": str(token.token_id), "error": str(e)},
                )
                failed.append(token)
        return failed

    def _undo_placed(self, order: Order, tokens: List[ReservationToken]) -> List[str]:
        """Compensate a persisted order whose commit or cart clear failed.

        Removes the order, releases tokens still active and restocks the
        ones already committed. Every step runs even when an earlier one
        fails.

        Returns:
            Descriptions of the steps that failed; empty when the rollback
            is complete.
        """
        problems: List[str] = []
        try:
            self.orders.delete(order.id)
        except Exception as e:
            logger.error("order row left behind", extra={"order_number": order.order_number, "error": str(e)})
            problems.append(f"order {order.order_number} still exists ({e})")

        committed = [(t.product_id, t.quantity) for t in tokens if t.status == TokenStatus.COMMITTED]
        failed = self._release_all(tokens)
        if failed:
            problems.append(f"{len(failed)} reservation(s) could not be released")
        if committed:
            try:
                self.ledger.restock(committed)
            except Exception as e:
                problems.append(f"restock failed ({e})")
        return problems

    def delete_order(self, order_id: uuid.UUID) -> None:
        """Administrative delete.

        ``Pending``/``Confirmed`` orders give their committed units back to
        available stock first; ``Cancelled`` orders already did on
        cancellation and are only removed.

        Raises:
            NotFound: If the order does not exist.
            InvalidStateTransition: If the order is ``Shipped`` or
                ``Delivered``; nothing changes.
            PersistenceFailure: If the restock or the delete fails; a
                restock already applied is reverted.
        """
        with self.status.locks.hold(order_id):
            order = self.orders.get(order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found")
            if not can_delete(order.status):
                raise InvalidStateTransition(f"Cannot delete order {order.order_number} in status {order.status.value}")

            restock = order.status in UNFULFILLED
            if restock:
                self.ledger.restock(order.stock_lines())
            try:
                deleted = self.orders.delete(order_id)
            except Exception:
                if restock:
                    self.ledger.unstock(order.stock_lines())
                raise
            if not deleted:
                if restock:
                    self.ledger.unstock(order.stock_lines())
                raise NotFound(f"Order {order_id} not found")

        logger.info("order deleted", extra={"order_number": order.order_number, "restocked": restock})

    # ---- reads ----

    def get_order(self, order_id: uuid.UUID) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        order = self.orders.get_by_number(order_number)
        if order is None:
            raise NotFound(f"Order {order_number} not found")
        return order

    def list_orders(self, user_id: Optional[int] = None, status: Optional[OrderStatus] = None) -> List[Order]:
        return self.orders.list(user_id=user_id, status=status)
