"""Order status machine.

    Pending ──► Confirmed ──► Shipped ──► Delivered
       │            │
       └────────────┴──► Cancelled

Delivered and Cancelled are terminal. Stock was committed when the order was
created, so only cancellation touches it: the ordered units go back to
available stock. Transitions on one order are serialized by a per-order lock
that ``OrderAssembler.delete_order`` shares.
"""

import logging
import uuid
from typing import Dict, FrozenSet, Optional

from storefront.apps.stock.ledger import StockLedger
from storefront.errors import InvalidStateTransition, NotFound
from storefront.locks import KeyedLocks

from .domain import Order, OrderRepository, OrderStatus, utcnow

logger = logging.getLogger("storefront.orders")

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Statuses whose committed stock has not left the warehouse.
UNFULFILLED: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

# Statuses in which an administrator may delete the order.
DELETABLE: FrozenSet[OrderStatus] = UNFULFILLED | {OrderStatus.CANCELLED}


def allowed_transitions(status: OrderStatus) -> FrozenSet[OrderStatus]:
    return TRANSITIONS[status]


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def can_delete(status: OrderStatus) -> bool:
    return status in DELETABLE


class OrderStatusMachine:
    """Applies validated status transitions to persisted orders.

    Args:
        orders: Order persistence port.
        ledger: Stock ledger, used to restock on cancellation.
        locks: Per-order lock registry (shared with the assembler).
    """

    def __init__(self, orders: OrderRepository, ledger: StockLedger, locks: Optional[KeyedLocks] = None):
        self.orders = orders
        self.ledger = ledger
        self.locks = locks or KeyedLocks("order")

    def update_status(self, order_id: uuid.UUID, new_status: OrderStatus, notes: Optional[str] = None) -> Order:
        """Move an order to ``new_status``.

        Args:
            order_id: Order to update.
            new_status: Target status.
            notes: Optional text replacing the order notes.

        Returns:
            Order: The updated order.

        Raises:
            NotFound: If the order does not exist.
            InvalidStateTransition: If ``new_status`` is not reachable from the
                current status. Nothing changes.
            PersistenceFailure: If restocking or the status write fails; a
                restock already applied is reverted first.
        """
        with self.locks.hold(order_id):
            order = self.orders.get(order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found")

            old_status = order.status
            if new_status not in TRANSITIONS[old_status]:
                raise InvalidStateTransition(f"Cannot move order {order.order_number} from {old_status.value} to {new_status.value}")

            now = utcnow()
            order.status = new_status
            order.updated_at = now
            if new_status == OrderStatus.SHIPPED:
                order.shipped_at = now
            elif new_status == OrderStatus.DELIVERED:
                order.delivered_at = now
            if notes:
                order.notes = notes

            restocked = new_status == OrderStatus.CANCELLED
            if restocked:
                self.ledger.restock(order.stock_lines())
            try:
                self.orders.update_status(order)
            except Exception:
                if restocked:
                    self.ledger.unstock(order.stock_lines())
                raise

        logger.info(
            "order status changed",
            extra={"order_number": order.order_number, "from": old_status.value, "to": new_status.value},
        )
        return order
