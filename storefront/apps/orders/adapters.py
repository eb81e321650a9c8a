"""In-process order repository for tests and local development.

Behaves like the SQL repository: orders are stored as copies, numbers come
from a monotonic sequence, and ``create`` either stores the whole order or
nothing.
"""

import copy
import threading
import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from storefront import settings

from .domain import Order, OrderRepository, OrderStatus, format_order_number


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix or settings.ORDER_NUMBER_PREFIX
        self._lock = threading.Lock()  # sequence + indexes
        self._orders: Dict[uuid.UUID, Order] = {}
        self._by_number: Dict[str, uuid.UUID] = {}
        self._last_id = 0

    def create(self, order: Order) -> Order:
        with self._lock:
            self._last_id += 1
            stored = replace(
                order,
                internal_id=self._last_id,
                order_number=format_order_number(self.prefix, order.created_at, self._last_id),
            )
            self._orders[stored.id] = stored
            self._by_number[stored.order_number] = stored.id
            return copy.deepcopy(stored)

    def get(self, order_id: uuid.UUID) -> Optional[Order]:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order is not None else None

    def get_by_number(self, order_number: str) -> Optional[Order]:
        order_id = self._by_number.get(order_number)
        return self.get(order_id) if order_id is not None else None

    def list(self, user_id: Optional[int] = None, status: Optional[OrderStatus] = None) -> List[Order]:
        with self._lock:
            orders = list(self._orders.values())
        out = [
            copy.deepcopy(o)
            for o in orders
            if (user_id is None or o.user_id == user_id) and (status is None or o.status == status)
        ]
        out.sort(key=lambda o: o.internal_id or 0, reverse=True)
        return out

    def update_status(self, order: Order) -> None:
        with self._lock:
            current = self._orders[order.id]
            self._orders[order.id] = replace(
                current,
                status=order.status,
                notes=order.notes,
                updated_at=order.updated_at,
                shipped_at=order.shipped_at,
                delivered_at=order.delivered_at,
            )

    def delete(self, order_id: uuid.UUID) -> bool:
        with self._lock:
            order = self._orders.pop(order_id, None)
            if order is None:
                return False
            self._by_number.pop(order.order_number, None)
            return True
