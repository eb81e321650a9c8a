"""In-process stock repository for tests and local development.

``InMemoryStockRepository`` has no lock of its own: it relies on
``StockLedger`` serializing every call for a given product.
"""

from dataclasses import replace
from typing import Dict, Optional

from storefront.errors import PersistenceFailure

from .domain import StockLevel, StockRepository


class InMemoryStockRepository(StockRepository):
    def __init__(self) -> None:
        self._levels: Dict[int, StockLevel] = {}

    def get(self, product_id: int) -> Optional[StockLevel]:
        return self._levels.get(product_id)

    def upsert(self, product_id: int, available: int, active: bool = True) -> None:
        current = self._levels.get(product_id)
        reserved = current.reserved if current else 0
        self._levels[product_id] = StockLevel(product_id, available, reserved, active)

    def set_active(self, product_id: int, active: bool) -> bool:
        current = self._levels.get(product_id)
        if current is None:
            return False
        self._levels[product_id] = replace(current, active=active)
        return True

    def try_reserve(self, product_id: int, quantity: int) -> bool:
        current = self._levels.get(product_id)
        if current is None or not current.active or current.available < quantity:
            return False
        self._levels[product_id] = replace(
            current, available=current.available - quantity, reserved=current.reserved + quantity
        )
        return True

    def commit(self, product_id: int, quantity: int) -> None:
        current = self._levels[product_id]
        self._levels[product_id] = replace(current, reserved=current.reserved - quantity)

    def release(self, product_id: int, quantity: int) -> None:
        current = self._levels[product_id]
        self._levels[product_id] = replace(
            current, available=current.available + quantity, reserved=current.reserved - quantity
        )

    def add_available(self, product_id: int, quantity: int) -> None:
        current = self._levels.get(product_id)
        if current is None:
            raise PersistenceFailure(f"no stock record for product {product_id}")
        self._levels[product_id] = replace(current, available=current.available + quantity)

    def take_available(self, product_id: int, quantity: int) -> bool:
        current = self._levels.get(product_id)
        if current is None or current.available < quantity:
            return False
        self._levels[product_id] = replace(current, available=current.available - quantity)
        return True
