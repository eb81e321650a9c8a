"""In-process catalog adapter for tests and local development."""

import threading
from dataclasses import replace
from typing import Dict, Optional

from .domain import Product, ProductCatalog, ProductState


class InMemoryCatalog(ProductCatalog):
    """Dictionary-backed ``ProductCatalog``.

    Seed it with ``add``; ``deactivate`` flips the soft-delete flag the way an
    admin delete does in the catalog service.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._products: Dict[int, Product] = {}

    def get_product(self, product_id: int) -> Optional[Product]:
        return self._products.get(product_id)

    def add(
        self,
        product_id: int,
        name: str,
        price_cents: int,
        discount_price_cents: Optional[int] = None,
        state: ProductState = ProductState.ACTIVE,
    ) -> Product:
        product = Product(
            product_id=product_id,
            name=name,
            price_cents=price_cents,
            discount_price_cents=discount_price_cents,
            state=state,
        )
        with self._lock:
            self._products[product_id] = product
        return product

    def set_price(self, product_id: int, price_cents: int, discount_price_cents: Optional[int] = None) -> None:
        with self._lock:
            current = self._products[product_id]
            self._products[product_id] = replace(
                current, price_cents=price_cents, discount_price_cents=discount_price_cents
            )

    def deactivate(self, product_id: int) -> None:
        with self._lock:
            current = self._products[product_id]
            self._products[product_id] = replace(current, state=ProductState.INACTIVE)
