"""Product catalog as seen by the order pipeline.

The catalog itself (CRUD, categories, images) is owned elsewhere; the
pipeline only needs to know whether a product exists, whether it is still
sellable and what it costs right now.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class ProductState(str, Enum):
    """Lifecycle state of a product. ``INACTIVE`` is a soft delete."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class Product:
    """Read model of a catalog product.

    Attributes:
        product_id: Catalog identifier.
        name: Display name, snapshotted into cart and order lines.
        price_cents: List price in integer cents.
        discount_price_cents: Optional discounted price; wins over the list
            price when set.
        state: ``ProductState`` flag.
    """

    product_id: int
    name: str
    price_cents: int
    discount_price_cents: Optional[int] = None
    state: ProductState = ProductState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.state == ProductState.ACTIVE

    @property
    def unit_price_cents(self) -> int:
        """Price a shopper pays for one unit right now."""
        if self.discount_price_cents is not None:
            return self.discount_price_cents
        return self.price_cents


class ProductCatalog(Protocol):
    """Port used by the cart to validate adds and snapshot prices."""

    def get_product(self, product_id: int) -> Optional[Product]:
        """Return the product, or None when it does not exist.

        Args:
            product_id: Catalog identifier to look up.

        Returns:
            The ``Product`` read model, or None.
        """
        raise NotImplementedError()
