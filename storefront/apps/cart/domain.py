"""Cart entities and the cart persistence port."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CartItem:
    """One line of a cart.

    Attributes:
        product_id: Catalog product id; unique within a cart.
        quantity: Units wanted (>= 1).
        unit_price_cents: Price snapshotted when the line was first added.
        name: Product name snapshotted with the price.
    """

    product_id: int
    quantity: int
    unit_price_cents: int
    name: str = ""

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass
class Cart:
    """A user's active cart. At most one line per product."""

    user_id: int
    items: List[CartItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def find(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_cents(self) -> int:
        return sum(i.subtotal_cents for i in self.items)

    @property
    def total_items(self) -> int:
        return sum(i.quantity for i in self.items)


class CartRepository(Protocol):
    """Persistence port for carts.

    ``get`` must return a detached copy: mutating it must not change the
    stored cart until ``save`` is called.
    """

    def get(self, user_id: int) -> Optional[Cart]:
        raise NotImplementedError()

    def save(self, cart: Cart) -> None:
        """Persist the cart header and replace its lines in one write."""
        raise NotImplementedError()
