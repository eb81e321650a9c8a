"""Domain models and the persistence port for orders.

An order is an immutable snapshot of a cart at checkout time: its lines keep
the price the shopper saw, whatever happens to the catalog afterwards. After
creation only the status, the notes and the lifecycle timestamps change.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol, Tuple


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle of an order; see ``storefront.apps.orders.status``."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# ---- Entities / value objects ----
@dataclass(frozen=True)
class OrderItem:
    """A single line item in an order.

    Attributes:
        product_id: Catalog product id (reference only).
        quantity: Units bought.
        unit_price_cents: Price at purchase, copied from the cart line.
        name: Product name at purchase.
    """

    product_id: int
    quantity: int
    unit_price_cents: int
    name: str = ""

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class ShippingDetails:
    """Customer contact and delivery data captured at checkout."""

    customer_name: str = ""
    customer_email: str = ""
    customer_phone: Optional[str] = None
    shipping_address: str = ""
    city: str = ""
    zip_code: str = ""
    payment_method: str = ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Internal UUID handle.
        user_id: Owner of the order.
        items: Immutable tuple of ``OrderItem``.
        status: Current ``OrderStatus``.
        order_number: Public, unique order number; assigned on persist.
        internal_id: Monotonic sequence value backing ``order_number``.
        shipping: Optional ``ShippingDetails``.
        notes: Free text; can be replaced on status changes.
        created_at / updated_at: Timestamps (UTC).
        shipped_at / delivered_at: Set when entering those statuses.
    """

    user_id: int
    items: Tuple[OrderItem, ...]
    status: OrderStatus = OrderStatus.PENDING
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    order_number: str = ""
    internal_id: Optional[int] = None
    shipping: Optional[ShippingDetails] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @property
    def total_cents(self) -> int:
        return sum(i.subtotal_cents for i in self.items)

    @property
    def total_items(self) -> int:
        return sum(i.quantity for i in self.items)

    def stock_lines(self) -> List[Tuple[int, int]]:
        """``(product_id, quantity)`` pairs, as the stock ledger takes them."""
        return [(i.product_id, i.quantity) for i in self.items]


def format_order_number(prefix: str, created_at: datetime, internal_id: int) -> str:
    """Build the public order number, e.g. ``ORD-20250827-00000042``.

    Unique because ``internal_id`` is unique; the date only helps humans.
    """
    return f"{prefix}-{created_at:%Y%m%d}-{internal_id:08d}"


# ---- Ports ----
class OrderRepository(Protocol):
    """Port describing order persistence used by the pipeline."""

    def create(self, order: Order) -> Order:
        """Persist a new order header and its lines as one unit.

        Assigns ``internal_id`` and ``order_number``; neither may collide with
        an existing order.

        Returns:
            The persisted order (with number assigned).

        Raises:
            PersistenceFailure: If nothing could be written.
        """
        raise NotImplementedError()

    def get(self, order_id: uuid.UUID) -> Optional[Order]:
        raise NotImplementedError()

    def get_by_number(self, order_number: str) -> Optional[Order]:
        raise NotImplementedError()

    def list(self, user_id: Optional[int] = None, status: Optional[OrderStatus] = None) -> List[Order]:
        """Return matching orders, newest first."""
        raise NotImplementedError()

    def update_status(self, order: Order) -> None:
        """Persist ``status``, ``notes`` and the lifecycle timestamps."""
        raise NotImplementedError()

    def delete(self, order_id: uuid.UUID) -> bool:
        raise NotImplementedError()
