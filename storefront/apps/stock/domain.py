"""Stock records, reservation tokens and the persistence port of the ledger.

A product's stock has two counters: ``available`` (what can still be sold)
and ``reserved`` (taken by a checkout that has not committed yet). A reserve
moves units from available to reserved, a commit drops them from reserved,
a release moves them back to available.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


class TokenStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"


@dataclass(frozen=True)
class StockLevel:
    """Snapshot of one product's stock record."""

    product_id: int
    available: int
    reserved: int = 0
    active: bool = True


@dataclass(eq=False)
class ReservationToken:
    """Handle for a provisional decrement taken by one checkout attempt.

    Tokens are issued by ``StockLedger.reserve`` only. ``status`` is mutated by
    the ledger while it holds the product's lock; callers treat it as read-only.

    Attributes:
        product_id: Product the units were reserved from.
        quantity: Number of units reserved.
        attempt_id: Identifier of the checkout attempt that owns the token.
        token_id: Unique id, useful in logs.
        status: ``TokenStatus`` of the reservation.
    """

    product_id: int
    quantity: int
    attempt_id: Optional[str] = None
    token_id: uuid.UUID = field(default_factory=uuid.uuid4)
    status: TokenStatus = TokenStatus.ACTIVE

    @property
    def resolved(self) -> bool:
        return self.status != TokenStatus.ACTIVE


class StockRepository(Protocol):
    """Persistence port for stock counters.

    The ledger calls every method while holding the product's lock, so
    implementations only need to make each call atomic on its own. The
    conditional methods (``try_reserve``, ``take_available``) must check and
    update in one step so they also hold across processes.
    """

    def get(self, product_id: int) -> Optional[StockLevel]:
        raise NotImplementedError()

    def upsert(self, product_id: int, available: int, active: bool = True) -> None:
        raise NotImplementedError()

    def set_active(self, product_id: int, active: bool) -> bool:
        """Flip the active flag. Returns False when the product is unknown."""
        raise NotImplementedError()

    def try_reserve(self, product_id: int, quantity: int) -> bool:
        """Move ``quantity`` from available to reserved if it is covered.

        Returns:
            True when the record is active and had enough available units;
            False otherwise, with nothing changed.
        """
        raise NotImplementedError()

    def commit(self, product_id: int, quantity: int) -> None:
        raise NotImplementedError()

    def release(self, product_id: int, quantity: int) -> None:
        raise NotImplementedError()

    def add_available(self, product_id: int, quantity: int) -> None:
        raise NotImplementedError()

    def take_available(self, product_id: int, quantity: int) -> bool:
        """Remove ``quantity`` from available if covered. Returns success."""
        raise NotImplementedError()
