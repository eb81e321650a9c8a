"""Stock ledger: the only writer of product stock counters.

Every counter mutation for a product happens while holding that product's
lock from a ``KeyedLocks`` registry. Reservations for different products
never wait on each other; two reservations for the same product run one
after the other, so the availability check and the decrement cannot
interleave (two shoppers cannot both take the last unit).

The reservation protocol is::

    token = ledger.reserve(product_id, qty)   # available -= qty, reserved += qty
    ledger.commit(token)                      # reserved -= qty (sold)
    # or
    ledger.release(token)                     # available += qty, reserved -= qty

Tokens live only for the duration of one checkout attempt; there is no
expiry sweep.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from storefront.errors import (
    AlreadyResolved,
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    PersistenceFailure,
    ProductUnavailable,
)
from storefront.locks import KeyedLocks

from .domain import ReservationToken, StockLevel, StockRepository, TokenStatus

logger = logging.getLogger("storefront.stock")


class StockLedger:
    """Reserve/commit/release/restock operations over a ``StockRepository``.

    Args:
        repo: Persistence port for stock counters.
        locks: Optional lock registry; one is created when omitted.
    """

    def __init__(self, repo: StockRepository, locks: Optional[KeyedLocks] = None):
        self.repo = repo
        self.locks = locks or KeyedLocks("stock")

    # ---- reads ----

    def get_available(self, product_id: int) -> int:
        """Return the sellable quantity; 0 when the product has no record."""
        level = self.repo.get(product_id)
        return level.available if level else 0

    def get_level(self, product_id: int) -> StockLevel:
        level = self.repo.get(product_id)
        if level is None:
            raise NotFound(f"No stock record for product {product_id}", product_id=product_id)
        return level

    # ---- admin ----

    def set_stock(self, product_id: int, available: int, active: bool = True) -> None:
        """Create or overwrite a product's available counter.

        Raises:
            InvalidQuantity: If ``available`` is negative.
        """
        if available < 0:
            raise InvalidQuantity("available must be >= 0", product_id=product_id)
        with self.locks.hold(product_id):
            self.repo.upsert(product_id, available, active)
        logger.info("stock set", extra={"product_id": product_id, "available": available, "active": active})

    def freeze(self, product_id: int) -> None:
        """Refuse further reservations for a soft-deleted product."""
        self._set_active(product_id, False)

    def unfreeze(self, product_id: int) -> None:
        self._set_active(product_id, True)

    def _set_active(self, product_id: int, active: bool) -> None:
        with self.locks.hold(product_id):
            if not self.repo.set_active(product_id, active):
                raise NotFound(f"No stock record for product {product_id}", product_id=product_id)
        logger.info("stock active flag changed", extra={"product_id": product_id, "active": active})

    # ---- reservation protocol ----

    def reserve(self, product_id: int, quantity: int, attempt_id: Optional[str] = None) -> ReservationToken:
        """Atomically take ``quantity`` units out of available stock.

        Either the whole quantity is reserved or nothing changes.

        Args:
            product_id: Product to reserve from.
            quantity: Units to reserve (>= 1).
            attempt_id: Checkout attempt owning the reservation (for logs).

        Returns:
            ReservationToken: Active token to pass to ``commit`` or ``release``.

        Raises:
            InvalidQuantity: If ``quantity`` < 1.
            ProductUnavailable: If the product has no stock record or is frozen.
            InsufficientStock: If fewer than ``quantity`` units are available.
        """
        if quantity < 1:
            raise InvalidQuantity("quantity must be >= 1", product_id=product_id)

        with self.locks.hold(product_id):
            level = self.repo.get(product_id)
            if level is None or not level.active:
                raise ProductUnavailable(f"Product {product_id} is not available", product_id=product_id)
            if level.available < quantity or not self.repo.try_reserve(product_id, quantity):
                # re-read: another process may have won the conditional update
                current = self.repo.get(product_id)
                if current is None or not current.active:
                    raise ProductUnavailable(f"Product {product_id} is not available", product_id=product_id)
                available = current.available
                logger.warning(
                    "reservation refused",
                    extra={"product_id": product_id, "requested": quantity, "available": available, "attempt_id": attempt_id},
                )
                raise InsufficientStock(product_id, quantity, available)
            token = ReservationToken(product_id=product_id, quantity=quantity, attempt_id=attempt_id)

        logger.info(
            "stock reserved",
            extra={"product_id": product_id, "quantity": quantity, "token": str(token.token_id), "attempt_id": attempt_id},
        )
        return token

    def commit(self, token: ReservationToken) -> None:
        """Make a reservation permanent.

        Raises:
            AlreadyResolved: If the token was already committed or released;
                nothing changes in that case.
        """
        with self.locks.hold(token.product_id):
            self._ensure_active(token)
            self.repo.commit(token.product_id, token.quantity)
            token.status = TokenStatus.COMMITTED
        logger.info("reservation committed", extra={"product_id": token.product_id, "token": str(token.token_id)})

    def release(self, token: ReservationToken) -> None:
        """Give a reservation's units back to available stock.

        Raises:
            AlreadyResolved: If the token was already committed or released;
                nothing changes in that case.
        """
        with self.locks.hold(token.product_id):
            self._ensure_active(token)
            self.repo.release(token.product_id, token.quantity)
            token.status = TokenStatus.RELEASED
        logger.info("reservation released", extra={"product_id": token.product_id, "token": str(token.token_id)})

    @staticmethod
    def _ensure_active(token: ReservationToken) -> None:
        if token.resolved:
            raise AlreadyResolved(
                f"Reservation {token.token_id} already {token.status.value.lower()}",
                product_id=token.product_id,
            )

    # ---- reversal of committed stock ----

    def restock(self, lines: Iterable[Tuple[int, int]]) -> None:
        """Return committed units to available stock.

        Used when a placed order is cancelled or deleted. Lines are applied in
        ascending product id order, one product lock at a time. If any
        increment fails, increments already applied are taken back out so
        the call is all-or-nothing, and the failure is raised.

        Args:
            lines: ``(product_id, quantity)`` pairs.

        Raises:
            PersistenceFailure: If an increment fails.
        """
        applied: List[Tuple[int, int]] = []
        try:
            for product_id, quantity in sorted(lines):
                with self.locks.hold(product_id):
                    self.repo.add_available(product_id, quantity)
                applied.append((product_id, quantity))
        except Exception as e:
            logger.error("restock failed, reverting", extra={"applied": applied, "error": str(e)})
            self.unstock(applied)
            if isinstance(e, PersistenceFailure):
                raise
            raise PersistenceFailure(f"restock failed: {e}") from e
        logger.info("stock restocked", extra={"lines": applied})

    def unstock(self, lines: Iterable[Tuple[int, int]]) -> None:
        """Take back units added by ``restock`` (best effort, logged).

        A line that can no longer be taken back (the units were sold in the
        meantime) is logged at ERROR; the remaining lines are still processed.
        """
        for product_id, quantity in sorted(lines, reverse=True):
            try:
                with self.locks.hold(product_id):
                    ok = self.repo.take_available(product_id, quantity)
            except Exception as e:
                logger.error("unstock failed", extra={"product_id": product_id, "quantity": quantity, "error": str(e)})
                continue
            if not ok:
                logger.error("unstock refused", extra={"product_id": product_id, "quantity": quantity})
