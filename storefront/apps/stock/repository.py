"""SQLAlchemy repository for stock counters.

The schema is a single ``stock`` table keyed by product id holding the
available and reserved counters plus the soft-delete flag. Every mutation is
a single ``UPDATE`` statement; the conditional ones carry their precondition
in the ``WHERE`` clause (``available >= :qty``) so the check and the
decrement are one atomic step in the database, even across processes that do
not share the ledger's in-process locks.
"""

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import mapped_column

from storefront.db import Base, get_session
from storefront.errors import PersistenceFailure

from .domain import StockLevel, StockRepository


class Stock(Base):
    """SQLAlchemy model for one product's stock record.

    Attributes:
        product_id: Catalog product id, primary key.
        available: Units that can still be sold (never negative).
        reserved: Units held by in-flight checkouts.
        active: False once the product is soft-deleted.
    """

    __tablename__ = "stock"
    __table_args__ = (
        CheckConstraint("available >= 0", name="ck_stock_available_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_stock_reserved_non_negative"),
    )
    product_id = mapped_column(Integer, primary_key=True, autoincrement=False)
    available = mapped_column(Integer, nullable=False, default=0)
    reserved = mapped_column(Integer, nullable=False, default=0)
    active = mapped_column(Boolean, nullable=False, default=True)


class SqlStockRepository(StockRepository):
    """``StockRepository`` over the ``stock`` table.

    Args:
        engine: Engine the repository opens its sessions on.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _execute(self, stmt) -> int:
        """Run one UPDATE in its own transaction and return the rowcount."""
        try:
            with get_session(self.engine) as s:
                res = s.execute(stmt)
                s.commit()
                return res.rowcount
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"stock update failed: {e}") from e

    def get(self, product_id: int) -> Optional[StockLevel]:
        try:
            with get_session(self.engine) as s:
                obj = s.get(Stock, product_id)
                if obj is None:
                    return None
                return StockLevel(obj.product_id, obj.available, obj.reserved, obj.active)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"stock read failed: {e}") from e

    def upsert(self, product_id: int, available: int, active: bool = True) -> None:
        try:
            with get_session(self.engine) as s:
                obj = s.get(Stock, product_id) or Stock(product_id=product_id, reserved=0)
                obj.available = available
                obj.active = active
                s.merge(obj)
                s.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"stock upsert failed: {e}") from e

    def set_active(self, product_id: int, active: bool) -> bool:
        stmt = update(Stock).where(Stock.product_id == product_id).values(active=active)
        return self._execute(stmt) == 1

    def try_reserve(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(Stock)
            .where(
                Stock.product_id == product_id,
                Stock.active.is_(True),
                Stock.available >= quantity,
            )
            .values(available=Stock.available - quantity, reserved=Stock.reserved + quantity)
        )
        return self._execute(stmt) == 1

    def commit(self, product_id: int, quantity: int) -> None:
        stmt = (
            update(Stock)
            .where(Stock.product_id == product_id, Stock.reserved >= quantity)
            .values(reserved=Stock.reserved - quantity)
        )
        if self._execute(stmt) != 1:
            raise PersistenceFailure(f"no reservation of {quantity} to commit for product {product_id}")

    def release(self, product_id: int, quantity: int) -> None:
        stmt = (
            update(Stock)
            .where(Stock.product_id == product_id, Stock.reserved >= quantity)
            .values(available=Stock.available + quantity, reserved=Stock.reserved - quantity)
        )
        if self._execute(stmt) != 1:
            raise PersistenceFailure(f"no reservation of {quantity} to release for product {product_id}")

    def add_available(self, product_id: int, quantity: int) -> None:
        stmt = (
            update(Stock)
            .where(Stock.product_id == product_id)
            .values(available=Stock.available + quantity)
        )
        if self._execute(stmt) != 1:
            raise PersistenceFailure(f"no stock record for product {product_id}")

    def take_available(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(Stock)
            .where(Stock.product_id == product_id, Stock.available >= quantity)
            .values(available=Stock.available - quantity)
        )
        return self._execute(stmt) == 1
