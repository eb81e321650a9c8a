"""SQLAlchemy repository for orders.

An order is one ``orders`` header row plus ``order_items`` rows written in a
single transaction: either the whole order exists or none of it does. The
header also carries an internal, monotonic numeric sequence (``internal_id``)
from which the public order number is derived.

On databases with sequences (PostgreSQL) ``internal_id`` comes from
``orders_internal_id_seq`` and never collides. Elsewhere (SQLite) it is the
current maximum plus one, computed under a row lock; writers in the same
process take turns, and a collision with another process is retried.
"""

import logging
import threading
import uuid
from typing import List, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Sequence, String, Uuid, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from storefront import settings
from storefront.db import Base, get_session
from storefront.errors import PersistenceFailure

from .domain import Order, OrderItem, OrderRepository, OrderStatus, ShippingDetails, format_order_number

logger = logging.getLogger("storefront.orders")

# Created by ``init_db`` only on dialects that support sequences.
ORDER_SEQUENCE = Sequence("orders_internal_id_seq", metadata=Base.metadata)


class OrderModel(Base):
    """Order header row.

    Attributes:
        id: UUID primary key used as the internal handle.
        internal_id: Monotonically increasing sequence (unique).
        order_number: Public order number (unique).
    """

    __tablename__ = "orders"
    id = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    internal_id = mapped_column(BigInteger, unique=True, nullable=False)
    order_number = mapped_column(String(50), unique=True, nullable=False)
    user_id = mapped_column(Integer, nullable=False, index=True)
    status = mapped_column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    customer_name = mapped_column(String(200), nullable=True)
    customer_email = mapped_column(String(100), nullable=True)
    customer_phone = mapped_column(String(20), nullable=True)
    shipping_address = mapped_column(String(500), nullable=True)
    city = mapped_column(String(100), nullable=True)
    zip_code = mapped_column(String(20), nullable=True)
    payment_method = mapped_column(String(50), nullable=True)
    notes = mapped_column(String(500), nullable=True)

    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False)
    shipped_at = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"
    id = mapped_column(Integer, primary_key=True)
    order_id = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position = mapped_column(Integer, nullable=False)
    product_id = mapped_column(Integer, nullable=False)
    quantity = mapped_column(Integer, nullable=False)
    unit_price_cents = mapped_column(Integer, nullable=False)
    name = mapped_column(String(200), nullable=False, default="")
    order: Mapped[OrderModel] = relationship(back_populates="items")


def _to_domain(row: OrderModel) -> Order:
    shipping = None
    if row.customer_name is not None or row.shipping_address is not None:
        shipping = ShippingDetails(
            customer_name=row.customer_name or "",
            customer_email=row.customer_email or "",
            customer_phone=row.customer_phone,
            shipping_address=row.shipping_address or "",
            city=row.city or "",
            zip_code=row.zip_code or "",
            payment_method=row.payment_method or "",
        )
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=tuple(
            OrderItem(
                product_id=i.product_id,
                quantity=i.quantity,
                unit_price_cents=i.unit_price_cents,
                name=i.name,
            )
            for i in row.items
        ),
        status=OrderStatus(row.status),
        order_number=row.order_number,
        internal_id=row.internal_id,
        shipping=shipping,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
    )


def _next_internal_id(session: Session) -> int:
    """Compute the next internal_id with a row lock on the current max.

    Two writers can still compute the same value (the lock only covers the
    existing row); the unique constraint rejects the loser, and
    ``SqlOrderRepository.create`` retries it.
    """
    last = (
        session.execute(
            select(OrderModel.internal_id)
            .order_by(OrderModel.internal_id.desc())
            .with_for_update()
            .limit(1)
        )
        .scalars()
        .first()
    )
    return 1 if last is None else last + 1


class SqlOrderRepository(OrderRepository):
    """``OrderRepository`` over the ``orders`` / ``order_items`` tables.

    Args:
        engine: Engine to open sessions on.
        prefix: Order number prefix (defaults to settings).
        retries: Attempts when a computed ``internal_id`` collides (only
            databases without sequences).
    """

    def __init__(self, engine: Engine, prefix: Optional[str] = None, retries: Optional[int] = None):
        self.engine = engine
        self.prefix = prefix or settings.ORDER_NUMBER_PREFIX
        self.retries = retries or settings.ORDER_NUMBER_RETRIES
        self._create_lock = threading.Lock()

    def _allocate_internal_id(self, session: Session) -> int:
        if self.engine.dialect.supports_sequences:
            return session.execute(select(ORDER_SEQUENCE.next_value())).scalar_one()
        return _next_internal_id(session)

    def create(self, order: Order) -> Order:
        with self._create_lock:
            for attempt in range(1, self.retries + 1):
                try:
                    with get_session(self.engine) as s:
                        nid = self._allocate_internal_id(s)
                        row = self._build_row(order, nid)
                        s.add(row)
                        s.commit()
                        return _to_domain(row)
                except IntegrityError as e:
                    logger.warning("order sequence collision, retrying", extra={"attempt": attempt, "error": str(e)})
                except SQLAlchemyError as e:
                    raise PersistenceFailure(f"order write failed: {e}") from e
        raise PersistenceFailure(f"order number allocation failed after {self.retries} attempts")

    def _build_row(self, order: Order, internal_id: int) -> OrderModel:
        ship = order.shipping
        return OrderModel(
            id=order.id,
            internal_id=internal_id,
            order_number=format_order_number(self.prefix, order.created_at, internal_id),
            user_id=order.user_id,
            status=order.status.value,
            customer_name=ship.customer_name if ship else None,
            customer_email=ship.customer_email if ship else None,
            customer_phone=ship.customer_phone if ship else None,
            shipping_address=ship.shipping_address if ship else None,
            city=ship.city if ship else None,
            zip_code=ship.zip_code if ship else None,
            payment_method=ship.payment_method if ship else None,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderItemModel(
                    position=pos,
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price_cents=i.unit_price_cents,
                    name=i.name,
                )
                for pos, i in enumerate(order.items)
            ],
        )

    def get(self, order_id: uuid.UUID) -> Optional[Order]:
        try:
            with get_session(self.engine) as s:
                row = s.get(OrderModel, order_id)
                return _to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"order read failed: {e}") from e

    def get_by_number(self, order_number: str) -> Optional[Order]:
        try:
            with get_session(self.engine) as s:
                row = (
                    s.execute(select(OrderModel).where(OrderModel.order_number == order_number))
                    .scalars()
                    .first()
                )
                return _to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"order read failed: {e}") from e

    def list(self, user_id: Optional[int] = None, status: Optional[OrderStatus] = None) -> List[Order]:
        stmt = select(OrderModel).order_by(OrderModel.internal_id.desc())
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status.value)
        try:
            with get_session(self.engine) as s:
                return [_to_domain(r) for r in s.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"order list failed: {e}") from e

    def update_status(self, order: Order) -> None:
        try:
            with get_session(self.engine) as s:
                row = s.get(OrderModel, order.id)
                if row is None:
                    raise PersistenceFailure(f"order {order.id} vanished")
                row.status = order.status.value
                row.notes = order.notes
                row.updated_at = order.updated_at
                row.shipped_at = order.shipped_at
                row.delivered_at = order.delivered_at
                s.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"order update failed: {e}") from e

    def delete(self, order_id: uuid.UUID) -> bool:
        try:
            with get_session(self.engine) as s:
                row = s.get(OrderModel, order_id)
                if row is None:
                    return False
                s.delete(row)
                s.commit()
                return True
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"order delete failed: {e}") from e
