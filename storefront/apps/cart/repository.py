"""SQLAlchemy repository for carts.

A cart is a ``carts`` header row (unique per user) plus ``cart_items`` rows.
``save`` replaces the lines of the cart inside one transaction, so a cart is
never observed half-written.
"""

from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.db import Base, get_session
from storefront.errors import PersistenceFailure

from .domain import Cart, CartItem, CartRepository


class CartModel(Base):
    __tablename__ = "carts"
    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False, unique=True, index=True)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False)
    items: Mapped[list["CartItemModel"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )


class CartItemModel(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="ux_cart_item_product"),)
    id = mapped_column(Integer, primary_key=True)
    cart_id = mapped_column(ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    position = mapped_column(Integer, nullable=False)
    product_id = mapped_column(Integer, nullable=False)
    quantity = mapped_column(Integer, nullable=False)
    unit_price_cents = mapped_column(Integer, nullable=False)
    name = mapped_column(String(200), nullable=False, default="")
    cart: Mapped[CartModel] = relationship(back_populates="items")


def _to_domain(row: CartModel) -> Cart:
    return Cart(
        user_id=row.user_id,
        items=[
            CartItem(
                product_id=i.product_id,
                quantity=i.quantity,
                unit_price_cents=i.unit_price_cents,
                name=i.name,
            )
            for i in row.items
        ],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlCartRepository(CartRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, user_id: int) -> Optional[Cart]:
        try:
            with get_session(self.engine) as s:
                row = s.execute(select(CartModel).where(CartModel.user_id == user_id)).scalars().first()
                return _to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"cart read failed: {e}") from e

    def save(self, cart: Cart) -> None:
        try:
            with get_session(self.engine) as s:
                row = s.execute(select(CartModel).where(CartModel.user_id == cart.user_id)).scalars().first()
                if row is None:
                    row = CartModel(user_id=cart.user_id, created_at=cart.created_at)
                    s.add(row)
                row.updated_at = cart.updated_at
                # Flush the removals first so the (cart_id, product_id)
                # unique constraint does not see old and new lines together.
                row.items.clear()
                s.flush()
                for pos, item in enumerate(cart.items):
                    row.items.append(
                        CartItemModel(
                            position=pos,
                            product_id=item.product_id,
                            quantity=item.quantity,
                            unit_price_cents=item.unit_price_cents,
                            name=item.name,
                        )
                    )
                s.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"cart write failed: {e}") from e
