"""SQLAlchemy-backed catalog adapter.

Reads the ``products`` table owned by the catalog service. ``upsert`` exists
for seeding and tests; catalog CRUD does not go through this module.
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import mapped_column

from storefront.db import Base, get_session
from storefront.errors import PersistenceFailure

from .domain import Product, ProductCatalog, ProductState


class ProductModel(Base):
    """Row of the ``products`` table.

    Attributes:
        id: Catalog product id.
        name: Display name (max 200 chars).
        price_cents: List price in cents.
        discount_price_cents: Optional discounted price in cents.
        state: ``ProductState`` value ("Active" / "Inactive").
    """

    __tablename__ = "products"
    id = mapped_column(Integer, primary_key=True, autoincrement=False)
    name = mapped_column(String(200), nullable=False)
    price_cents = mapped_column(Integer, nullable=False)
    discount_price_cents = mapped_column(Integer, nullable=True)
    state = mapped_column(String(20), nullable=False, default=ProductState.ACTIVE.value)


class SqlProductCatalog(ProductCatalog):
    def __init__(self, engine: Engine):
        self.engine = engine

    def get_product(self, product_id: int) -> Optional[Product]:
        try:
            with get_session(self.engine) as s:
                row = s.get(ProductModel, product_id)
                if row is None:
                    return None
                return Product(
                    product_id=row.id,
                    name=row.name,
                    price_cents=row.price_cents,
                    discount_price_cents=row.discount_price_cents,
                    state=ProductState(row.state),
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"catalog lookup failed: {e}") from e

    def upsert(self, product: Product) -> None:
        with get_session(self.engine) as s:
            s.merge(
                ProductModel(
                    id=product.product_id,
                    name=product.name,
                    price_cents=product.price_cents,
                    discount_price_cents=product.discount_price_cents,
                    state=product.state.value,
                )
            )
            s.commit()
