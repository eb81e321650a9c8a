"""Service provider helpers for wiring the storefront components.

``build_storefront`` returns a ``Storefront`` whose components share one set
of per-key lock registries. By default the storage backend comes from
``settings.STORAGE_BACKEND``: ``"sql"`` uses the SQLAlchemy repositories on
``settings.DATABASE_URL``; anything else uses the in-process adapters, which
are suitable for tests and local development.
"""

from typing import Optional

from sqlalchemy.engine import Engine

from storefront import settings
from storefront.apps.cart.adapters import InMemoryCartRepository
from storefront.apps.cart.domain import CartRepository
from storefront.apps.cart.store import CartStore
from storefront.apps.catalog.adapters import InMemoryCatalog
from storefront.apps.catalog.domain import ProductCatalog
from storefront.apps.orders.adapters import InMemoryOrderRepository
from storefront.apps.orders.assembler import OrderAssembler
from storefront.apps.orders.domain import OrderRepository
from storefront.apps.orders.status import OrderStatusMachine
from storefront.apps.stock.adapters import InMemoryStockRepository
from storefront.apps.stock.domain import StockRepository
from storefront.apps.stock.ledger import StockLedger
from storefront.service import Storefront


def wire(
    catalog: ProductCatalog,
    stock_repo: StockRepository,
    cart_repo: CartRepository,
    order_repo: OrderRepository,
) -> Storefront:
    """Assemble the components around the given adapters."""
    ledger = StockLedger(stock_repo)
    carts = CartStore(catalog, cart_repo)
    status = OrderStatusMachine(order_repo, ledger)
    assembler = OrderAssembler(carts, ledger, order_repo, status)
    return Storefront(ledger=ledger, carts=carts, status=status, assembler=assembler)


def build_memory_storefront(catalog: Optional[ProductCatalog] = None) -> Storefront:
    return wire(
        catalog or InMemoryCatalog(),
        InMemoryStockRepository(),
        InMemoryCartRepository(),
        InMemoryOrderRepository(),
    )


def build_sql_storefront(engine: Engine, catalog: Optional[ProductCatalog] = None) -> Storefront:
    """Wire the SQLAlchemy repositories on ``engine`` (tables are created)."""
    from storefront.apps.cart.repository import SqlCartRepository
    from storefront.apps.catalog.repository import SqlProductCatalog
    from storefront.apps.orders.repository import SqlOrderRepository
    from storefront.apps.stock.repository import SqlStockRepository
    from storefront.db import init_db

    init_db(engine)
    return wire(
        catalog or SqlProductCatalog(engine),
        SqlStockRepository(engine),
        SqlCartRepository(engine),
        SqlOrderRepository(engine),
    )


def build_storefront(backend: Optional[str] = None, engine: Optional[Engine] = None) -> Storefront:
    """Return a configured ``Storefront``.

    Args:
        backend: ``"sql"`` or ``"memory"``; defaults to
            ``settings.STORAGE_BACKEND``.
        engine: Engine for the SQL backend; built from settings when omitted.

    Returns:
        Storefront: Wired facade.
    """
    backend = backend or settings.STORAGE_BACKEND
    if backend == "sql":
        from storefront.db import make_engine

        return build_sql_storefront(engine or make_engine())
    return build_memory_storefront()
