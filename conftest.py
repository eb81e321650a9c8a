"""Shared pytest fixtures.

The default wiring is fully in-process (in-memory repositories), seeded with
a small catalog and matching stock. SQL adapter tests use ``sql_engine``, an
in-memory SQLite database shared across sessions.
"""

import pytest

from storefront.apps.catalog.adapters import InMemoryCatalog
from storefront.apps.catalog.domain import ProductState
from storefront.db import init_db, make_engine
from storefront.providers import build_memory_storefront

WIDGET, GADGET, GIZMO, RETIRED = 1, 2, 3, 4

SEED_STOCK = {WIDGET: 10, GADGET: 5, GIZMO: 1, RETIRED: 3}


@pytest.fixture
def catalog() -> InMemoryCatalog:
    c = InMemoryCatalog()
    c.add(WIDGET, "Widget", price_cents=1000)
    c.add(GADGET, "Gadget", price_cents=2500, discount_price_cents=2000)
    c.add(GIZMO, "Gizmo", price_cents=500)
    c.add(RETIRED, "Retired thing", price_cents=700, state=ProductState.INACTIVE)
    return c


@pytest.fixture
def shop(catalog):
    sf = build_memory_storefront(catalog)
    for product_id, qty in SEED_STOCK.items():
        sf.ledger.set_stock(product_id, qty)
    return sf


@pytest.fixture
def ledger(shop):
    return shop.ledger


@pytest.fixture
def carts(shop):
    return shop.carts


@pytest.fixture
def assembler(shop):
    return shop.assembler


@pytest.fixture
def status_machine(shop):
    return shop.status


@pytest.fixture
def sql_engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()
