from storefront.apps.catalog.adapters import InMemoryCatalog
from storefront.apps.catalog.domain import Product, ProductState
from storefront.apps.catalog.repository import SqlProductCatalog


def test_discount_price_wins():
    assert Product(1, "A", 1000).unit_price_cents == 1000
    assert Product(1, "A", 1000, discount_price_cents=800).unit_price_cents == 800
    assert Product(1, "A", 1000, discount_price_cents=0).unit_price_cents == 0


def test_deactivate_is_a_soft_delete():
    c = InMemoryCatalog()
    c.add(1, "A", 100)
    c.deactivate(1)
    product = c.get_product(1)
    assert product is not None
    assert not product.is_active


def test_sql_catalog(sql_engine):
    c = SqlProductCatalog(sql_engine)
    assert c.get_product(1) is None
    c.upsert(Product(1, "Lamp", 4500, discount_price_cents=3900))
    c.upsert(Product(2, "Chair", 9000, state=ProductState.INACTIVE))

    lamp = c.get_product(1)
    assert (lamp.name, lamp.unit_price_cents, lamp.is_active) == ("Lamp", 3900, True)
    assert c.get_product(2).state == ProductState.INACTIVE

    c.upsert(Product(1, "Lamp", 4200))
    assert c.get_product(1).unit_price_cents == 4200
