"""Tests for the SQLAlchemy stock repository on in-memory SQLite."""

import pytest

from storefront.apps.stock.ledger import StockLedger
from storefront.apps.stock.repository import SqlStockRepository
from storefront.errors import InsufficientStock, PersistenceFailure, ProductUnavailable


@pytest.fixture
def repo(sql_engine):
    r = SqlStockRepository(sql_engine)
    r.upsert(7, 5)
    return r


def test_conditional_reserve_checks_and_decrements_in_one_update(repo):
    assert repo.try_reserve(7, 3) is True
    assert repo.try_reserve(7, 3) is False  # only 2 left
    level = repo.get(7)
    assert (level.available, level.reserved) == (2, 3)


def test_inactive_record_refuses_reserve(repo):
    assert repo.set_active(7, False) is True
    assert repo.try_reserve(7, 1) is False
    assert repo.set_active(404, False) is False


def test_commit_and_release_require_a_matching_reservation(repo):
    with pytest.raises(PersistenceFailure):
        repo.commit(7, 1)
    with pytest.raises(PersistenceFailure):
        repo.release(7, 1)


def test_upsert_keeps_reserved_counter(repo):
    repo.try_reserve(7, 2)
    repo.upsert(7, 20)
    level = repo.get(7)
    assert (level.available, level.reserved) == (20, 2)


def test_ledger_over_sql_repository(repo):
    ledger = StockLedger(repo)
    token = ledger.reserve(7, 5)
    with pytest.raises(InsufficientStock):
        ledger.reserve(7, 1)
    ledger.commit(token)
    assert ledger.get_available(7) == 0
    ledger.restock([(7, 2)])
    assert ledger.get_available(7) == 2
    ledger.freeze(7)
    with pytest.raises(ProductUnavailable):
        ledger.reserve(7, 1)
