"""
Unit tests for OrderRepository against the in-memory pool.
"""

import psycopg
import pytest

from logiload.core.errors import ArgumentError
from logiload.warehouse.repository import OrderRepository

pytestmark = pytest.mark.unit


@pytest.fixture
def repository(fake_pool, order_catalog) -> OrderRepository:
    return OrderRepository(fake_pool, order_catalog, default_table="order_table")


class TestTruncate:
    def test_truncates_default_table(self, repository, fake_pool):
        assert repository.truncate() is True
        assert fake_pool.committed == [('TRUNCATE TABLE "orders"', {})]

    def test_rejected_name_returns_false(self, repository, fake_pool):
        assert repository.truncate("orders; DROP TABLE orders") is False
        assert fake_pool.executed == []

    def test_store_failure_returns_false(self, repository, fake_pool):
        fake_pool.fail_when = lambda sql, params: psycopg.OperationalError("gone")

        assert repository.truncate() is False
        assert fake_pool.committed == []

    def test_truncate_then_insert(self, repository, fake_pool, orders):
        repository.insert_batch(orders(3))
        repository.truncate()
        repository.insert_batch(orders(3))

        inserts_after_truncate = fake_pool.committed[4:]
        assert len(inserts_after_truncate) == 3


class TestReads:
    def test_fetch_converts_rows_to_records(self, repository, fake_pool):
        fake_pool.query_results = [
            {"id": 1, "order_no": "ORD-001", "recipient_addr": "1 Harbor Road", "status": "NEW"},
        ]

        records = repository.fetch(limit=10)

        assert records == [
            {"id": 1, "order_number": "ORD-001", "address": "1 Harbor Road", "status": "NEW"},
        ]
        sql, params = fake_pool.executed[0]
        assert sql.startswith('SELECT "order_no"')
        assert params == {"limit": 10}

    def test_fetch_unmapped_table_returns_rows(self, repository, fake_pool):
        fake_pool.query_results = [{"invoice_no": "A-1"}]

        assert repository.fetch("invoices") == [{"invoice_no": "A-1"}]

    def test_count(self, repository, fake_pool):
        fake_pool.query_results = [{"count": 7}]

        assert repository.count(where='"status" = %(status)s', params={"status": "NEW"}) == 7
        assert fake_pool.executed[0][1] == {"status": "NEW"}


class TestChanges:
    def test_update_by_primary_key(self, repository, fake_pool):
        assert repository.update({"order_number": "ORD-001", "quantity": 4}) == 1

        sql, params = fake_pool.committed[0]
        assert sql.startswith('UPDATE "orders"')
        assert params == {"p0": 4, "k0": "ORD-001"}

    def test_delete_by_primary_key(self, repository, fake_pool):
        repository.delete({"order_number": "ORD-001"})

        assert fake_pool.committed[0][0] == 'DELETE FROM "orders" WHERE "order_no" = %(k0)s'

    def test_delete_needs_record_or_where(self, repository, fake_pool):
        with pytest.raises(ArgumentError):
            repository.delete()

        assert fake_pool.executed == []

    def test_delete_by_where(self, repository, fake_pool):
        repository.delete(where='"status" = %(status)s', params={"status": "CANCELLED"})

        assert fake_pool.committed[0][1] == {"status": "CANCELLED"}
