"""
Pytest configuration and fixtures for logiload tests

This module provides shared fixtures for unit and integration tests.
"""
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, Generator

import psycopg
import pytest
from pyspark.sql import SparkSession
from testcontainers.postgres import PostgresContainer

from logiload.core.catalog import load_catalog
from logiload.core.models import MappingCatalog

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))


# =======================
# CATALOG FIXTURES
# =======================

ORDER_CATALOG: dict[str, Any] = {
    "version": "2.1",
    "description": "Test order catalog",
    "global_settings": {
        "batch_size": 2,
        "error_handling": {"skip_invalid_rows": True},
    },
    "mappings": {
        "order_table": {
            "table_name": "orders",
            "processing_order": 1,
            "is_active": True,
            "columns": {
                "order_number": {"db_column": "order_no", "required": True, "primary_key": True},
                "recipient_name": {"db_column": "recipient_name", "required": True},
                "address": {"db_column": "recipient_addr", "required": True},
                "phone1": {"db_column": "phone1"},
                "zip_code": {"db_column": "zip_code"},
                "product_name": {"db_column": "product_name"},
                "quantity": {"db_column": "quantity", "data_type": "integer", "required": True},
                "unit_price": {"db_column": "unit_price", "data_type": "decimal"},
                "order_date": {"db_column": "order_date", "data_type": "date"},
            },
            "additional_columns": {
                "id": {"db_column": "id", "data_type": "integer", "auto_increment": True},
                "status": {"db_column": "status", "default_value": "NEW"},
            },
            "validation_rules": {
                "required_fields": ["order_number", "recipient_name", "address", "phone1", "zip_code"],
                "numeric_fields": ["quantity"],
                "decimal_fields": ["unit_price"],
                "date_fields": ["order_date"],
            },
            "data_transformations": {
                "order_number": {"special_handling": "uppercase-code"},
                "phone1": {"special_handling": "digits-only"},
                "quantity": {"data_type_conversion": "integer"},
                "unit_price": {"data_type_conversion": "decimal"},
            },
        },
    },
}


@pytest.fixture
def catalog_document() -> dict[str, Any]:
    """A fresh copy of the test catalog document"""
    import copy
    return copy.deepcopy(ORDER_CATALOG)


@pytest.fixture
def order_catalog(catalog_document) -> MappingCatalog:
    return load_catalog(catalog_document)


@pytest.fixture(scope="session")
def sample_catalog_path() -> str:
    """Path to the catalog shipped in config/"""
    return os.path.join(ROOT_DIR, "config", "column_mapping.yaml")


def make_order(index: int, **overrides) -> dict[str, Any]:
    """A valid order record keyed by logical field name"""
    record = {
        "order_number": f"ORD-{index:03d}",
        "recipient_name": f"Recipient {index}",
        "address": f"{index} Harbor Road",
        "phone1": "01012345678",
        "zip_code": "04524",
        "product_name": "Tangerine box",
        "quantity": 1 + index % 3,
    }
    record.update(overrides)
    return record


@pytest.fixture
def order() -> Callable[..., dict[str, Any]]:
    """Factory for one valid order record: order(index, **overrides)"""
    return make_order


@pytest.fixture
def orders() -> Callable[[int], list[dict[str, Any]]]:
    """Factory for n valid order records"""
    def build(count: int, start: int = 1) -> list[dict[str, Any]]:
        return [make_order(i) for i in range(start, start + count)]
    return build


# =======================
# FAKE STORE (unit tests)
# =======================

class FakeCursor:
    def __init__(self, connection: "FakeConnection"):
        self.connection = connection
        self.rowcount = 0
        self._rows: list[dict] = []

    def execute(self, sql: str, params: dict | None = None) -> None:
        pool = self.connection.pool
        pool.executed.append((sql, dict(params or {})))
        if pool.fail_when is not None:
            error = pool.fail_when(sql, dict(params or {}))
            if error is not None:
                raise error
        self.connection.pending.append((sql, dict(params or {})))
        self.rowcount = 1
        self._rows = list(pool.query_results)

    def executemany(self, sql: str, params_seq) -> None:
        for params in params_seq:
            self.execute(sql, params)

    def fetchall(self) -> list[dict]:
        return self._rows

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool
        self.pending: list[tuple[str, dict]] = []

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        if self.pool.fail_commit is not None:
            raise self.pool.fail_commit
        self.pool.committed.extend(self.pending)
        self.pool.commits += 1
        self.pending = []

    def rollback(self) -> None:
        self.pool.rollbacks += 1
        self.pending = []


class FakePool:
    """
    In-memory stand-in for DatabaseConnectionPool.

    Statements are only visible in `committed` once their transaction
    commits. `fail_when(sql, params)` may return an exception to raise;
    `fail_commit` is raised by every commit while set.
    """

    def __init__(self):
        self.executed: list[tuple[str, dict]] = []
        self.committed: list[tuple[str, dict]] = []
        self.commits = 0
        self.rollbacks = 0
        self.connections = 0
        self.fail_when: Callable[[str, dict], Exception | None] | None = None
        self.query_results: list[dict] = []
        self.fail_commit: Exception | None = None

    @contextmanager
    def get_connection(self):
        self.connections += 1
        conn = FakeConnection(self)
        try:
            yield conn
        finally:
            # Uncommitted work is discarded when a connection returns to the pool.
            conn.pending = []

    def execute_query(self, query: str, params: dict | None = None) -> list[dict]:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def execute_command(self, command: str, params: dict | None = None) -> int:
        with self.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(command, params)
                    rowcount = cur.rowcount
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return rowcount

    def committed_inserts(self) -> list[dict]:
        return [params for sql, params in self.committed if sql.startswith("INSERT")]


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


# =======================
# SPARK / POSTGRES FIXTURES
# =======================

@pytest.fixture(scope="session")
def spark_session() -> Generator[SparkSession, None, None]:
    """Small local Spark, shared by every reader test"""
    spark = (
        SparkSession.builder
        .master("local[1]")
        .appName("logiload-tests")
        .config("spark.ui.enabled", "false")
        .config("spark.sql.shuffle.partitions", "1")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel("ERROR")
    yield spark
    spark.stop()


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """Throwaway Postgres with docker/init-db.sql applied"""
    with open(os.path.join(ROOT_DIR, "docker", "init-db.sql")) as f:
        schema_sql = f.read()

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_logiload",
        password="test_password",
        dbname="test_logistics",
        driver=None,
    ) as postgres:
        with psycopg.connect(postgres.get_connection_url(), autocommit=True) as conn:
            conn.execute(schema_sql)
        yield postgres


@pytest.fixture
def clean_db(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """Autocommit connection to emptied tables, for asserting on stored rows"""
    with psycopg.connect(postgres_container.get_connection_url(), autocommit=True) as conn:
        conn.execute("TRUNCATE TABLE orders, import_rejection RESTART IDENTITY")
        yield conn


@pytest.fixture
def db_pool(postgres_container, clean_db):
    from logiload.warehouse.connection import DatabaseConnectionPool

    pool = DatabaseConnectionPool(
        conninfo=postgres_container.get_connection_url(),
        min_size=1,
        max_size=3,
    )
    with pool:
        yield pool
