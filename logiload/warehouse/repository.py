"""
Order repository.

Table-level operations on top of the statement builder and the batch
writer. The target table is an explicit constructor value, never looked
up from the environment.
"""

import threading
from collections.abc import Iterable, Mapping
from typing import Any

from psycopg import Error as StoreError

from logiload.core.errors import ArgumentError, BuildError, SchemaError, TableNameRejected
from logiload.core.models import MappingCatalog
from logiload.core.rules.rejections import RejectionSink
from logiload.core.schema import SchemaResolver
from logiload.core.transform import from_store_row
from logiload.observability.logger import get_logger

from .batch_writer import BatchWriter, ProgressSink
from .connection import DatabaseConnectionPool
from .statement_builder import DynamicStatementBuilder

logger = get_logger(__name__)


class OrderRepository:
    """
    Reads and writes order records for one default table.

    Usage:
        repository = OrderRepository(pool, catalog, default_table="order_table")
        repository.truncate()
        repository.insert_batch(records)
        rows = repository.fetch(limit=50)
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        catalog: MappingCatalog,
        default_table: str,
        writer: BatchWriter | None = None,
        allow_fallback: bool = True,
    ):
        """
        Initialize the repository.

        Args:
            pool: Database connection pool
            catalog: Mapping catalog
            default_table: Table identifier used when a call names none
            writer: Batch writer (one is created when omitted)
            allow_fallback: Allow sample-record introspection for unmapped tables
        """
        self.pool = pool
        self.catalog = catalog
        self.default_table = default_table
        self.resolver = SchemaResolver(catalog, allow_fallback=allow_fallback)
        self.builder = DynamicStatementBuilder(catalog, self.resolver)
        self.writer = writer or BatchWriter(
            pool, catalog, default_table=default_table, allow_fallback=allow_fallback
        )

    def _table(self, table: str | None) -> str:
        return table or self.default_table

    def insert_batch(
        self,
        records: Iterable[Any],
        table: str | None = None,
        progress: ProgressSink | None = None,
        batch_size: int | None = None,
        cancel_event: threading.Event | None = None,
        rejection_sink: RejectionSink | None = None,
    ) -> int:
        """
        Write records through the batch writer.

        Returns:
            Number of rows committed
        """
        return self.writer.write(
            self._table(table),
            records,
            progress=progress,
            batch_size=batch_size,
            cancel_event=cancel_event,
            rejection_sink=rejection_sink,
        )

    def truncate(self, table: str | None = None) -> bool:
        """
        Empty a table.

        TRUNCATE runs in its own transaction, so it either fully applies or
        not at all.

        Returns:
            True on success, False on any gate, build or store failure
        """
        table = self._table(table)
        try:
            statement = self.builder.build_truncate(table)
            self.pool.execute_command(statement.sql)
        except (TableNameRejected, BuildError, SchemaError) as e:
            logger.error(f"Truncate rejected: {e}", extra={"table": table})
            return False
        except StoreError as e:
            logger.error(f"Truncate of '{table}' failed: {e}", extra={"table": table})
            return False

        logger.info(f"Truncated '{statement.table}'", extra={"table": table})
        return True

    def fetch(
        self,
        table: str | None = None,
        limit: int = 0,
        offset: int = 0,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows and convert them back into records.

        Args:
            table: Table identifier
            limit: Maximum number of rows (0: no limit)
            offset: Rows to skip
            where: Optional WHERE clause with %(name)s placeholders
            params: Parameters for the WHERE clause
        """
        table = self._table(table)
        statement = self.builder.build_select(table, where, params, limit=limit, offset=offset)
        rows = self.pool.execute_query(statement.sql, statement.params)

        if self.resolver.is_mapped(table):
            definitions = self.resolver.resolve(table)
            return [from_store_row(row, definitions) for row in rows]
        return [dict(row) for row in rows]

    def count(
        self,
        table: str | None = None,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        table = self._table(table)
        statement = self.builder.build_count(table, where, params)
        rows = self.pool.execute_query(statement.sql, statement.params)
        return int(rows[0]["count"]) if rows else 0

    def update(
        self,
        record: Mapping[str, Any],
        table: str | None = None,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Update rows matching the primary key of the record, or a WHERE clause.

        Returns:
            Number of rows affected

        Raises:
            ArgumentError: If the update target is ambiguous
        """
        statement = self.builder.build_update(self._table(table), record, where, params)
        return self.pool.execute_command(statement.sql, statement.params)

    def delete(
        self,
        record: Mapping[str, Any] | None = None,
        table: str | None = None,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Delete rows matching the primary key of the record, or a WHERE clause.

        Returns:
            Number of rows affected
        """
        if record is None and not where:
            raise ArgumentError("delete() needs a record or a WHERE clause", table=self._table(table))
        statement = self.builder.build_delete(self._table(table), record, where, params)
        return self.pool.execute_command(statement.sql, statement.params)
