"""
Rejected-record quarantine.

Persists rejected records to the import_rejection table so they can be
reviewed after a bulk import. Rejections are buffered and written in
batches; flush() writes whatever is pending.
"""

import json
import threading
from typing import Any

from logiload.core.models import RejectedRecord
from logiload.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

INSERT_REJECTION = """
    INSERT INTO import_rejection (
        table_identifier, row_index, stage, reasons, failed_rules, payload, rejected_at
    )
    VALUES (
        %(table_identifier)s, %(row_index)s, %(stage)s, %(reasons)s,
        %(failed_rules)s, %(payload)s, %(rejected_at)s
    )
"""


class QuarantineRejectionSink:
    """
    Rejection sink that stores rejections in import_rejection.

    Usage:
        with QuarantineRejectionSink(pool) as sink:
            writer.write("order_table", records, rejection_sink=sink)
    """

    def __init__(self, pool: DatabaseConnectionPool, flush_size: int = 500):
        """
        Initialize the quarantine sink.

        Args:
            pool: Database connection pool
            flush_size: Pending rejections that trigger a write
        """
        self.pool = pool
        self.flush_size = max(1, flush_size)
        self._pending: list[RejectedRecord] = []
        self._lock = threading.Lock()
        self.written = 0

    def reject(self, rejection: RejectedRecord) -> None:
        with self._lock:
            self._pending.append(rejection)
            if len(self._pending) < self.flush_size:
                return
            batch, self._pending = self._pending, []
        self._write(batch)

    def flush(self) -> int:
        """
        Write pending rejections.

        Returns:
            Number of rejections written
        """
        with self._lock:
            batch, self._pending = self._pending, []
        return self._write(batch)

    def _write(self, batch: list[RejectedRecord]) -> int:
        if not batch:
            return 0

        with self.pool.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.executemany(INSERT_REJECTION, [_as_params(r) for r in batch])
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        self.written += len(batch)
        logger.info(
            f"Quarantined {len(batch)} rejected records",
            extra={"tables": sorted({r.table for r in batch})},
        )
        return len(batch)

    def get_stats(self, table: str | None = None) -> dict[str, Any]:
        """
        Rejection counts per stage.

        Args:
            table: Optional table identifier to filter by
        """
        query = """
            SELECT
                COUNT(*) AS total_rejected,
                COUNT(*) FILTER (WHERE stage = 'adapter') AS adapter,
                COUNT(*) FILTER (WHERE stage = 'validator') AS validator,
                COUNT(*) FILTER (WHERE stage = 'builder') AS builder
            FROM import_rejection
        """
        params: dict[str, Any] = {}
        if table:
            query += " WHERE table_identifier = %(table)s"
            params["table"] = table

        result = self.pool.execute_query(query, params)
        return result[0] if result else {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.flush()
        return False


def _as_params(rejection: RejectedRecord) -> dict[str, Any]:
    return {
        "table_identifier": rejection.table,
        "row_index": rejection.row_index,
        "stage": rejection.stage,
        "reasons": rejection.reasons,
        "failed_rules": rejection.failed_rules,
        # Payload values may be dates or decimals after transformation.
        "payload": json.dumps(rejection.payload, default=str),
        "rejected_at": rejection.rejected_at,
    }
