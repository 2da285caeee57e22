"""
Batch transactional writer.

One write() call runs Idle -> Preparing -> Executing -> Completed (or Failed /
Cancelled):

- Preparing validates every record and builds the complete ordered list of
  INSERT statements before anything touches the store. Ineligible records
  are excluded and reported to the rejection sink.
- Executing submits the statements in units. Each unit is one transaction:
  all of its statements commit together or the unit rolls back. A failed
  unit stops the run; units committed before it stay committed.

Unit size is clamped to [min_batch_size, max_batch_size]. With a memory
limit set, the size shrinks between units while the process is above the
limit and grows back (never past the starting size) once it is well below.

Re-running the same record set duplicates rows. Callers that need an
idempotent reload truncate the target table first.
"""

import threading
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import psutil
from psycopg import OperationalError

from logiload.core.errors import (
    ArgumentError,
    LogiloadError,
    TransactionError,
    ValidationRejection,
    WriteError,
)
from logiload.core.models import (
    GeneratedStatement,
    MappingCatalog,
    RejectedRecord,
    WriteProgress,
    WriterState,
    WriterStatus,
    WriteSummary,
)
from logiload.core.rules import RecordValidator
from logiload.core.rules.rejections import RejectionSink, emit_rejection
from logiload.core.schema import SchemaResolver
from logiload.core.transform import payload_of, row_as_mapping
from logiload.observability.logger import get_logger, log_operation
from logiload.observability.metrics import (
    record_unit_committed,
    record_unit_failed,
    record_unit_retried,
    track_duration,
    unit_duration_seconds,
)

from .connection import DatabaseConnectionPool
from .statement_builder import DynamicStatementBuilder

logger = get_logger(__name__)

ProgressSink = Callable[[WriteProgress], None]

MB = 1024 * 1024


def process_memory_mb() -> float:
    """Resident memory of this process in MB."""
    return psutil.Process().memory_info().rss / MB


def available_memory_mb() -> float:
    """Memory available on the host in MB."""
    return psutil.virtual_memory().available / MB


class _UnitAborted(Exception):
    def __init__(self, cause: BaseException, statement_index: int | None, in_commit: bool):
        super().__init__(str(cause))
        self.cause = cause
        self.statement_index = statement_index
        self.in_commit = in_commit


class BatchWriter:
    """
    Writes record sets into one table as a sequence of atomic units.

    Invocations on one writer are serialized; the store connection of a unit
    is never shared with another unit.

    Usage:
        writer = BatchWriter(pool, catalog, batch_size=500)
        committed = writer.write("order_table", records, progress=print)
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        catalog: MappingCatalog,
        batch_size: int | None = None,
        single_transaction: bool = False,
        default_table: str | None = None,
        max_retries: int = 3,
        retry_delays: Sequence[float] = (1.0, 2.0, 4.0),
        allow_fallback: bool = True,
        universal_rules: bool = True,
        min_batch_size: int = 1,
        max_batch_size: int | None = None,
        memory_limit_mb: float | None = None,
        memory_reader: Callable[[], float] = process_memory_mb,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the batch writer.

        Args:
            pool: Connection pool units are executed through
            catalog: Mapping catalog (read-only)
            batch_size: Statements per unit; None uses the catalog's batch_size,
                0 writes the whole set as one unit
            single_transaction: Always write the whole set as one unit
            default_table: Table identifier used when write() gets none
            max_retries: Retries of a unit after a transient store failure
            retry_delays: Seconds to wait before each retry (last value repeats)
            allow_fallback: Allow sample-record introspection for unmapped tables
            universal_rules: Apply the universal order rules when validating
            min_batch_size: Smallest unit size a non-zero size is clamped to
            max_batch_size: Largest unit size (None: unbounded)
            memory_limit_mb: Enables adaptive unit sizing around this memory level
            memory_reader: Returns the memory level compared to memory_limit_mb
            sleep: Delay function (replaced in tests)
        """
        if batch_size is not None and batch_size < 0:
            raise ArgumentError("batch_size must be >= 0")
        if max_retries < 0:
            raise ArgumentError("max_retries must be >= 0")
        if min_batch_size < 1:
            raise ArgumentError("min_batch_size must be >= 1")
        if max_batch_size is not None and max_batch_size < min_batch_size:
            raise ArgumentError("max_batch_size must be >= min_batch_size")
        if memory_limit_mb is not None and memory_limit_mb <= 0:
            raise ArgumentError("memory_limit_mb must be > 0")

        self.pool = pool
        self.catalog = catalog
        self.batch_size = batch_size
        self.single_transaction = single_transaction
        self.default_table = default_table
        self.max_retries = max_retries
        self.retry_delays = tuple(retry_delays) or (0.0,)
        self.allow_fallback = allow_fallback
        self.universal_rules = universal_rules
        self.min_batch_size = min_batch_size
        self.max_batch_size = max_batch_size
        self.memory_limit_mb = memory_limit_mb
        self._memory_reader = memory_reader
        self._sleep = sleep

        self._lock = threading.Lock()
        self._state = WriterState.IDLE
        self._last_summary: WriteSummary | None = None
        self._current_batch_size = 0

    @classmethod
    def from_settings(cls, pool: DatabaseConnectionPool, catalog: MappingCatalog, settings) -> "BatchWriter":
        """Writer configured from a logiload.config.Settings object."""
        return cls(
            pool,
            catalog,
            batch_size=settings.batch_size,
            single_transaction=settings.single_transaction,
            default_table=settings.default_table,
            max_retries=settings.max_retries,
            retry_delays=settings.retry_delays,
            allow_fallback=settings.allow_fallback,
            min_batch_size=settings.min_batch_size,
            max_batch_size=settings.max_batch_size,
            memory_limit_mb=settings.memory_limit_mb,
        )

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def last_summary(self) -> WriteSummary | None:
        return self._last_summary

    # =======================
    # UNIT SIZING
    # =======================

    def set_batch_size(self, batch_size: int) -> None:
        """
        Change the unit size used by the next write.

        Raises:
            ArgumentError: If the size is negative or outside the clamping bounds
        """
        if batch_size < 0:
            raise ArgumentError("batch_size must be >= 0")
        too_large = self.max_batch_size is not None and batch_size > self.max_batch_size
        if batch_size and (batch_size < self.min_batch_size or too_large):
            upper = self.max_batch_size if self.max_batch_size is not None else "unbounded"
            raise ArgumentError(f"batch_size must be 0 or between {self.min_batch_size} and {upper}")
        self.batch_size = batch_size
        logger.info(f"Batch size set to {batch_size}")

    def status(self) -> WriterStatus:
        return WriterStatus(
            state=self._state,
            batch_size=self._unit_size(None),
            current_batch_size=self._current_batch_size,
            min_batch_size=self.min_batch_size,
            max_batch_size=self.max_batch_size,
            adaptive=self.memory_limit_mb is not None,
            memory_limit_mb=self.memory_limit_mb,
            memory_mb=self._read_memory(self._memory_reader),
            available_memory_mb=self._read_memory(available_memory_mb),
        )

    def _unit_size(self, batch_size: int | None) -> int:
        """Clamped unit size for a write; 0 means one unit for the whole set."""
        size = batch_size if batch_size is not None else self.batch_size
        if size is None:
            size = self.catalog.batch_size
        if size < 0:
            raise ArgumentError("batch_size must be >= 0")
        if self.single_transaction or size == 0:
            return 0
        size = max(size, self.min_batch_size)
        if self.max_batch_size is not None:
            size = min(size, self.max_batch_size)
        return size

    def _adapt(self, size: int, ceiling: int, table: str) -> int:
        if self.memory_limit_mb is None or size == 0:
            return size
        memory = self._read_memory(self._memory_reader)
        if memory is None:
            return size

        if memory > self.memory_limit_mb:
            adjusted = max(size * 3 // 4, self.min_batch_size)
        elif memory < self.memory_limit_mb / 2 and size < ceiling:
            adjusted = min(max(size * 5 // 4, size + 1), ceiling)
        else:
            return size

        if adjusted != size:
            logger.info(
                f"Unit size for '{table}' {size} -> {adjusted} at {memory:.0f}MB",
                extra={"table": table, "memory_mb": round(memory, 1)},
            )
        return adjusted

    @staticmethod
    def _read_memory(reader: Callable[[], float]) -> float | None:
        try:
            return float(reader())
        except Exception as e:
            logger.warning(f"Memory reading failed: {e}")
            return None

    # =======================
    # WRITE
    # =======================

    def write(
        self,
        table: str | None,
        records: Iterable[Any],
        progress: ProgressSink | None = None,
        batch_size: int | None = None,
        cancel_event: threading.Event | None = None,
        rejection_sink: RejectionSink | None = None,
        row_indices: Sequence[int] | None = None,
    ) -> int:
        """
        Validate, build and write a record set.

        Args:
            table: Table identifier (catalog key or persisted name); None uses default_table
            records: Records keyed by logical field name (mappings or Spark Rows)
            progress: Called with a WriteProgress after every committed unit
            batch_size: Unit size for this call only
            cancel_event: When set, no further unit is submitted
            rejection_sink: Receives a RejectedRecord per excluded record
            row_indices: Source row number of each record, used in rejections and
                statements instead of the position in `records`

        Returns:
            Number of rows committed

        Raises:
            TableNameRejected: Before any store interaction
            SchemaError: If no columns can be resolved
            ValidationRejection: If the catalog disables skipping invalid rows
            BuildError: If a statement cannot be built
            TransactionError: If a unit fails; earlier units stay committed
            WriteError: On any other failure, e.g. a rejection sink that raises
        """
        table = table or self.default_table
        if not table:
            raise ArgumentError("No table identifier given and no default table configured")

        with self._lock:
            summary = WriteSummary(table=table, state=WriterState.PREPARING)
            self._last_summary = summary
            self._state = WriterState.PREPARING

            try:
                statements = self.prepare(table, records, rejection_sink, summary, row_indices)
                size = self._unit_size(batch_size)
            except LogiloadError as e:
                self._fail(summary, e)
                raise
            except Exception as e:
                error = WriteError(table, e)
                self._fail(summary, error)
                raise error from e

            requested = next(s for s in (batch_size, self.batch_size, self.catalog.batch_size) if s is not None)
            if size and requested and size != requested:
                logger.info(
                    f"Unit size {requested} clamped to {size}",
                    extra={"table": table, "min": self.min_batch_size, "max": self.max_batch_size},
                )
            self._current_batch_size = size
            summary.unit_count = _units_needed(len(statements), size)
            self._state = summary.state = WriterState.EXECUTING

            with log_operation(
                f"Writing {len(statements)} rows to '{table}'",
                logger=logger,
                table=table,
                units=summary.unit_count,
            ):
                try:
                    self._execute(table, statements, size, progress, cancel_event, summary)
                except TransactionError as e:
                    self._fail(summary, e)
                    raise
                except Exception as e:
                    error = WriteError(table, e)
                    self._fail(summary, error)
                    raise error from e

            if summary.cancelled:
                self._state = summary.state = WriterState.CANCELLED
            else:
                self._state = summary.state = WriterState.COMPLETED
            return summary.committed

    # =======================
    # PREPARING
    # =======================

    def prepare(
        self,
        table: str,
        records: Iterable[Any],
        rejection_sink: RejectionSink | None = None,
        summary: WriteSummary | None = None,
        row_indices: Sequence[int] | None = None,
    ) -> list[GeneratedStatement]:
        """
        Build the ordered INSERT statements for every eligible record.

        Nothing is executed. Ineligible records, including rows that are not
        mappings at all, are reported to the rejection sink and left out,
        unless the catalog turns skipping off, in which case the first
        rejection is raised.
        """
        summary = summary or WriteSummary(table=table)
        builder = DynamicStatementBuilder(
            self.catalog,
            SchemaResolver(self.catalog, allow_fallback=self.allow_fallback),
        )
        # Gate the identifier before touching any record.
        builder.persisted_table(table)

        mapping = self.catalog.resolve_table(table)
        validator = RecordValidator.for_table(
            mapping,
            roles=self.catalog.global_settings.record_fields,
            universal_rules=self.universal_rules,
        )
        skip_invalid = self.catalog.global_settings.error_handling.skip_invalid_rows
        indices = list(row_indices) if row_indices is not None else None

        statements: list[GeneratedStatement] = []
        for position, row in enumerate(records):
            summary.total_records += 1
            if indices is None:
                row_index = position
            elif position < len(indices):
                row_index = indices[position]
            else:
                raise ArgumentError("row_indices is shorter than the record set", table=table)

            try:
                record = dict(row_as_mapping(row))
            except TypeError as e:
                rejection = RejectedRecord(
                    table=table,
                    row_index=row_index,
                    stage="adapter",
                    reasons=[str(e)],
                    payload=payload_of(row),
                )
                self._reject(rejection, rejection_sink, summary, skip_invalid)
                continue

            result = validator.validate(record, row_index=row_index)
            if not result.passed:
                rejection = RejectedRecord(
                    table=table,
                    row_index=row_index,
                    stage="validator",
                    reasons=result.error_messages,
                    failed_rules=result.failed_rules,
                    payload=record,
                )
                self._reject(rejection, rejection_sink, summary, skip_invalid)
                continue
            summary.lenient_skips += len(result.lenient_skips)

            try:
                statements.append(builder.build_insert(table, record, row_index=row_index))
            except ValidationRejection as e:
                rejection = RejectedRecord(
                    table=table,
                    row_index=row_index,
                    stage="builder",
                    reasons=e.reasons,
                    payload=record,
                )
                self._reject(rejection, rejection_sink, summary, skip_invalid)

        if indices is not None and len(indices) != summary.total_records:
            raise ArgumentError("row_indices is longer than the record set", table=table)

        summary.accepted = len(statements)
        logger.info(
            f"Prepared {len(statements)} of {summary.total_records} records for '{table}' "
            f"({summary.lenient_skips} missing phone/zip values let through)",
            extra={
                "table": table,
                "accepted": summary.accepted,
                "rejected": summary.rejected,
                "lenient_skips": summary.lenient_skips,
            },
        )
        return statements

    def _reject(
        self,
        rejection: RejectedRecord,
        sink: RejectionSink | None,
        summary: WriteSummary,
        skip_invalid: bool,
    ) -> None:
        summary.rejected += 1
        emit_rejection(sink, rejection)
        if not skip_invalid:
            raise ValidationRejection(
                rejection.table,
                rejection.reasons,
                row_index=rejection.row_index,
                record=rejection.payload,
            )

    # =======================
    # EXECUTING
    # =======================

    def _execute(
        self,
        table: str,
        statements: list[GeneratedStatement],
        size: int,
        progress: ProgressSink | None,
        cancel_event: threading.Event | None,
        summary: WriteSummary,
    ) -> None:
        total = len(statements)
        ceiling = size
        position = 0
        unit_index = 0
        while position < total:
            unit_index += 1
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                logger.warning(
                    f"Write to '{table}' cancelled before unit {unit_index}/{summary.unit_count}, "
                    f"{summary.committed} rows committed",
                    extra={"table": table, "unit_index": unit_index, "committed": summary.committed},
                )
                return

            step = size or total
            unit = statements[position:position + step]
            summary.unit_count = unit_index - 1 + _units_needed(total - position, step)

            self._run_unit_with_retry(table, unit_index, unit, summary)

            position += len(unit)
            summary.committed += len(unit)
            summary.units_committed += 1
            record_unit_committed(table, len(unit))
            self._report(progress, WriteProgress(
                table=table,
                unit_index=unit_index,
                unit_count=summary.unit_count,
                processed=summary.committed,
                total=total,
            ))

            if position < total:
                size = self._adapt(size, ceiling, table)
                self._current_batch_size = size

    def _run_unit_with_retry(
        self,
        table: str,
        unit_index: int,
        unit: list[GeneratedStatement],
        summary: WriteSummary,
    ) -> None:
        attempt = 0
        while True:
            try:
                with track_duration(unit_duration_seconds, table=table):
                    self._run_unit(unit)
                return
            except _UnitAborted as aborted:
                # A unit whose commit failed is never replayed.
                transient = isinstance(aborted.cause, OperationalError) and not aborted.in_commit
                if transient and attempt < self.max_retries:
                    delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
                    attempt += 1
                    record_unit_retried(table)
                    logger.warning(
                        f"Unit {unit_index} of '{table}' hit a transient failure, "
                        f"retry {attempt}/{self.max_retries} in {delay}s: {aborted.cause}",
                        extra={"table": table, "unit_index": unit_index, "attempt": attempt},
                    )
                    self._sleep(delay)
                    continue

                record_unit_failed(table)
                raise TransactionError(
                    table,
                    unit_index,
                    aborted.cause,
                    committed=summary.committed,
                    statement_index=aborted.statement_index,
                    in_commit=aborted.in_commit,
                ) from aborted.cause

    def _run_unit(self, unit: list[GeneratedStatement]) -> None:
        """Execute one unit in its own transaction."""
        statement_index: int | None = None
        in_commit = False
        try:
            with self.pool.get_connection() as conn:
                try:
                    with conn.cursor() as cur:
                        for statement_index, statement in enumerate(unit):
                            cur.execute(statement.sql, statement.params)
                    in_commit = True
                    conn.commit()
                except Exception:
                    self._rollback(conn)
                    raise
        except Exception as e:
            raise _UnitAborted(e, None if in_commit else statement_index, in_commit) from e

    @staticmethod
    def _rollback(conn) -> None:
        try:
            conn.rollback()
        except Exception as e:
            # The pool discards broken connections.
            logger.error(f"Rollback failed: {e}")

    @staticmethod
    def _report(progress: ProgressSink | None, update: WriteProgress) -> None:
        if progress is None:
            return
        try:
            progress(update)
        except Exception as e:
            logger.warning(f"Progress sink failed: {e}", extra={"table": update.table})

    def _fail(self, summary: WriteSummary, error: LogiloadError) -> None:
        self._state = summary.state = WriterState.FAILED
        summary.error = str(error)
        logger.error(
            f"Write to '{summary.table}' failed: {error}",
            extra={"table": summary.table, "committed": summary.committed},
        )


def _units_needed(count: int, size: int) -> int:
    if count == 0:
        return 0
    if size == 0:
        return 1
    return -(-count // size)
