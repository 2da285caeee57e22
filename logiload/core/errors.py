"""
Error hierarchy for the mapping-driven loader.

Every error names the table it concerns so the message is usable on its own
when it reaches a log line or a progress sink.
"""

from typing import Any


class LogiloadError(Exception):
    """Base class for all loader errors."""

    def __init__(self, message: str, table: str | None = None):
        self.table = table
        self.message = message
        if table:
            super().__init__(f"[{table}] {message}")
        else:
            super().__init__(message)


class ConfigError(LogiloadError):
    """Mapping catalog is missing, unparseable or structurally inconsistent."""


class SchemaError(LogiloadError):
    """No column definitions could be resolved for a table."""


class ArgumentError(LogiloadError):
    """Caller supplied an ambiguous or inconsistent statement request."""


class TableNameRejected(LogiloadError):
    """Table identifier failed the table-name validation gate."""

    def __init__(self, table: str, reason: str):
        self.reason = reason
        super().__init__(f"Table name rejected: {reason}", table=table)


class BuildError(LogiloadError):
    """Unexpected failure while building a statement."""

    def __init__(self, table: str, cause: BaseException):
        self.cause = cause
        super().__init__(
            f"Failed to build statement: {type(cause).__name__}: {cause}",
            table=table,
        )


class ValidationRejection(LogiloadError):
    """
    A single record is not eligible for writing.

    Non-fatal under the default policy: the writer excludes the record,
    reports it to the rejection sink and keeps going.
    """

    def __init__(
        self,
        table: str | None,
        reasons: list[str],
        row_index: int | None = None,
        record: dict[str, Any] | None = None,
    ):
        self.reasons = list(reasons)
        self.row_index = row_index
        self.record = record
        where = f" at row {row_index}" if row_index is not None else ""
        super().__init__(f"Record rejected{where}: {'; '.join(self.reasons)}", table=table)


class TransactionError(LogiloadError):
    """
    A transactional unit failed.

    When the failure came from the commit itself (`in_commit`), the store
    may or may not have kept the unit.
    """

    def __init__(
        self,
        table: str,
        unit_index: int,
        cause: BaseException,
        committed: int = 0,
        statement_index: int | None = None,
        in_commit: bool = False,
    ):
        self.unit_index = unit_index
        self.cause = cause
        self.committed = committed
        self.statement_index = statement_index
        self.in_commit = in_commit
        if in_commit:
            what = f"Unit {unit_index} commit failed, outcome unknown"
        else:
            at = f", statement {statement_index}" if statement_index is not None else ""
            what = f"Unit {unit_index} rolled back{at}"
        super().__init__(
            f"{what}: {type(cause).__name__}: {cause} "
            f"({committed} rows committed before failure)",
            table=table,
        )


class WriteError(LogiloadError):
    """Unexpected failure inside a write that is not a store transaction error."""

    def __init__(self, table: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"Write aborted: {type(cause).__name__}: {cause}", table=table)
