"""
Tabular <-> record adapter.

Converts external rows (mappings keyed by persisted-style headers, or Spark
Rows) into records keyed by logical field name, and records back into rows
for export and report paths.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from logiload.core.errors import ConfigError
from logiload.core.models import ColumnDefinition, RejectedRecord, TableMapping
from logiload.core.rules.rejections import RejectionSink, emit_rejection
from logiload.core.schema import SchemaResolver
from logiload.observability.logger import get_logger

from .transformations import ValueTransformer, compile_transformations

logger = get_logger(__name__)


def row_as_mapping(row: Any) -> Mapping[str, Any]:
    """
    View a tabular row as a mapping.

    Accepts mappings and objects exposing asDict() (pyspark.sql.Row).

    Raises:
        TypeError: For any other row type
    """
    if isinstance(row, Mapping):
        return row
    as_dict = getattr(row, "asDict", None)
    if callable(as_dict):
        return as_dict()
    raise TypeError(f"Unsupported row type: {type(row).__name__}")


class TabularAdapter:
    """
    Adapter bound to one table mapping.

    Columns present in a row but absent from the mapping are ignored (and
    logged once per adapter). Mapped columns absent from the row leave the
    field unset so the statement builder can apply the column default.
    """

    def __init__(self, mapping: TableMapping, table: str | None = None):
        """
        Initialize the adapter.

        Args:
            mapping: Table mapping describing the columns
            table: Table identifier used in diagnostics (defaults to mapping_id)

        Raises:
            ConfigError: If a data transformation names an unknown tag
        """
        self.mapping = mapping
        self.table = table or mapping.mapping_id or mapping.table_name
        try:
            self.transformers: dict[str, ValueTransformer] = compile_transformations(
                mapping.data_transformations
            )
        except ConfigError as e:
            raise ConfigError(e.message, table=self.table) from e
        # field name -> persisted column, primary columns first
        self._lookup: list[tuple[str, str]] = [
            (field, column.db_column) for field, column in mapping.columns.items()
        ] + [
            (field, column.db_column) for field, column in mapping.additional_columns.items()
        ]
        self._known_columns = {column for _, column in self._lookup}
        self._reported_unknown: set[str] = set()

    def from_row(self, row: Any) -> dict[str, Any]:
        """
        Convert one external row into a record.

        Raises:
            TypeError: If the row is not a mapping-like object
        """
        values = row_as_mapping(row)
        record: dict[str, Any] = {}

        for field_name, column_name in self._lookup:
            if column_name not in values:
                continue
            value = values[column_name]
            transformer = self.transformers.get(field_name)
            if transformer is not None:
                value = transformer.apply(value)
            record[field_name] = value

        unknown = [
            str(k) for k in values
            if k not in self._known_columns and k not in self._reported_unknown
        ]
        if unknown:
            self._reported_unknown.update(unknown)
            logger.info(
                f"Ignoring {len(unknown)} unmapped columns for '{self.table}'",
                extra={"table": self.table, "columns": unknown},
            )

        return record

    def adapt_rows(
        self,
        rows: Iterable[Any],
        rejection_sink: RejectionSink | None = None,
    ) -> list[dict[str, Any]]:
        """
        Convert many rows; rows that cannot be adapted are reported and skipped.
        """
        return [record for _, record in self.adapt_indexed(rows, rejection_sink)]

    def adapt_indexed(
        self,
        rows: Iterable[Any],
        rejection_sink: RejectionSink | None = None,
    ) -> list[tuple[int, dict[str, Any]]]:
        """Like adapt_rows, but each record comes with its source row index."""
        adapted = []
        for index, row in enumerate(rows):
            try:
                adapted.append((index, self.from_row(row)))
            except (TypeError, ValueError) as e:
                emit_rejection(rejection_sink, RejectedRecord(
                    table=self.table,
                    row_index=index,
                    stage="adapter",
                    reasons=[str(e)],
                    payload=payload_of(row),
                ))
        return adapted

    def records_from_dataframe(
        self,
        df: Any,
        rejection_sink: RejectionSink | None = None,
    ) -> list[dict[str, Any]]:
        """
        Collect a Spark DataFrame and adapt its rows.

        Args:
            df: pyspark.sql.DataFrame whose headers are persisted column names
        """
        return self.adapt_rows(df.collect(), rejection_sink)

    def to_row(
        self,
        record: Mapping[str, Any],
        output_shape: Sequence[ColumnDefinition] | Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Inverse of from_row; see to_row()."""
        shape = output_shape if output_shape is not None else SchemaResolver.from_mapping(self.mapping)
        return to_row(record, shape)


def from_row(row: Any, mapping: TableMapping) -> dict[str, Any]:
    """Convert one external row into a record using a table mapping."""
    return TabularAdapter(mapping).from_row(row)


def to_row(
    record: Mapping[str, Any],
    output_shape: Sequence[ColumnDefinition] | Sequence[str],
) -> dict[str, Any]:
    """
    Convert a record into a row keyed by persisted column name.

    Args:
        record: Field name -> value
        output_shape: Column definitions (field -> column) or plain column
            names (used as both field and column name), in output order

    Returns:
        Persisted column name -> value; columns the record lacks are None
    """
    row: dict[str, Any] = {}
    for item in output_shape:
        if isinstance(item, ColumnDefinition):
            row[item.column_name] = record.get(item.field_name)
        else:
            row[str(item)] = record.get(str(item))
    return row


def from_store_row(row: Mapping[str, Any], definitions: Sequence[ColumnDefinition]) -> dict[str, Any]:
    """
    Convert a row read from the store back into a record.

    Columns not covered by the definitions keep their column name as field name.
    """
    by_column = {d.column_name: d.field_name for d in definitions}
    return {by_column.get(column, column): value for column, value in row.items()}


def payload_of(row: Any) -> dict[str, Any]:
    """Row as a rejection payload; unsupported rows are kept as their repr."""
    try:
        return dict(row_as_mapping(row))
    except TypeError:
        return {"_raw": repr(row)}
