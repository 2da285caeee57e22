"""
Dynamic statement builder.

Builds parameterized INSERT / UPDATE / DELETE / TRUNCATE (and the SELECT /
COUNT read-path) statements from resolved column definitions. Values only
ever travel in the parameter map; table names pass the table-name gate and
column names come only from resolved column definitions.

Placeholders use the psycopg named style: %(name)s.
"""

import re
from collections.abc import Mapping
from typing import Any

from logiload.core.errors import (
    ArgumentError,
    BuildError,
    LogiloadError,
    ValidationRejection,
)
from logiload.core.models import ColumnDefinition, GeneratedStatement, MappingCatalog
from logiload.core.models.generated_statement import PLACEHOLDER_PATTERN
from logiload.core.schema import SchemaResolver
from logiload.observability.logger import get_logger
from logiload.observability.metrics import increment_counter, statements_built_total

from .table_names import validate_table_name

logger = get_logger(__name__)

_MISSING = object()
_POSITIONAL_PLACEHOLDER = re.compile(r"(?<!%)%s")
_WHERE_FORBIDDEN = (";", "--", "/*", "*/")


def quote_identifier(name: str) -> str:
    """
    Quote an identifier for PostgreSQL.

    Embedded double quotes are doubled and % is escaped for psycopg's
    placeholder parser. Dotted names are quoted part by part.
    """
    return ".".join(
        '"' + part.replace('"', '""').replace("%", "%%") + '"'
        for part in name.split(".")
    )


class DynamicStatementBuilder:
    """
    Builds one GeneratedStatement per record.

    Usage:
        builder = DynamicStatementBuilder(catalog)
        statement = builder.build_insert("order_table", record)
        cursor.execute(statement.sql, statement.params)
    """

    def __init__(
        self,
        catalog: MappingCatalog,
        resolver: SchemaResolver | None = None,
        allow_fallback: bool = True,
    ):
        """
        Initialize the builder.

        Args:
            catalog: Mapping catalog
            resolver: Schema resolver (one is created when omitted)
            allow_fallback: Passed to the resolver it creates
        """
        self.catalog = catalog
        self.resolver = resolver or SchemaResolver(catalog, allow_fallback=allow_fallback)

    # =======================
    # PUBLIC API
    # =======================

    def persisted_table(self, table_identifier: str) -> str:
        """
        Persisted table name for a table identifier.

        Raises:
            TableNameRejected: If the identifier or the mapped name fails the gate
        """
        validate_table_name(table_identifier)
        mapping = self.catalog.resolve_table(table_identifier)
        if mapping is None:
            return table_identifier
        return validate_table_name(mapping.table_name)

    def build_insert(
        self,
        table_identifier: str,
        record: Mapping[str, Any],
        row_index: int | None = None,
    ) -> GeneratedStatement:
        """
        Build an INSERT for one record.

        Columns the record lacks take their declared default, or are left
        out when they have none and are not required. The phone and
        zip-code role fields count as optional even when marked required.

        Raises:
            TableNameRejected: If the table name fails the gate
            SchemaError: If no columns can be resolved
            ValidationRejection: If a required column has neither value nor default
            BuildError: On any unexpected failure
        """
        return self._guard(table_identifier, self._insert, table_identifier, record, row_index)

    def build_update(
        self,
        table_identifier: str,
        record: Mapping[str, Any],
        where: str | None = None,
        where_params: Mapping[str, Any] | None = None,
        row_index: int | None = None,
    ) -> GeneratedStatement:
        """
        Build an UPDATE for one record.

        The SET list holds every resolved column the record carries a value
        for. Without a WHERE clause the primary-key columns form it.

        Raises:
            ArgumentError: If there is no WHERE clause and no usable primary key,
                or the WHERE placeholders and parameters disagree
        """
        return self._guard(
            table_identifier, self._update, table_identifier, record, where, where_params, row_index
        )

    def build_delete(
        self,
        table_identifier: str,
        record: Mapping[str, Any] | None = None,
        where: str | None = None,
        where_params: Mapping[str, Any] | None = None,
        row_index: int | None = None,
    ) -> GeneratedStatement:
        """
        Build a DELETE targeting one record (or a caller-supplied WHERE clause).

        Raises:
            ArgumentError: If there is no WHERE clause and no usable primary key
        """
        return self._guard(
            table_identifier, self._delete, table_identifier, record or {}, where, where_params, row_index
        )

    def build_truncate(self, table_identifier: str) -> GeneratedStatement:
        """
        Build a TRUNCATE; no parameters.

        Raises:
            TableNameRejected: If the table name fails the gate
        """
        return self._guard(table_identifier, self._truncate, table_identifier)

    def build_select(
        self,
        table_identifier: str,
        where: str | None = None,
        where_params: Mapping[str, Any] | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> GeneratedStatement:
        """
        Build a SELECT over the resolved columns (all columns for unmapped tables).
        """
        return self._guard(
            table_identifier, self._select, table_identifier, where, where_params, limit, offset
        )

    def build_count(
        self,
        table_identifier: str,
        where: str | None = None,
        where_params: Mapping[str, Any] | None = None,
    ) -> GeneratedStatement:
        """Build a SELECT COUNT(*) AS count."""
        return self._guard(table_identifier, self._count, table_identifier, where, where_params)

    # =======================
    # STATEMENT BODIES
    # =======================

    def _insert(self, table_identifier, record, row_index) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        definitions = self.resolver.resolve(table_identifier, sample_record=record)

        columns: list[str] = []
        params: dict[str, Any] = {}
        missing_required: list[str] = []
        lenient = self.catalog.global_settings.record_fields.lenient_fields()

        for definition in definitions:
            if definition.auto_increment:
                continue
            value = record.get(definition.field_name, _MISSING)
            if value is _MISSING or value is None:
                if definition.default is not None:
                    value = definition.default
                elif definition.required and definition.field_name not in lenient:
                    missing_required.append(definition.column_name)
                    continue
                else:
                    continue
            params[f"p{len(columns)}"] = value
            columns.append(definition.column_name)

        if missing_required:
            raise ValidationRejection(
                table_identifier,
                [f"required column '{c}' has no value and no default" for c in missing_required],
                row_index=row_index,
                record=dict(record),
            )
        if not columns:
            raise ValidationRejection(
                table_identifier,
                ["record carries no value for any resolved column"],
                row_index=row_index,
                record=dict(record),
            )

        column_list = ", ".join(quote_identifier(c) for c in columns)
        value_list = ", ".join(f"%({name})s" for name in params)
        sql = f"INSERT INTO {quote_identifier(table)} ({column_list}) VALUES ({value_list})"
        return self._finish("insert", table_identifier, table, sql, params, columns, row_index, definitions)

    def _update(self, table_identifier, record, where, where_params, row_index) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        definitions = self.resolver.resolve(table_identifier, sample_record=record)

        params: dict[str, Any] = {}
        where_sql, key_columns = self._where_clause(
            table_identifier, definitions, record, where, where_params, params
        )

        set_parts: list[str] = []
        columns: list[str] = []
        for definition in definitions:
            if definition.auto_increment or definition.column_name in key_columns:
                continue
            value = record.get(definition.field_name)
            if value is None:
                continue
            name = f"p{len(columns)}"
            if name in params:
                raise ArgumentError(f"WHERE parameter '{name}' collides with a generated parameter",
                                    table=table_identifier)
            params[name] = value
            set_parts.append(f"{quote_identifier(definition.column_name)} = %({name})s")
            columns.append(definition.column_name)

        if not set_parts:
            raise ArgumentError("Record carries no value for any updatable column", table=table_identifier)

        sql = f"UPDATE {quote_identifier(table)} SET {', '.join(set_parts)} WHERE {where_sql}"
        return self._finish(
            "update", table_identifier, table, sql, params, columns + list(key_columns), row_index, definitions
        )

    def _delete(self, table_identifier, record, where, where_params, row_index) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        if where and where.strip():
            definitions = None
        else:
            definitions = self.resolver.resolve(table_identifier, sample_record=record)

        params: dict[str, Any] = {}
        where_sql, key_columns = self._where_clause(
            table_identifier, definitions or [], record, where, where_params, params
        )
        sql = f"DELETE FROM {quote_identifier(table)} WHERE {where_sql}"
        return self._finish("delete", table_identifier, table, sql, params, list(key_columns), row_index, definitions)

    def _truncate(self, table_identifier) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        sql = f"TRUNCATE TABLE {quote_identifier(table)}"
        return self._finish("truncate", table_identifier, table, sql, {}, [], None, None)

    def _select(self, table_identifier, where, where_params, limit, offset) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        columns: list[str] = []
        definitions = None
        if self.catalog.resolve_table(table_identifier) is not None:
            definitions = self.resolver.resolve(table_identifier)
            columns = [d.column_name for d in definitions]
        select_list = ", ".join(quote_identifier(c) for c in columns) if columns else "*"

        params: dict[str, Any] = {}
        sql = f"SELECT {select_list} FROM {quote_identifier(table)}"
        if where and where.strip():
            sql += f" WHERE {self._caller_where(table_identifier, where, where_params, params)}"
        if ("limit" in params and limit) or ("offset" in params and offset):
            raise ArgumentError("WHERE parameters 'limit'/'offset' are reserved", table=table_identifier)
        if limit and limit > 0:
            params["limit"] = int(limit)
            sql += " LIMIT %(limit)s"
        if offset and offset > 0:
            params["offset"] = int(offset)
            sql += " OFFSET %(offset)s"
        return self._finish("select", table_identifier, table, sql, params, columns, None, definitions)

    def _count(self, table_identifier, where, where_params) -> GeneratedStatement:
        table = self.persisted_table(table_identifier)
        params: dict[str, Any] = {}
        sql = f"SELECT COUNT(*) AS count FROM {quote_identifier(table)}"
        if where and where.strip():
            sql += f" WHERE {self._caller_where(table_identifier, where, where_params, params)}"
        return self._finish("count", table_identifier, table, sql, params, [], None, None)

    # =======================
    # HELPERS
    # =======================

    def _where_clause(
        self,
        table_identifier: str,
        definitions: list[ColumnDefinition],
        record: Mapping[str, Any],
        where: str | None,
        where_params: Mapping[str, Any] | None,
        params: dict[str, Any],
    ) -> tuple[str, tuple[str, ...]]:
        """
        WHERE text for update/delete plus the key columns it constrains.

        A caller-supplied clause is used verbatim; otherwise primary-key
        columns are used. Parameters are added to `params`.
        """
        if where and where.strip():
            return self._caller_where(table_identifier, where, where_params, params), ()

        if where_params:
            raise ArgumentError("WHERE parameters given without a WHERE clause", table=table_identifier)

        keys = [d for d in definitions if d.primary_key]
        if not keys:
            raise ArgumentError(
                "Ambiguous update target: no WHERE clause and no primary key column declared",
                table=table_identifier,
            )

        parts = []
        for index, definition in enumerate(keys):
            value = record.get(definition.field_name)
            if value is None:
                raise ArgumentError(
                    f"Primary key field '{definition.field_name}' has no value",
                    table=table_identifier,
                )
            name = f"k{index}"
            params[name] = value
            parts.append(f"{quote_identifier(definition.column_name)} = %({name})s")
        return " AND ".join(parts), tuple(d.column_name for d in keys)

    def _caller_where(
        self,
        table_identifier: str,
        where: str,
        where_params: Mapping[str, Any] | None,
        params: dict[str, Any],
    ) -> str:
        for sequence in _WHERE_FORBIDDEN:
            if sequence in where:
                raise ArgumentError(f"WHERE clause contains forbidden sequence {sequence!r}",
                                    table=table_identifier)
        if _POSITIONAL_PLACEHOLDER.search(where):
            raise ArgumentError("WHERE clause must use named %(name)s placeholders", table=table_identifier)

        supplied = dict(where_params or {})
        referenced = set(PLACEHOLDER_PATTERN.findall(where))
        if referenced != set(supplied):
            raise ArgumentError(
                f"WHERE placeholders {sorted(referenced)} do not match parameters {sorted(supplied)}",
                table=table_identifier,
            )
        for name, value in supplied.items():
            if name in params:
                raise ArgumentError(f"WHERE parameter '{name}' collides with a generated parameter",
                                    table=table_identifier)
            params[name] = value
        return where.strip()

    def _finish(
        self,
        kind: str,
        table_identifier: str,
        table: str,
        sql: str,
        params: dict[str, Any],
        columns: list[str],
        row_index: int | None,
        definitions: list[ColumnDefinition] | None,
    ) -> GeneratedStatement:
        if definitions is None:
            source = "none"
        elif definitions and definitions[0].is_fallback:
            source = "sample"
        else:
            source = "catalog"
        increment_counter(statements_built_total, table=table_identifier, kind=kind, source=source)
        logger.debug(
            f"Built {kind.upper()} for '{table_identifier}'",
            extra={"table": table, "sql": sql, "parameter_names": list(params)},
        )
        return GeneratedStatement(
            kind=kind,
            table=table,
            sql=sql,
            params=params,
            columns=tuple(columns),
            row_index=row_index,
        )

    def _guard(self, table_identifier: str, body, *args) -> GeneratedStatement:
        try:
            return body(*args)
        except LogiloadError:
            raise
        except Exception as e:
            raise BuildError(str(table_identifier), e) from e
