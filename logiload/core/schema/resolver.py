"""
Schema resolution for target tables.

Column definitions come from the mapping catalog when the table has an
entry, otherwise from the field names of a sample record.
"""

from collections.abc import Mapping
from typing import Any

from logiload.core.errors import SchemaError
from logiload.core.models import ColumnDefinition, MappingCatalog, TableMapping
from logiload.observability.logger import get_logger

logger = get_logger(__name__)


class SchemaResolver:
    """
    Resolves the ordered column definitions for a table.

    Results are cached per table identifier for the lifetime of the
    resolver; the batch writer creates one resolver per invocation.
    """

    def __init__(self, catalog: MappingCatalog, allow_fallback: bool = True):
        """
        Initialize schema resolver.

        Args:
            catalog: Mapping catalog (read-only)
            allow_fallback: Whether unmapped tables may be resolved from a sample record
        """
        self.catalog = catalog
        self.allow_fallback = allow_fallback
        self._cache: dict[str, tuple[ColumnDefinition, ...]] = {}

    def resolve(
        self,
        table_identifier: str,
        sample_record: Mapping[str, Any] | None = None,
    ) -> list[ColumnDefinition]:
        """
        Resolve column definitions for a table.

        Catalog tables yield primary columns in declared order followed by
        additional columns. Unmapped tables yield one text column per field
        of the sample record, named after the field.

        Args:
            table_identifier: Catalog key or persisted table name
            sample_record: Record used for fallback introspection

        Returns:
            Ordered list of ColumnDefinition

        Raises:
            SchemaError: If no columns can be resolved
        """
        cached = self._cache.get(table_identifier)
        if cached is not None:
            return list(cached)

        mapping = self.catalog.resolve_table(table_identifier)
        if mapping is not None:
            definitions = self.from_mapping(mapping)
            if not definitions:
                raise SchemaError("Catalog entry declares no columns", table=table_identifier)
        else:
            definitions = self._from_sample(table_identifier, sample_record)

        self._cache[table_identifier] = tuple(definitions)
        return list(definitions)

    @staticmethod
    def from_mapping(mapping: TableMapping) -> list[ColumnDefinition]:
        """Column definitions declared by a catalog table mapping."""
        definitions = [
            ColumnDefinition.from_catalog(field_name, column)
            for field_name, column in mapping.columns.items()
        ]
        definitions.extend(
            ColumnDefinition.from_catalog(field_name, column, additional=True)
            for field_name, column in mapping.additional_columns.items()
        )
        return definitions

    def _from_sample(
        self,
        table_identifier: str,
        sample_record: Mapping[str, Any] | None,
    ) -> list[ColumnDefinition]:
        if not self.allow_fallback:
            raise SchemaError(
                "No catalog entry and fallback introspection is disabled",
                table=table_identifier,
            )
        if not sample_record:
            raise SchemaError(
                "No catalog entry and no sample record to introspect",
                table=table_identifier,
            )

        definitions = []
        seen: set[str] = set()
        for field_name in sample_record:
            name = str(field_name)
            if not name or name in seen:
                continue
            seen.add(name)
            definitions.append(ColumnDefinition.from_sample(name))

        if not definitions:
            raise SchemaError("Sample record has no usable fields", table=table_identifier)

        logger.warning(
            f"No catalog entry for '{table_identifier}', "
            f"using {len(definitions)} columns introspected from sample record",
            extra={"table": table_identifier, "columns": [d.column_name for d in definitions]},
        )
        return definitions

    def is_mapped(self, table_identifier: str) -> bool:
        return self.catalog.resolve_table(table_identifier) is not None

    def clear_cache(self) -> None:
        self._cache.clear()
