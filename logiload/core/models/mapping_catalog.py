"""
Mapping catalog models.

The catalog describes, per table, how source columns map to persisted
columns, which extra columns exist only in the store, how records are
validated and how values are transformed on the way in. It is parsed once
from a declarative document and treated as read-only afterwards.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Contact-detail roles: rows missing them are still written.
LENIENT_ROLES = ("phone", "zip_code")


class _CatalogNode(BaseModel):
    # Unknown keys are tolerated so newer catalog documents still load.
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class _ColumnNode(_CatalogNode):
    db_column: str = Field(..., min_length=1)
    data_type: str = "text"
    required: bool = False
    default_value: Any = None
    description: str = ""
    primary_key: bool = False
    auto_increment: bool = False

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return "text"
        return str(v).strip().lower()


class ColumnMapping(_ColumnNode):
    """
    One catalog-declared column; keyed in its table by source column name.

    Attributes:
        db_column: Persisted column name
        data_type: Declared type tag (text, integer, decimal, date, ...)
        required: Whether the column must carry a value on insert
        default_value: Value used when the record does not carry one
        description: Human description
        primary_key: Marks the update/delete target column
        auto_increment: Store-generated column, never written
        excel_column_index: Position in the source sheet (informational)
    """

    excel_column_index: int = 0


class AdditionalColumn(_ColumnNode):
    """A persisted column with no source-side counterpart (derived or system column)."""


class ValidationRules(_CatalogNode):
    """Declarative per-table field lists used by the record validator."""

    required_fields: list[str] = Field(default_factory=list)
    numeric_fields: list[str] = Field(default_factory=list)
    date_fields: list[str] = Field(default_factory=list)
    decimal_fields: list[str] = Field(default_factory=list)


class DataTransformation(_CatalogNode):
    """Special handling and/or type conversion applied to one field by the adapter."""

    special_handling: str | None = None
    data_type_conversion: str | None = None
    default_value: Any = None
    description: str = ""


class TableMapping(_CatalogNode):
    """
    Mapping for one persisted table.

    Attributes:
        mapping_id: Catalog identifier (defaults to the catalog key)
        table_name: Persisted table name
        processing_order: Order in which active tables are processed
        is_active: Activation flag
        columns: Source column name -> ColumnMapping, in declared order
        additional_columns: Additional column name -> AdditionalColumn
        validation_rules: Declarative validation rules
        data_transformations: Field name -> DataTransformation
    """

    mapping_id: str = ""
    table_name: str = Field(..., min_length=1)
    description: str = ""
    excel_file_pattern: str = ""
    excel_sheet_name: str = ""
    processing_order: int = 0
    is_active: bool = True
    columns: dict[str, ColumnMapping]
    additional_columns: dict[str, AdditionalColumn] = Field(default_factory=dict)
    validation_rules: ValidationRules = Field(default_factory=ValidationRules)
    data_transformations: dict[str, DataTransformation] = Field(default_factory=dict)

    @field_validator("additional_columns", "data_transformations", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return {} if v is None else v

    @model_validator(mode="after")
    def check_unique_persisted_columns(self) -> "TableMapping":
        seen: dict[str, str] = {}
        for key, column in [*self.columns.items(), *self.additional_columns.items()]:
            name = column.db_column.lower()
            if name in seen:
                raise ValueError(
                    f"Persisted column '{column.db_column}' is mapped by both "
                    f"'{seen[name]}' and '{key}'"
                )
            seen[name] = key
        return self

    @property
    def primary_key_fields(self) -> list[str]:
        """Field names whose column is flagged as primary key."""
        return [
            key
            for key, column in [*self.columns.items(), *self.additional_columns.items()]
            if column.primary_key
        ]


class ErrorHandling(_CatalogNode):
    continue_on_error: bool = True
    log_errors: bool = True
    skip_invalid_rows: bool = True


class RecordFieldRoles(_CatalogNode):
    """Which record fields play the roles the universal validator rules check."""

    order_number: str = "order_number"
    recipient_name: str = "recipient_name"
    address: str = "address"
    quantity: str = "quantity"
    phone: str = "phone1"
    zip_code: str = "zip_code"

    def lenient_fields(self, roles: tuple[str, ...] = LENIENT_ROLES) -> set[str]:
        """Record fields that are never required, whatever the catalog says."""
        return {getattr(self, role) for role in roles}


class GlobalSettings(_CatalogNode):
    default_data_types: dict[str, str] = Field(default_factory=dict)
    supported_file_formats: list[str] = Field(default_factory=lambda: ["csv", "json", "parquet"])
    encoding: str = "UTF-8"
    batch_size: int = Field(1000, ge=0)
    error_handling: ErrorHandling = Field(default_factory=ErrorHandling)
    record_fields: RecordFieldRoles = Field(default_factory=RecordFieldRoles)


class MappingCatalog(_CatalogNode):
    """
    Versioned root of the mapping configuration.

    Read-only once loaded. A reload produces a new MappingCatalog; readers
    holding the previous object keep seeing a consistent catalog.
    """

    version: str = ""
    description: str = ""
    created_date: str = ""
    last_updated: str = ""
    mappings: dict[str, TableMapping] = Field(default_factory=dict)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)
    skipped_tables: list[str] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def version_as_string(cls, v):
        return "" if v is None else str(v)

    def resolve_table(self, table_identifier: str) -> TableMapping | None:
        """
        Find the mapping for a table identifier.

        The identifier is matched against catalog keys first, then against
        persisted table names. Absence is not an error: it selects the
        fallback introspection path.
        """
        mapping = self.mappings.get(table_identifier)
        if mapping is not None:
            return mapping
        for candidate in self.mappings.values():
            if candidate.table_name == table_identifier:
                return candidate
        return None

    def active_tables(self) -> list[TableMapping]:
        """Active table mappings in processing order."""
        return sorted(
            (m for m in self.mappings.values() if m.is_active),
            key=lambda m: m.processing_order,
        )

    @property
    def batch_size(self) -> int:
        return self.global_settings.batch_size
